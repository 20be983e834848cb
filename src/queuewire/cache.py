"""Query cache — the single invalidation surface for live sync.

Push events, bulk operations and reorders all converge here.  Invalidation is
declarative: a key is marked stale and, when a read-path registered a
fetcher for it, one refetch is scheduled.  Repeated or concurrent
invalidations of the same key coalesce into at most one fetch in flight plus
one follow-up, so they are idempotent and commute.

Nothing in queuewire merges push payloads into entries; entries only change
through ``set`` (an authoritative read) or ``set_provisional`` (an optimistic
guess that the next read supersedes).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from queuewire._types import CacheKey

if TYPE_CHECKING:
    from queuewire.observability.collector import SyncCollector

type Fetcher = Callable[[], Awaitable[Any]]
type InvalidationListener = Callable[[CacheKey], None]

GROUPS_KEY: CacheKey = ("groups",)


def job_key(job_id: str) -> CacheKey:
    return ("job", job_id)


def queue_key(group_id: str) -> CacheKey:
    return ("queue", group_id)


def history_key(group_id: str) -> CacheKey:
    return ("history", group_id)


def runners_key(group_id: str) -> CacheKey:
    return ("runners", group_id)


@dataclass(slots=True)
class _Entry:
    data: Any = None
    stale: bool = True


class QueryCache:
    """Keyed store of read-path results with staleness tracking.

    Args:
        collector: Optional observability collector; every invalidation is
            recorded with its source.

    """

    def __init__(self, collector: SyncCollector | None = None) -> None:
        self._collector = collector
        self._entries: dict[CacheKey, _Entry] = {}
        self._fetchers: dict[CacheKey, Fetcher] = {}
        self._inflight: dict[CacheKey, asyncio.Task[Any]] = {}
        self._rerun: set[CacheKey] = set()
        self._listeners: list[InvalidationListener] = []

    # ----- Read-path registration -----

    def register(self, key: CacheKey, fetcher: Fetcher) -> None:
        """Register the read-path that refetches ``key`` when it goes stale."""
        self._fetchers[key] = fetcher

    def unregister(self, key: CacheKey) -> None:
        self._fetchers.pop(key, None)

    def on_invalidate(self, listener: InvalidationListener) -> Callable[[], None]:
        """Call ``listener(key)`` on every invalidation. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ----- Entries -----

    def get(self, key: CacheKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None or entry.data is None:
            return default
        return entry.data

    def set(self, key: CacheKey, data: Any) -> None:
        """Store an authoritative result; the entry becomes fresh."""
        self._entries[key] = _Entry(data=data, stale=False)

    def set_provisional(self, key: CacheKey, data: Any) -> None:
        """Replace the shown data without claiming it is authoritative."""
        entry = self._entries.setdefault(key, _Entry())
        entry.data = data

    def is_stale(self, key: CacheKey) -> bool:
        """Unknown keys count as stale."""
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def keys(self) -> frozenset[CacheKey]:
        return frozenset(self._entries)

    # ----- Invalidation -----

    def invalidate(self, key: CacheKey, *, source: str = "manual") -> None:
        """Mark ``key`` stale and schedule its refetch if a read-path is registered."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.stale = True
        if self._collector is not None:
            self._collector.record_invalidation(key, source=source)
        for listener in tuple(self._listeners):
            listener(key)
        if key in self._fetchers:
            self._schedule(key)

    def invalidate_many(self, keys: tuple[CacheKey, ...], *, source: str = "manual") -> None:
        for key in dict.fromkeys(keys):
            self.invalidate(key, source=source)

    async def refetch(self, key: CacheKey) -> Any:
        """Run the registered fetcher for ``key`` now and store its result."""
        fetcher = self._fetchers.get(key)
        if fetcher is None:
            msg = f"No read-path registered for {':'.join(key)}"
            raise KeyError(msg)
        data = await fetcher()
        self.set(key, data)
        return data

    async def settle(self) -> None:
        """Wait until no refetch is in flight."""
        while self._inflight:
            await asyncio.gather(*self._inflight.values(), return_exceptions=True)

    def _schedule(self, key: CacheKey) -> None:
        if key in self._inflight:
            self._rerun.add(key)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the key stays stale until a read-path fetches it.
            return
        task = loop.create_task(self.refetch(key))
        self._inflight[key] = task
        task.add_done_callback(lambda t, k=key: self._on_refetch_done(k, t))

    def _on_refetch_done(self, key: CacheKey, task: asyncio.Task[Any]) -> None:
        self._inflight.pop(key, None)
        if not task.cancelled():
            exc = task.exception()
            if exc is not None and self._collector is not None:
                self._collector.record_callback_failed(f"refetch {':'.join(key)}", exc)
        if key in self._rerun:
            self._rerun.discard(key)
            self._schedule(key)
