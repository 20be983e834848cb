"""Event dispatcher — maps inbound push events to cache invalidations.

Each recognized event invalidates a fixed set of named read-paths and then
invokes the matching optional callback with the raw payload.  The dispatcher
never merges payloads into the cache: invalidation asks the read-paths to
refetch, so the server stays the only source of truth.

Example flow:
    1. Socket delivers ``{"type": "queue_update", "group_id": "g", "payload": [...]}``
    2. ``decode_frame`` yields ``QueueUpdate(group_id="g", jobs=[...])``
    3. ``INVALIDATION_TARGETS["queue_update"]`` names ``queue:g`` and ``groups``
    4. Both keys go stale in the QueryCache; ``on_queue_update`` is called
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from queuewire.cache import GROUPS_KEY, history_key, job_key, queue_key, runners_key
from queuewire.live.events import (
    ChannelAck,
    Dispatch,
    ErrorEvent,
    InboundEvent,
    JobState,
    QueueUpdate,
    Rejected,
    RunnerStatus,
    SystemStatus,
    decode_frame,
)

if TYPE_CHECKING:
    from queuewire._types import CacheKey
    from queuewire.cache import QueryCache
    from queuewire.observability.collector import SyncCollector


# ---------------------------------------------------------------------------
# Event-to-cache mapping
# ---------------------------------------------------------------------------
# Static: which read-paths each event tag makes stale.  ``error`` and the
# channel-management tags touch nothing.

INVALIDATION_TARGETS: dict[str, Callable[[Any], tuple[CacheKey, ...]]] = {
    "runner_status": lambda e: (runners_key(e.group_id), GROUPS_KEY),
    "queue_update": lambda e: (queue_key(e.group_id), GROUPS_KEY),
    "job_state": lambda e: (
        job_key(e.job_id),
        queue_key(e.group_id),
        history_key(e.group_id),
        GROUPS_KEY,
    ),
    "dispatch": lambda e: (queue_key(e.group_id), GROUPS_KEY),
    "error": lambda e: (),
    "system_status": lambda e: (),
    "subscribed": lambda e: (),
    "unsubscribed": lambda e: (),
}

_TAGS: dict[type, str] = {
    RunnerStatus: "runner_status",
    QueueUpdate: "queue_update",
    JobState: "job_state",
    Dispatch: "dispatch",
    ErrorEvent: "error",
    SystemStatus: "system_status",
}


def event_tag(event: InboundEvent) -> str:
    """The wire ``type`` tag of a parsed event."""
    if isinstance(event, ChannelAck):
        return event.kind
    return _TAGS[type(event)]


def invalidation_keys(event: InboundEvent) -> tuple[CacheKey, ...]:
    """Cache keys an event makes stale."""
    return INVALIDATION_TARGETS[event_tag(event)](event)


@dataclass(frozen=True, slots=True)
class EventCallbacks:
    """Optional observers of inbound events, each given the raw payload.

    Callbacks are passed in once, explicitly, when the dispatcher is built.

    """

    on_runner_status: Callable[[dict[str, Any], str], None] | None = None
    on_queue_update: Callable[[list[Any], str], None] | None = None
    on_job_state: Callable[[dict[str, Any]], None] | None = None
    on_dispatch: Callable[[dict[str, Any]], None] | None = None
    on_error: Callable[[str], None] | None = None


class EventDispatcher:
    """Turns raw frames into invalidations and callbacks.

    Malformed frames are dropped and recorded; they never raise out of
    ``handle_frame``.  A callback that raises is recorded too and does not
    affect the invalidations already performed.

    Args:
        cache: The shared invalidation surface.
        callbacks: Optional per-event observers.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        cache: QueryCache,
        callbacks: EventCallbacks | None = None,
        *,
        collector: SyncCollector | None = None,
    ) -> None:
        self._cache = cache
        self._callbacks = callbacks or EventCallbacks()
        self._collector = collector

    def handle_frame(self, raw: str | bytes) -> InboundEvent | None:
        """Parse and dispatch one frame. Returns the event, or None if dropped."""
        result = decode_frame(raw)
        if isinstance(result, Rejected):
            if self._collector is not None:
                self._collector.record_frame_dropped(result.reason, raw, kind=result.kind)
            else:
                print(f"  Dropped frame ({result.reason})", file=sys.stderr)
            return None
        self.dispatch(result)
        return result

    def dispatch(self, event: InboundEvent) -> None:
        """Invalidate the event's cache keys, then run its callback."""
        keys = invalidation_keys(event)
        if keys:
            self._cache.invalidate_many(keys, source="push")

        try:
            self._notify(event)
        except Exception as exc:
            if self._collector is not None:
                self._collector.record_callback_failed(event_tag(event), exc)
            else:
                print(f"  Callback error ({event_tag(event)}): {exc}", file=sys.stderr)

    def _notify(self, event: InboundEvent) -> None:
        cb = self._callbacks
        match event:
            case RunnerStatus() if cb.on_runner_status is not None:
                cb.on_runner_status(event.runner, event.group_id)
            case QueueUpdate() if cb.on_queue_update is not None:
                cb.on_queue_update(event.jobs, event.group_id)
            case JobState() if cb.on_job_state is not None:
                cb.on_job_state(event.job)
            case Dispatch() if cb.on_dispatch is not None:
                cb.on_dispatch(event.job)
            case ErrorEvent() if cb.on_error is not None:
                cb.on_error(event.message)
