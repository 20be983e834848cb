"""Sync collector — the single recording surface for queuewire components.

Every component receives an optional collector and records what it did
through the explicit methods below.  Events go to the ``EventLog``; when
``verbose`` is set, a one-line summary is also printed to stderr.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

import sys

from queuewire.observability.events import (
    BulkCompleted,
    CacheInvalidated,
    CallbackFailed,
    ConnectionTransition,
    FrameDropped,
    FrameSent,
    ReorderRequested,
    SyncEvent,
    now_ns,
)
from queuewire.observability.log import EventLog

_EXCERPT_CHARS = 120


class SyncCollector:
    """Unified event collector for the sync layer.

    Args:
        log: The EventLog to store events in.
        verbose: Print a summary line to stderr for each recorded event.

    """

    __slots__ = ("_log", "_verbose")

    def __init__(self, log: EventLog | None = None, *, verbose: bool = False) -> None:
        self._log = log if log is not None else EventLog()
        self._verbose = verbose

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Connection -----

    def record_transition(self, previous: str, current: str, *, reason: str = "") -> None:
        """Record a connection state change."""
        self._emit(
            ConnectionTransition(
                previous=previous,
                current=current,
                reason=reason,
                timestamp_ns=now_ns(),
            )
        )

    def record_frame_sent(self, kind: str, group_id: str) -> None:
        self._emit(FrameSent(kind=kind, group_id=group_id, timestamp_ns=now_ns()))

    # ----- Dispatcher -----

    def record_frame_dropped(self, reason: str, raw: str | bytes, *, kind: str = "") -> None:
        """Record an inbound frame that was discarded."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        self._emit(
            FrameDropped(
                reason=reason,  # type: ignore[arg-type]
                kind=kind,
                excerpt=raw[:_EXCERPT_CHARS],
                timestamp_ns=now_ns(),
            )
        )

    def record_callback_failed(self, kind: str, exc: BaseException) -> None:
        self._emit(CallbackFailed(kind=kind, error=repr(exc), timestamp_ns=now_ns()))

    # ----- Cache -----

    def record_invalidation(self, key: tuple[str, ...], *, source: str) -> None:
        """Record that a cache key was marked stale."""
        self._emit(
            CacheInvalidated(
                key=":".join(key),
                source=source,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )

    # ----- User actions -----

    def record_bulk(
        self,
        label: str,
        group_id: str,
        *,
        total: int,
        succeeded: int,
        failed: int,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a settled bulk operation."""
        self._emit(
            BulkCompleted(
                label=label,
                group_id=group_id,
                total=total,
                succeeded=succeeded,
                failed=failed,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_reorder(
        self,
        group_id: str,
        job_ids: tuple[str, ...],
        *,
        ok: bool,
        error: str = "",
    ) -> None:
        self._emit(
            ReorderRequested(
                group_id=group_id,
                job_ids=job_ids,
                ok=ok,
                error=error,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Output -----

    def _emit(self, event: SyncEvent) -> None:
        self._log.append(event)
        if self._verbose:
            print(f"  {_summarize(event)}", file=sys.stderr)


def _summarize(event: SyncEvent) -> str:
    """One-line human summary of an event."""
    match event:
        case ConnectionTransition():
            suffix = f" ({event.reason})" if event.reason else ""
            return f"[conn] {event.previous} -> {event.current}{suffix}"
        case FrameSent():
            return f"[send] {event.kind} {event.group_id}"
        case FrameDropped():
            kind = f" {event.kind}" if event.kind else ""
            return f"[drop]{kind} {event.reason}: {event.excerpt}"
        case CallbackFailed():
            return f"[callback] {event.kind} failed: {event.error}"
        case CacheInvalidated():
            return f"[invalidate] {event.key} ({event.source})"
        case BulkCompleted():
            return (
                f"[bulk] {event.label}: {event.succeeded}/{event.total} ok, "
                f"{event.failed} failed in {event.duration_ms:.0f}ms"
            )
        case ReorderRequested():
            status = "ok" if event.ok else f"failed: {event.error}"
            return f"[reorder] {event.group_id} {len(event.job_ids)} jobs {status}"
    return type(event).__name__
