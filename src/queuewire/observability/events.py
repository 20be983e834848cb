"""Unified event model for sync observability.

Defines event types for the push connection, the event dispatcher, and the
user-initiated bulk and reorder actions.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Push connection events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ConnectionTransition:
    """The connection state machine moved between states.

    Attributes:
        previous: State before the transition.
        current: State after the transition.
        reason: Short cause (``"opened"``, ``"closed"``, ``"disconnect"``, ...).
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    previous: str
    current: str
    reason: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class FrameSent:
    """An outbound subscribe/unsubscribe frame was queued on the socket."""

    kind: str
    group_id: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class FrameDropped:
    """An inbound frame was discarded without effect.

    Attributes:
        reason: Why the frame was dropped.
        kind: The frame's ``type`` tag when one could be read.
        excerpt: First characters of the raw frame, for diagnostics.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    reason: Literal["invalid_json", "not_object", "unknown_type", "missing_field"]
    kind: str
    excerpt: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CallbackFailed:
    """A user callback raised while handling an inbound event."""

    kind: str
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Cache events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CacheInvalidated:
    """A named read-path was marked stale.

    Attributes:
        key: The cache key, joined with ``:`` (e.g. ``queue:group-x``).
        source: What requested the invalidation.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    key: str
    source: Literal["push", "bulk", "reorder", "manual"]
    timestamp_ns: int


# ---------------------------------------------------------------------------
# User action events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BulkCompleted:
    """A bulk operation settled for every target.

    Attributes:
        label: Human label of the action (e.g. ``"Pausing jobs"``).
        group_id: Owning group.
        total: Number of targets.
        succeeded: Targets whose action resolved.
        failed: Targets whose action raised.
        duration_ms: Time from fan-out to full settlement.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    label: str
    group_id: str
    total: int
    succeeded: int
    failed: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ReorderRequested:
    """A queue reorder request was issued for a group."""

    group_id: str
    job_ids: tuple[str, ...]
    ok: bool
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type SyncEvent = (
    ConnectionTransition
    | FrameSent
    | FrameDropped
    | CallbackFailed
    | CacheInvalidated
    | BulkCompleted
    | ReorderRequested
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
