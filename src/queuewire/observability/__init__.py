"""Sync observability — one event model for connection, dispatch, and actions.

Aggregates events from:
- **Connection**: state transitions and outbound frames
- **Dispatcher**: dropped frames, failing callbacks
- **Cache**: invalidations from push events and user actions
- **Actions**: bulk settlement and reorder requests

All events are frozen dataclasses with nanosecond timestamps.

Quick Start:
    >>> from queuewire.observability import SyncCollector, EventLog
    >>> log = EventLog()
    >>> collector = SyncCollector(log, verbose=True)
    >>> # Pass collector to ConnectionManager, EventDispatcher, QueryCache, ...

"""

from queuewire.observability.collector import SyncCollector
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

__all__ = [
    "BulkCompleted",
    "CacheInvalidated",
    "CallbackFailed",
    "ConnectionTransition",
    "EventLog",
    "FrameDropped",
    "FrameSent",
    "ReorderRequested",
    "SyncCollector",
    "SyncEvent",
    "now_ns",
]
