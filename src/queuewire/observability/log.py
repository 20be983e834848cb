"""Event log — queryable, thread-safe event store.

Stores a bounded ring buffer of ``SyncEvent`` objects for inspection.
Supports querying by event type, time range, and group.

Thread Safety:
    All methods are protected by a ``threading.Lock``.

"""

import threading
from collections import deque
from typing import Any

from queuewire.observability.events import SyncEvent


class EventLog:
    """Bounded event store with query support.

    When the buffer is full, the oldest events are discarded automatically.

    Args:
        max_events: Maximum number of events to retain.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[SyncEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: SyncEvent) -> None:
        """Record an event in the log."""
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        group_id: str | None = None,
        limit: int = 100,
    ) -> list[SyncEvent]:
        """Query events with optional filters.

        Args:
            event_type: Only return events of this type.
            since_ns: Only return events after this timestamp (nanoseconds).
            group_id: Only return events about this group. Cache events
                match when their key names the group.
            limit: Maximum number of events to return.

        Returns:
            List of matching events, most recent first.

        """
        with self._lock:
            results: list[SyncEvent] = []
            for event in reversed(self._events):
                if len(results) >= limit:
                    break

                if event_type is not None and not isinstance(event, event_type):
                    continue

                if since_ns and event.timestamp_ns < since_ns:
                    continue

                if group_id is not None and _event_group(event) != group_id:
                    continue

                results.append(event)

            return results

    def recent(self, n: int = 20) -> list[SyncEvent]:
        """Return the N most recent events, oldest first."""
        with self._lock:
            items = list(self._events)
        return items[-n:]

    def clear(self) -> int:
        """Clear all events and return the count that was cleared."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> dict[str, Any]:
        """Return summary statistics about stored events."""
        with self._lock:
            events = list(self._events)

        type_counts: dict[str, int] = {}
        for event in events:
            name = type(event).__name__
            type_counts[name] = type_counts.get(name, 0) + 1

        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": type_counts,
        }


def _event_group(event: SyncEvent) -> str | None:
    group = getattr(event, "group_id", None)
    if group is not None:
        return group
    key = getattr(event, "key", None)
    if key is not None:
        scope, _, rest = key.partition(":")
        if scope in _GROUP_SCOPED and rest:
            return rest
    return None


# Cache key scopes whose second element is a group ID
_GROUP_SCOPED = frozenset({"queue", "history", "runners"})
