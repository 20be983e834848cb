"""Subscription registry — the desired set of push channels.

The registry's set is the only record of what the client wants to hear
about.  The wire state is always derivable by replaying it, which is what
the connection does every time it becomes ready.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from queuewire._types import Frame, GroupID
    from queuewire.observability.collector import SyncCollector


class FrameSink(Protocol):
    """The send capability the registry needs from the connection."""

    @property
    def is_connected(self) -> bool: ...

    def send(self, frame: Frame) -> bool: ...


def subscribe_frame(group_id: GroupID) -> Frame:
    return {"type": "subscribe", "group_id": group_id}


def unsubscribe_frame(group_id: GroupID) -> Frame:
    return {"type": "unsubscribe", "group_id": group_id}


class SubscriptionRegistry:
    """Tracks channel interest and replays it after reconnects.

    Views call ``add`` when they start showing a group and ``remove`` when
    they stop.  The set survives disconnects untouched.

    Args:
        sink: Where frames go. Usually the ConnectionManager; may be bound
            later with ``bind`` since the connection is built after the
            registry it replays.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        sink: FrameSink | None = None,
        *,
        collector: SyncCollector | None = None,
    ) -> None:
        self._sink = sink
        self._collector = collector
        self._channels: set[GroupID] = set()

    def bind(self, sink: FrameSink) -> None:
        self._sink = sink

    @property
    def channels(self) -> frozenset[GroupID]:
        """Snapshot of the desired channels."""
        return frozenset(self._channels)

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def add(self, group_id: GroupID) -> None:
        """Want events for ``group_id``. Idempotent."""
        if group_id in self._channels:
            return
        self._channels.add(group_id)
        self._send_if_connected(subscribe_frame(group_id))

    def remove(self, group_id: GroupID) -> None:
        """Stop wanting events for ``group_id``. Idempotent."""
        if group_id not in self._channels:
            return
        self._channels.discard(group_id)
        self._send_if_connected(unsubscribe_frame(group_id))

    def replay_all(self) -> int:
        """Send one subscribe frame per desired channel. Returns frames sent."""
        count = 0
        for group_id in sorted(self._channels):
            if self._send_if_connected(subscribe_frame(group_id)):
                count += 1
        return count

    def _send_if_connected(self, frame: Frame) -> bool:
        sink = self._sink
        if sink is None or not sink.is_connected:
            return False
        if not sink.send(frame):
            return False
        if self._collector is not None:
            self._collector.record_frame_sent(frame["type"], frame["group_id"])
        return True
