"""Live layer — push connection, subscriptions, and event dispatch.

Connects the server's push channel to cache invalidation through the
connection state machine, the subscription registry, and the dispatcher.
"""

from queuewire.live.connection import ConnectionHandlers, ConnectionManager, ConnectionState
from queuewire.live.dispatcher import INVALIDATION_TARGETS, EventCallbacks, EventDispatcher
from queuewire.live.events import parse_frame
from queuewire.live.subscriptions import SubscriptionRegistry

__all__ = [
    "INVALIDATION_TARGETS",
    "ConnectionHandlers",
    "ConnectionManager",
    "ConnectionState",
    "EventCallbacks",
    "EventDispatcher",
    "SubscriptionRegistry",
    "parse_frame",
]
