"""queuewire — live-state synchronization for a job-queue dashboard client.

Keeps a client's view of groups, queued and running jobs, and runners
consistent with the queue server over one persistent push channel plus
ordinary REST calls.  Push events never carry state into the client; they
mark cached read-paths stale, and the read-paths refetch.

Quick start::

    import queuewire

    async with queuewire.LiveSync.from_root(".", token="...") as sync:
        sync.watch("group-1")
        jobs = await sync.load(queuewire.queue_key("group-1"))

Layers:

    api             REST client + session (httpx)
    live            push connection, subscriptions, dispatch (websockets)
    cache           QueryCache, the single invalidation surface
    actions         bulk operations + optimistic reorder
    observability   EventLog + SyncCollector

"""

__version__ = "0.1.0"
__all__ = [
    "ApiClient",
    "ConnectionState",
    "LiveSync",
    "QueryCache",
    "Session",
    "SyncConfig",
    "__version__",
    "load_config",
    "queue_key",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import queuewire`` fast; websockets and httpx load on first use.
    """
    if name == "SyncConfig":
        from queuewire.config import SyncConfig

        return SyncConfig

    if name == "load_config":
        from queuewire.config_loader import load_config

        return load_config

    if name == "LiveSync":
        from queuewire.app import LiveSync

        return LiveSync

    if name == "ApiClient":
        from queuewire.api.client import ApiClient

        return ApiClient

    if name == "Session":
        from queuewire.api.session import Session

        return Session

    if name == "QueryCache":
        from queuewire.cache import QueryCache

        return QueryCache

    if name == "queue_key":
        from queuewire.cache import queue_key

        return queue_key

    if name == "ConnectionState":
        from queuewire.live.connection import ConnectionState

        return ConnectionState

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
