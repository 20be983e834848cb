"""LiveSync — wires the session, REST client, cache, and push channel together.

Orchestrates:
1. Config loading (queuewire.yaml + overrides)
2. Session and REST client construction
3. Observability (EventLog + SyncCollector)
4. Live layer: SubscriptionRegistry -> ConnectionManager -> EventDispatcher
5. Action layer: BulkExecutor, ReorderReconciler, InteractionModes
6. Logout wiring: session expiry disconnects the push channel

Nothing here is a module-level singleton; every component is owned by one
``LiveSync`` and handed explicitly to the components that use it.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from queuewire.actions.bulk import BulkActions, BulkExecutor
from queuewire.actions.modes import InteractionModes
from queuewire.actions.reorder import ReorderReconciler
from queuewire.api.client import ApiClient
from queuewire.api.session import Session
from queuewire.cache import GROUPS_KEY, QueryCache, history_key, job_key, queue_key, runners_key
from queuewire.config_loader import load_config
from queuewire.live.connection import ConnectionHandlers, ConnectionManager, ConnectionState
from queuewire.live.dispatcher import EventCallbacks, EventDispatcher
from queuewire.live.subscriptions import SubscriptionRegistry
from queuewire.observability import EventLog, SyncCollector

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from queuewire._types import CacheKey
    from queuewire.actions.bulk import ProgressCallback
    from queuewire.config import SyncConfig
    from queuewire.live.connection import Connector


class LiveSync:
    """One client's live view of the queue server.

    Args:
        config: Client configuration.
        session: Token holder. Built from ``config.token_path`` when omitted.
        callbacks: Optional observers of inbound push events.
        on_state: Called on every connection state change.
        on_progress: Called as bulk operations settle.
        transport: httpx transport for the REST client (tests).
        connector: Socket factory for the push channel (tests).

    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        session: Session | None = None,
        callbacks: EventCallbacks | None = None,
        on_state: Callable[[ConnectionState], object] | None = None,
        on_progress: ProgressCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.config = config
        self.session = session or Session(token_path=config.token_path)

        self.event_log = EventLog(max_events=config.max_events)
        self.collector = SyncCollector(self.event_log, verbose=config.verbose)

        self.api = ApiClient(config, self.session, transport=transport)
        self.cache = QueryCache(self.collector)

        # The registry is built before the connection it replays through.
        self.subscriptions = SubscriptionRegistry(collector=self.collector)
        self.dispatcher = EventDispatcher(self.cache, callbacks, collector=self.collector)
        self.connection = ConnectionManager(
            self.api,
            ConnectionHandlers(
                on_open=self.subscriptions.replay_all,
                on_frame=self.dispatcher.handle_frame,
                on_state=on_state,
            ),
            reconnect_delay=config.reconnect_delay,
            connector=connector,
            on_rejected=self.session.expire,
            collector=self.collector,
        )
        self.subscriptions.bind(self.connection)
        self._remove_logout = self.session.on_logout(self.connection.disconnect)

        self.bulk = BulkActions(
            self.api,
            BulkExecutor(self.cache, on_progress=on_progress, collector=self.collector),
        )
        self.reorder = ReorderReconciler(self.api, self.cache, collector=self.collector)
        self.modes = InteractionModes()

    @classmethod
    def from_root(cls, root: str | Path = ".", **kwargs: Any) -> Self:
        """Build from ``root``'s config file, with ``kwargs`` overriding it.

        Keys that are not config fields (``session``, ``callbacks``, ...) are
        passed through to the constructor.
        """
        extras = {k: kwargs.pop(k) for k in _COMPONENT_KWARGS if k in kwargs}
        token = kwargs.pop("token", None)
        config = load_config(Path(root), **kwargs)
        if token and "session" not in extras:
            extras["session"] = Session(token, token_path=config.token_path)
        return cls(config, **extras)

    # ----- Push channel -----

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    def start(self) -> asyncio.Task[None] | None:
        """Open the push channel if a token is available."""
        return self.connection.connect()

    def stop(self) -> None:
        self.connection.disconnect()

    def watch(self, group_id: str) -> None:
        """Start receiving events for ``group_id`` and register its read-paths."""
        self.register_read_paths(group_id)
        self.subscriptions.add(group_id)

    def unwatch(self, group_id: str) -> None:
        self.subscriptions.remove(group_id)
        for key in (queue_key(group_id), history_key(group_id), runners_key(group_id)):
            self.cache.unregister(key)

    # ----- Read paths -----

    def register_read_paths(self, group_id: str) -> None:
        """Register the fetchers that refresh a group's cached views."""

        async def fetch_queue() -> object:
            return await self.api.get_queue(group_id)

        async def fetch_history() -> object:
            return await self.api.get_history(group_id)

        async def fetch_runners() -> object:
            return await self.api.get_runners(group_id)

        self.cache.register(queue_key(group_id), fetch_queue)
        self.cache.register(history_key(group_id), fetch_history)
        self.cache.register(runners_key(group_id), fetch_runners)
        self.cache.register(GROUPS_KEY, self.api.get_groups)

    def register_job(self, job_id: str) -> None:
        """Register the detail read-path for one job."""

        async def fetch_job() -> object:
            return await self.api.get_job(job_id)

        self.cache.register(job_key(job_id), fetch_job)

    async def load(self, key: CacheKey) -> Any:
        """Return cached data for ``key``, fetching it first when stale."""
        if self.cache.is_stale(key):
            return await self.cache.refetch(key)
        return self.cache.get(key)

    # ----- Lifecycle -----

    async def aclose(self) -> None:
        """Disconnect, let pending refetches finish, and close the HTTP client."""
        self._remove_logout()
        await self.connection.aclose()
        await self.cache.settle()
        await self.api.close()

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


_COMPONENT_KWARGS = (
    "session",
    "callbacks",
    "on_state",
    "on_progress",
    "transport",
    "connector",
)
