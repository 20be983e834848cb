"""Connection manager — owns the single push channel.

States::

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED    -> RECONNECTING            (unexpected close or error)
    RECONNECTING -> CONNECTING              (after a fixed delay)
    any          -> DISCONNECTED            (explicit disconnect())

Only this module touches the socket.  Other components see two things: the
``send`` capability and the handlers passed in at construction.  Every
opening attempt carries a generation number; ``disconnect()`` bumps it, so
a handshake that completes after teardown closes its socket instead of
becoming the live connection.  At most one reconnect timer exists at a time.

Transport failures never raise to callers.  They only move the state machine
and are recorded on the collector.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

if TYPE_CHECKING:
    from queuewire._types import Frame
    from queuewire.api.client import ApiClient
    from queuewire.observability.collector import SyncCollector

DEFAULT_RECONNECT_DELAY = 3.0

_TRANSPORT_ERRORS = (OSError, TimeoutError, WebSocketException)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class Socket(Protocol):
    """The part of a websocket connection the manager uses."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


type Connector = Callable[[str], Awaitable[Socket]]


async def websocket_connector(url: str) -> Socket:
    """Open a websocket with the ``websockets`` asyncio client."""
    return await ws_connect(url)


@dataclass(frozen=True, slots=True)
class ConnectionHandlers:
    """What the manager calls as the connection lives.

    Attributes:
        on_open: Called right after reaching CONNECTED (replay subscriptions).
        on_frame: Called with every inbound frame.
        on_state: Called on every state transition.

    """

    on_open: Callable[[], object] | None = None
    on_frame: Callable[[str | bytes], object] | None = None
    on_state: Callable[[ConnectionState], object] | None = None


class ConnectionManager:
    """Connect, reconnect and disconnect the push channel.

    Args:
        api: Resolves the channel URL (with a fresh token) on every attempt.
        handlers: Open/frame/state handlers.
        reconnect_delay: Fixed delay before reconnecting, in seconds.
        connector: Opens a socket for a URL. Defaults to ``websocket_connector``.
        on_rejected: Called when the server refuses the handshake with
            401/403, after the manager has disconnected itself.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        api: ApiClient,
        handlers: ConnectionHandlers | None = None,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connector: Connector | None = None,
        on_rejected: Callable[[], object] | None = None,
        collector: SyncCollector | None = None,
    ) -> None:
        self._api = api
        self._handlers = handlers or ConnectionHandlers()
        self._reconnect_delay = reconnect_delay
        self._connector = connector or websocket_connector
        self._on_rejected = on_rejected
        self._collector = collector

        self._state = ConnectionState.DISCONNECTED
        self._attempt = 0
        self._disconnect_requested = False
        self._socket: Socket | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._open_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._closing: set[asyncio.Task[None]] = set()

    # ----- Introspection -----

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect timer is currently scheduled."""
        return self._reconnect_handle is not None

    @property
    def reconnect_delay(self) -> float:
        return self._reconnect_delay

    # ----- Public operations -----

    def connect(self) -> asyncio.Task[None] | None:
        """Start one opening attempt.

        Returns the opening task, or None when nothing was started: no token
        is available, or the manager is already connecting or connected.

        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return None

        url = self._api.websocket_url()
        if url is None:
            if self._state is ConnectionState.RECONNECTING:
                self._transition(ConnectionState.DISCONNECTED, "no token")
            return None

        self._cancel_reconnect()
        self._disconnect_requested = False
        self._attempt += 1
        self._transition(ConnectionState.CONNECTING, "connect")

        task = asyncio.get_running_loop().create_task(self._open(url, self._attempt))
        self._open_task = task
        return task

    def disconnect(self) -> None:
        """Tear down the channel and stop reconnecting. Safe to call repeatedly."""
        self._disconnect_requested = True
        self._attempt += 1
        self._cancel_reconnect()
        self._release_socket(cancel_reader=True)
        self._transition(ConnectionState.DISCONNECTED, "disconnect")

    def send(self, frame: Frame) -> bool:
        """Queue a frame on the live connection. False when not connected."""
        if self._state is not ConnectionState.CONNECTED or self._outbox is None:
            return False
        self._outbox.put_nowait(json.dumps(frame))
        return True

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the socket."""
        outbox = self._outbox
        if outbox is not None:
            await outbox.join()

    async def aclose(self) -> None:
        """Disconnect and wait for sockets to finish closing."""
        self.disconnect()
        open_task = self._open_task
        if open_task is not None and not open_task.done():
            open_task.cancel()
            await asyncio.gather(open_task, return_exceptions=True)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)

    # ----- Attempt lifecycle -----

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt and not self._disconnect_requested

    async def _open(self, url: str, attempt: int) -> None:
        try:
            socket = await self._connector(url)
        except _TRANSPORT_ERRORS as exc:
            if not self._is_current(attempt):
                return
            if _rejected_status(exc) in (401, 403):
                self.disconnect()
                if self._on_rejected is not None:
                    self._on_rejected()
                return
            self._connection_lost(f"connect failed: {exc}")
            return

        if not self._is_current(attempt):
            # Torn down while the handshake was in flight.
            self._close_in_background(socket)
            return

        loop = asyncio.get_running_loop()
        self._socket = socket
        self._outbox = asyncio.Queue()
        self._writer_task = loop.create_task(self._write_loop(socket, self._outbox))
        self._reader_task = loop.create_task(self._read_loop(socket, attempt))
        self._transition(ConnectionState.CONNECTED, "opened")

        if self._handlers.on_open is not None:
            self._handlers.on_open()

    async def _read_loop(self, socket: Socket, attempt: int) -> None:
        reason = "closed"
        try:
            async for message in socket:
                if self._handlers.on_frame is not None:
                    self._deliver(message)
        except ConnectionClosed as exc:
            reason = f"closed: {exc}"
        except OSError as exc:
            reason = f"error: {exc}"

        if self._is_current(attempt):
            self._reader_task = None
            self._connection_lost(reason)

    def _deliver(self, message: str | bytes) -> None:
        """Hand one frame to ``on_frame``; a raising handler never stops the reader."""
        try:
            self._handlers.on_frame(message)  # type: ignore[misc]
        except Exception as exc:
            if self._collector is not None:
                self._collector.record_callback_failed("frame", exc)
            else:
                print(f"  Frame handler error: {exc}", file=sys.stderr)

    async def _write_loop(self, socket: Socket, outbox: asyncio.Queue[str]) -> None:
        while True:
            message = await outbox.get()
            try:
                await socket.send(message)
            except (ConnectionClosed, OSError):
                # The reader observes the loss; queued frames are replayed on reconnect.
                _drain(outbox)
                return
            finally:
                outbox.task_done()

    def _connection_lost(self, reason: str) -> None:
        self._release_socket(cancel_reader=False)
        self._transition(ConnectionState.RECONNECTING, reason)
        self._schedule_reconnect()

    # ----- Reconnect timer -----

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self._reconnect_delay, self._on_reconnect_timer)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self._disconnect_requested:
            return
        self.connect()

    # ----- Socket ownership -----

    def _release_socket(self, *, cancel_reader: bool) -> None:
        if self._writer_task is not None:
            self._writer_task.cancel()
            self._writer_task = None
        if self._outbox is not None:
            _drain(self._outbox)
            self._outbox = None
        if cancel_reader and self._reader_task is not None:
            self._reader_task.cancel()
            self._reader_task = None
        socket, self._socket = self._socket, None
        if socket is not None:
            self._close_in_background(socket)

    def _close_in_background(self, socket: Socket) -> None:
        task = asyncio.get_running_loop().create_task(_close_quietly(socket))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def _transition(self, new: ConnectionState, reason: str) -> None:
        previous = self._state
        if previous is new:
            return
        self._state = new
        if self._collector is not None:
            self._collector.record_transition(previous.value, new.value, reason=reason)
        if self._handlers.on_state is not None:
            self._handlers.on_state(new)


async def _close_quietly(socket: Socket) -> None:
    try:
        await socket.close()
    except _TRANSPORT_ERRORS:
        # Already gone; nothing left to release.
        return


def _drain(outbox: asyncio.Queue[str]) -> None:
    """Discard queued frames, keeping ``join()`` waiters from hanging."""
    while True:
        try:
            outbox.get_nowait()
        except asyncio.QueueEmpty:
            return
        outbox.task_done()


def _rejected_status(exc: BaseException) -> int | None:
    """HTTP status of a refused handshake, if the error carries one."""
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None
