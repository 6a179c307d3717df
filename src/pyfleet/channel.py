"""Push channel: one authenticated, auto-reconnecting Socket.IO connection per session.

The channel owns the connection lifecycle only. It converts named
Socket.IO events into typed events (see :mod:`pyfleet.ingestion.channel`)
and hands them to registered handlers; it never holds entity state.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from typing import Any, Protocol

import aiohttp
import socketio

from pyfleet.config import FleetConfig
from pyfleet.credentials import Credential
from pyfleet.ingestion.channel import parse_channel_event
from pyfleet.models._base import EntityId
from pyfleet.models.events import ChannelCommand, ChannelEvent, EventKind

_logger = logging.getLogger(__name__)


class ChannelState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"
    """Retry budget spent; stays here until ``connect()`` is called again."""
    CLOSED = "closed"


class SocketClient(Protocol):
    """The subset of :class:`socketio.AsyncClient` the channel uses."""

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...

    async def connect(
        self,
        url: str,
        *,
        auth: Mapping[str, Any],
        transports: list[str],
        wait_timeout: float,
    ) -> None: ...

    async def emit(self, event: str, data: Any = None) -> None: ...

    async def disconnect(self) -> None: ...


ClientFactory = Callable[[], SocketClient]
ChannelHandler = Callable[[Any], Any]


class PushChannel:
    """Persistent push connection with bounded reconnection.

    Usage::

        channel = PushChannel(config)
        channel.on(EventKind.LOCATION_UPDATE, handle_location)
        if await channel.connect(credential):
            await channel.subscribe_all()
        ...
        await channel.disconnect()

    Every connection attempt, including one that is accepted and then
    dropped before the server sends any event, counts against
    ``config.reconnection_attempts``. The budget is restored once a
    connection has delivered an event. Every redial waits for the
    backoff delay first. When the budget is spent the channel sits in
    :attr:`ChannelState.EXHAUSTED`; no exception ever reaches the caller
    or the event handlers.

    The Socket.IO client's own reconnection is disabled; this loop is
    the only retry policy.
    """

    def __init__(
        self,
        config: FleetConfig,
        *,
        client_factory: ClientFactory | None = None,
        session: aiohttp.ClientSession | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or self._default_client
        self._http_session = session
        self._sleep = sleep

        self._state = ChannelState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._client: SocketClient | None = None
        self._healthy = False
        self._closing = False
        self._attempts = 0

        self._handlers: dict[EventKind, list[ChannelHandler]] = {}
        self._state_listeners: list[Callable[[ChannelState], None]] = []
        self._handler_tasks: set[asyncio.Task[Any]] = set()

        # Desired subscriptions, replayed after every successful connect.
        self._subscribe_all = False
        self._vehicle_subscriptions: dict[EntityId, None] = {}
        self._announced: set[tuple[str, EntityId | None]] = set()

    def _default_client(self) -> SocketClient:
        kwargs: dict[str, Any] = {
            "reconnection": False,
            "logger": False,
            "engineio_logger": False,
            "handle_sigint": False,
        }
        if self._http_session is not None:
            kwargs["http_session"] = self._http_session
        return socketio.AsyncClient(**kwargs)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ChannelState.CONNECTED

    @property
    def attempts(self) -> int:
        """Connection attempts counted against the current retry budget."""
        return self._attempts

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def on(self, kind: EventKind, handler: ChannelHandler) -> None:
        """Register *handler* for *kind*. Handlers run in registration order."""
        self._handlers.setdefault(kind, []).append(handler)

    def off(self, kind: EventKind, handler: ChannelHandler) -> None:
        """Unregister *handler*; unknown handlers are ignored."""
        handlers = self._handlers.get(kind)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def on_state(self, listener: Callable[[ChannelState], None]) -> Callable[[], None]:
        """Register a connection-state listener; returns an unregister callable."""
        self._state_listeners.append(listener)

        def _remove() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, credential: Credential | str | None) -> bool:
        """Start the connection loop.

        Returns ``False`` without any network activity when no credential
        is available; the caller should then run in offline mode. Returns
        ``True`` once the background loop is running (or already was).
        """
        token = credential.access_token if isinstance(credential, Credential) else credential
        if not token:
            _logger.warning("No access token available; push channel stays offline")
            return False

        if self._task is not None and not self._task.done():
            return True

        self._closing = False
        self._attempts = 0
        self._task = asyncio.get_running_loop().create_task(self._run(token))
        return True

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting. Safe to call repeatedly."""
        self._closing = True
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._close_client()

        for pending in list(self._handler_tasks):
            pending.cancel()
        self._handler_tasks.clear()

        if self._state is not ChannelState.CLOSED:
            self._set_state(ChannelState.CLOSED)

    async def wait_closed(self) -> None:
        """Wait until the connection loop ends (exhaustion or disconnect)."""
        task = self._task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(task)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def subscribe_all(self) -> None:
        """Ask for events about every entity the server will push for this session."""
        self._subscribe_all = True
        await self._announce(ChannelCommand.SUBSCRIBE_ALL, None)

    async def subscribe_vehicle(self, vehicle_id: EntityId) -> None:
        self._vehicle_subscriptions[vehicle_id] = None
        await self._announce(ChannelCommand.SUBSCRIBE_VEHICLE, vehicle_id)

    async def unsubscribe_vehicle(self, vehicle_id: EntityId) -> None:
        self._vehicle_subscriptions.pop(vehicle_id, None)
        self._announced.discard((ChannelCommand.SUBSCRIBE_VEHICLE.value, vehicle_id))
        if self.is_connected:
            await self._send(ChannelCommand.UNSUBSCRIBE_VEHICLE, vehicle_id)

    async def _announce(self, command: ChannelCommand, arg: EntityId | None) -> None:
        key = (command.value, arg)
        if not self.is_connected or key in self._announced:
            return
        if await self._send(command, arg):
            self._announced.add(key)

    async def _send(self, command: ChannelCommand, arg: EntityId | None) -> bool:
        client = self._client
        if client is None:
            return False
        try:
            await client.emit(command.value, arg)
        except Exception:
            _logger.debug("Failed to send %s", command.value, exc_info=True)
            return False
        _logger.debug("Sent %s %s", command.value, "" if arg is None else arg)
        return True

    async def _replay_subscriptions(self) -> None:
        self._announced.clear()
        if self._subscribe_all:
            await self._announce(ChannelCommand.SUBSCRIBE_ALL, None)
        for vehicle_id in list(self._vehicle_subscriptions):
            await self._announce(ChannelCommand.SUBSCRIBE_VEHICLE, vehicle_id)

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    def _reconnect_delay(self, attempt: int) -> float:
        delay = self._config.reconnection_delay * (2 ** (max(attempt, 1) - 1))
        return min(delay, self._config.reconnection_delay_max)

    def _new_client(self, connection_lost: asyncio.Event) -> SocketClient:
        client = self._client_factory()
        for kind in EventKind:
            client.on(kind.value, self._wire_handler(kind.value))

        def _on_disconnect(*args: Any) -> None:
            _logger.debug("Push channel disconnected: %s", args[0] if args else "")
            connection_lost.set()

        client.on("disconnect", _on_disconnect)
        return client

    def _wire_handler(self, name: str) -> Callable[..., None]:
        def _handler(*args: Any) -> None:
            self._handle_event(name, args[0] if args else None)

        return _handler

    async def _back_off(self) -> bool:
        """Wait before the next attempt; ``False`` once the budget is spent."""
        limit = self._config.reconnection_attempts
        if self._attempts >= limit:
            _logger.warning("Push channel giving up after %d attempts", self._attempts)
            self._set_state(ChannelState.EXHAUSTED)
            return False
        self._set_state(ChannelState.RECONNECTING)
        await self._sleep(self._reconnect_delay(self._attempts))
        return True

    async def _run(self, token: str) -> None:
        limit = self._config.reconnection_attempts
        while not self._closing:
            self._attempts += 1
            if self._state is not ChannelState.RECONNECTING:
                self._set_state(ChannelState.CONNECTING)
            self._healthy = False
            connection_lost = asyncio.Event()
            client = self._new_client(connection_lost)
            try:
                await client.connect(
                    self._config.socket_url,
                    auth={"token": token},
                    transports=["websocket"],
                    wait_timeout=self._config.connect_timeout,
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                _logger.warning(
                    "Push channel connect attempt %d/%d failed: %s",
                    self._attempts,
                    limit,
                    exc,
                )
                with contextlib.suppress(Exception):
                    await client.disconnect()
                if not await self._back_off():
                    return
                continue

            self._client = client
            self._set_state(ChannelState.CONNECTED)
            _logger.info("Connected to push channel %s", self._config.socket_url)
            try:
                await self._replay_subscriptions()
                await connection_lost.wait()
            finally:
                await self._close_client()
            if self._closing:
                return
            if self._healthy:
                _logger.info("Push channel connection lost; reconnecting")
            else:
                _logger.warning(
                    "Push channel dropped before any event (attempt %d/%d)",
                    self._attempts,
                    limit,
                )
            if not await self._back_off():
                return

    async def _close_client(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception:
            _logger.debug("Push channel close failed", exc_info=True)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _handle_event(self, name: str, payload: Any) -> None:
        if not self._healthy:
            self._healthy = True
            self._attempts = 0
        event = parse_channel_event(name, payload)
        if event is None:
            return
        self.dispatch(event)

    def dispatch(self, event: ChannelEvent) -> None:
        """Deliver *event* to every handler registered for its kind."""
        for handler in list(self._handlers.get(event.kind, ())):
            try:
                result = handler(event)
            except Exception:
                _logger.exception("Handler for %s failed", event.kind.value)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._handler_tasks.add(task)
                task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Task[Any]) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Async channel handler failed", exc_info=exc)

    def _set_state(self, state: ChannelState) -> None:
        if state is self._state:
            return
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                _logger.exception("Channel state listener failed")
