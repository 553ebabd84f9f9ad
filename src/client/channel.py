"""Client side of the real-time delivery channel.

``ClientChannel`` keeps one websocket to the server for a signed-in user:

- connects with a timeout and sends ``authenticate`` on every (re)connect
- dispatches server events to registered handlers
- reconnects after a drop with linear backoff (``delay * attempt``) for a
  bounded number of attempts, then stays disconnected until ``reconnect()``

Failures never propagate to the application. The last one is stored in
``error`` and connection state changes are reported to subscribers, which
is how ``DeliveryCoordinator`` switches between push and polling.
"""

import asyncio
import contextlib
import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Protocol

from loguru import logger
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from src.core.config import ChannelConfig, get_settings
from src.core.exceptions import ChannelError, ValidationError
from src.notifications.delivery import ChannelEvent, decode_frame, encode_frame

type EventHandler = Callable[[Any], Awaitable[None] | None]
type StateListener = Callable[[bool], None]


class ChannelConnection(Protocol):
    """The part of a websockets client connection the channel uses."""

    async def send(self, message: str) -> None:
        """Send one text frame."""
        ...

    async def recv(self) -> str | bytes:
        """Wait for the next frame."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...


type Connector = Callable[[str], Awaitable[ChannelConnection]]


async def websockets_connector(url: str) -> ChannelConnection:
    """Open a websocket with the ``websockets`` library."""
    return await connect(url, open_timeout=None)


class ChannelState(StrEnum):
    """Connection state of a ``ClientChannel``."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    GAVE_UP = "gave_up"


class ClientChannel:
    """Auto-reconnecting websocket channel for one user.

    Args:
        user_id: Identity sent in the ``authenticate`` frame.
        config: Channel settings. Defaults to the application settings.
        url: Websocket URL. Defaults to ``client_config.websocket_url``.
        connector: Opens a connection to a URL.
        sleep: Awaitable delay used between reconnection attempts.
    """

    def __init__(
        self,
        user_id: str,
        config: ChannelConfig | None = None,
        *,
        url: str | None = None,
        connector: Connector = websockets_connector,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.user_id = user_id
        self.config = config or settings.channel_config
        self.url = url or settings.client_config.websocket_url
        self._connector = connector
        self._sleep = sleep

        self.state = ChannelState.DISCONNECTED
        self.error: ChannelError | None = None
        self.failed_attempts = 0

        self._handlers: defaultdict[str, list[EventHandler]] = defaultdict(list)
        self._listeners: list[StateListener] = []
        self._connection: ChannelConnection | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        """Whether the socket is open."""
        return self.state is ChannelState.CONNECTED

    def on(self, event: ChannelEvent | str, handler: EventHandler) -> None:
        """Register a handler for a server event. Coroutine handlers are awaited."""
        self._handlers[str(event)].append(handler)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback receiving ``connected`` on every state change.

        Returns:
            Callable[[], None]: Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def connect(self) -> None:
        """Start the connection loop in the background. No-op while running."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="notification-channel")

    async def reconnect(self) -> None:
        """Reset the retry budget and connect again, e.g. after giving up."""
        await self.disconnect()
        self.error = None
        self.failed_attempts = 0
        self.connect()

    async def disconnect(self) -> None:
        """Close the socket and stop reconnecting."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._close_connection()
        self._set_state(ChannelState.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Wait until the connection loop ends (gave up or disconnected)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def _set_state(self, state: ChannelState) -> None:
        was_connected = self.connected
        self.state = state
        if was_connected != self.connected:
            for listener in list(self._listeners):
                listener(self.connected)

    def _record_error(self, message: str, cause: Exception | None = None) -> None:
        self.error = ChannelError(message, context={"url": self.url}, cause=cause)
        logger.warning("Notification channel: {}", message, user_id=self.user_id)

    async def _run(self) -> None:
        while True:
            self._set_state(ChannelState.CONNECTING)
            try:
                async with asyncio.timeout(self.config.connection_timeout_seconds):
                    self._connection = await self._connector(self.url)
            except (OSError, TimeoutError, WebSocketException) as e:
                self._record_error(f"Connection failed: {type(e).__name__}", e)
            else:
                self.failed_attempts = 0
                self.error = None
                await self._session(self._connection)

            self.failed_attempts += 1
            if self.failed_attempts > self.config.reconnection_attempts:
                self._set_state(ChannelState.GAVE_UP)
                logger.warning(
                    "Notification channel gave up after {} attempts",
                    self.config.reconnection_attempts,
                    user_id=self.user_id,
                )
                return

            self._set_state(ChannelState.DISCONNECTED)
            await self._sleep(self.config.reconnection_delay_seconds * self.failed_attempts)

    async def _session(self, connection: ChannelConnection) -> None:
        self._set_state(ChannelState.CONNECTED)
        logger.info("Notification channel connected", user_id=self.user_id)
        try:
            await connection.send(encode_frame(ChannelEvent.AUTHENTICATE, self.user_id))
            while True:
                await self._dispatch(await connection.recv())
        except ConnectionClosed as e:
            self._record_error("Connection closed", e)
        except (OSError, WebSocketException) as e:
            self._record_error(f"Connection lost: {type(e).__name__}", e)
        finally:
            await self._close_connection()

    async def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        with contextlib.suppress(OSError, WebSocketException):
            await connection.close()

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            event, data = decode_frame(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed channel frame: {}", e.message)
            return

        if event == ChannelEvent.AUTHENTICATION_ERROR:
            self._record_error("Authentication rejected by server")
        elif event == ChannelEvent.AUTHENTICATED:
            logger.debug("Notification channel authenticated", user_id=self.user_id)

        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Channel handler for {} failed", event)
