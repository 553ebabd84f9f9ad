"""Real-time delivery of notifications over websockets.

Wire format: every frame is a JSON object ``{"event": <name>, "data": <payload>}``.

Client to server:
- ``authenticate`` with the user id as data

Server to client:
- ``authenticated`` / ``authentication_error``
- ``notification`` with the full ``NotificationRecord``
- ``notification_read`` with the notification id
- ``notifications_read_all`` without data

``ConnectionHub`` maps user ids to their live ``ChannelSession`` objects. A
session owns an outbound queue drained by a single writer task, so frames
published for a user reach each of that user's sockets in publish order
even when several publishers are active between awaits. The queue is
bounded; a client that stops reading is disconnected instead of letting its
backlog grow without limit.
"""

import asyncio
import contextlib
from collections import defaultdict
from enum import StrEnum
from functools import lru_cache
from typing import Any, Protocol

import orjson
from fastapi import WebSocketDisconnect
from loguru import logger

from src.core.config import get_settings
from src.core.exceptions import ValidationError
from src.notifications.schemas import NotificationRecord


class ChannelEvent(StrEnum):
    """Event names carried in channel frames."""

    AUTHENTICATE = "authenticate"
    AUTHENTICATED = "authenticated"
    AUTHENTICATION_ERROR = "authentication_error"
    NOTIFICATION = "notification"
    NOTIFICATION_READ = "notification_read"
    NOTIFICATIONS_READ_ALL = "notifications_read_all"


def encode_frame(event: ChannelEvent | str, data: Any = None) -> str:  # noqa: ANN401 - any JSON payload
    """Serialize one channel frame."""
    return orjson.dumps({"event": str(event), "data": data}).decode()


def decode_frame(raw: str | bytes) -> tuple[str, Any]:
    """Parse one channel frame.

    Returns:
        tuple[str, Any]: The event name and its data.

    Raises:
        ValidationError: If the frame is not a JSON object with a string
            ``event`` member.
    """
    try:
        frame = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ValidationError("Channel frame is not valid JSON", cause=e) from e

    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise ValidationError(
            "Channel frame must be an object with an 'event' field",
            context={"frame_type": type(frame).__name__},
        )
    return frame["event"], frame.get("data")


class WebSocketConnection(Protocol):
    """The part of ``fastapi.WebSocket`` the hub relies on."""

    async def send_text(self, data: str) -> None:
        """Send one text frame."""
        ...

    async def receive_text(self) -> str:
        """Wait for the next text frame."""
        ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        """Close the connection."""
        ...


class ChannelSession:
    """One connected socket and its ordered outbound queue.

    Args:
        websocket: The accepted connection.
        max_queued: Frames that may wait for the writer before the session
            is considered stuck and closed.
    """

    def __init__(self, websocket: WebSocketConnection, *, max_queued: int = 256) -> None:
        self.websocket = websocket
        self.user_id: str | None = None
        self.overflowed = False
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=max_queued)
        self._writer: asyncio.Task[None] | None = None
        self._closer: asyncio.Task[None] | None = None

    @property
    def authenticated(self) -> bool:
        """Whether the client has sent a valid ``authenticate`` frame."""
        return self.user_id is not None

    def start(self) -> None:
        """Start the writer task draining the outbound queue."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name="channel-writer")

    def send(self, event: ChannelEvent, data: Any = None) -> bool:  # noqa: ANN401 - any JSON payload
        """Queue a frame for delivery after every frame queued before it.

        When the queue is full the frame is dropped and the connection is
        closed with code 1013 so the client reconnects and resynchronizes.

        Returns:
            bool: False if the frame was not queued.
        """
        if self.overflowed:
            return False
        try:
            self._outbox.put_nowait(encode_frame(event, data))
        except asyncio.QueueFull:
            self.overflowed = True
            logger.warning(
                "Channel outbox full with {} frames, closing connection",
                self._outbox.qsize(),
                user_id=self.user_id,
            )
            self._closer = asyncio.create_task(
                self._close_overflowed(), name="channel-overflow-close"
            )
            return False
        return True

    async def flush(self) -> None:
        """Wait until every queued frame has been written."""
        await self._outbox.join()

    async def close(self) -> None:
        """Stop the writer task. Frames still queued are dropped."""
        if self._writer is None:
            return
        self._writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._writer
        self._writer = None

    async def _close_overflowed(self) -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
            await self.websocket.close(code=1013, reason="Outbound queue full")

    async def _drain(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self.websocket.send_text(frame)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug(
                    "Dropping frame for closed channel: {}",
                    type(e).__name__,
                    user_id=self.user_id,
                )
            finally:
                self._outbox.task_done()


class ConnectionHub:
    """Process-wide registry of authenticated channel sessions by user.

    Args:
        max_queued_frames: Outbox bound of every served session. Defaults to
            ``channel_config.max_queued_frames``.
    """

    def __init__(self, max_queued_frames: int | None = None) -> None:
        self._sessions: defaultdict[str, set[ChannelSession]] = defaultdict(set)
        self.max_queued_frames = (
            max_queued_frames
            if max_queued_frames is not None
            else get_settings().channel_config.max_queued_frames
        )

    def connection_count(self, user_id: str | None = None) -> int:
        """Number of authenticated sessions, for one user or overall."""
        if user_id is not None:
            return len(self._sessions.get(user_id, ()))
        return sum(len(sessions) for sessions in self._sessions.values())

    def register(self, session: ChannelSession, user_id: str) -> None:
        """Associate ``session`` with ``user_id`` for targeted delivery."""
        if session.user_id is not None and session.user_id != user_id:
            self.unregister(session)
        session.user_id = user_id
        self._sessions[user_id].add(session)
        logger.info("Channel authenticated", user_id=user_id)

    def unregister(self, session: ChannelSession) -> None:
        """Forget ``session``; unknown sessions are ignored."""
        if session.user_id is None:
            return
        sessions = self._sessions.get(session.user_id)
        if sessions is not None:
            sessions.discard(session)
            if not sessions:
                del self._sessions[session.user_id]

    def _broadcast(self, user_id: str, event: ChannelEvent, data: Any = None) -> int:  # noqa: ANN401 - any JSON payload
        delivered = 0
        for session in list(self._sessions.get(user_id, ())):
            if session.send(event, data):
                delivered += 1
            else:
                self.unregister(session)
        return delivered

    def publish_notification(self, record: NotificationRecord) -> int:
        """Push a new notification to every session of its owner.

        Returns:
            int: Number of sessions the frame was queued for.
        """
        delivered = self._broadcast(
            record.user_id,
            ChannelEvent.NOTIFICATION,
            record.model_dump(mode="json", by_alias=True),
        )
        logger.debug(
            "Queued notification for {} sessions",
            delivered,
            user_id=record.user_id,
            notification_id=record.id,
        )
        return delivered

    def publish_read(self, user_id: str, notification_id: str) -> int:
        """Tell the user's sessions that one notification was read."""
        return self._broadcast(user_id, ChannelEvent.NOTIFICATION_READ, notification_id)

    def publish_read_all(self, user_id: str) -> int:
        """Tell the user's sessions that all notifications were read."""
        return self._broadcast(user_id, ChannelEvent.NOTIFICATIONS_READ_ALL)

    async def serve(self, websocket: WebSocketConnection) -> None:
        """Run one accepted connection until the client disconnects."""
        session = ChannelSession(websocket, max_queued=self.max_queued_frames)
        session.start()
        try:
            while True:
                raw = await websocket.receive_text()
                self._handle_frame(session, raw)
        except WebSocketDisconnect:
            logger.debug("Channel disconnected", user_id=session.user_id)
        finally:
            self.unregister(session)
            await session.close()

    def _handle_frame(self, session: ChannelSession, raw: str) -> None:
        try:
            event, data = decode_frame(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed channel frame: {}", e.message)
            return

        if event != ChannelEvent.AUTHENTICATE:
            logger.debug("Ignoring unsupported channel event {}", event)
            return

        if isinstance(data, str) and data.strip():
            self.register(session, data.strip())
            session.send(ChannelEvent.AUTHENTICATED, {"userId": session.user_id})
        else:
            session.send(
                ChannelEvent.AUTHENTICATION_ERROR, {"message": "A user id is required"}
            )


@lru_cache
def get_connection_hub() -> ConnectionHub:
    """Get the process-wide connection hub."""
    return ConnectionHub()
