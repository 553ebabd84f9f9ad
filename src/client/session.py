"""Wiring of the client-side notification stack for one signed-in user."""

from types import TracebackType
from typing import Self

import httpx
from loguru import logger

from src.cache.store import CacheCleanupTask, TTLCacheStore, get_app_cache
from src.client.aggregate import NotificationAggregate, UnreadCountTracker, UserFeedback
from src.client.api import NotificationApiClient
from src.client.channel import ClientChannel, Connector, websockets_connector
from src.client.delivery import DeliveryCoordinator, PollingStrategy
from src.core.config import Settings, get_settings


class NotificationClient:
    """Cache, API client, channel and consumers of one user session.

    ``start()`` launches the cache cleanup timer and the channel, starts
    each consumer's delivery coordinator and performs the initial fetches.
    ``close()`` tears everything down in reverse order.

    Args:
        user_id: The signed-in user.
        settings: Application settings. Defaults to ``get_settings()``.
        store: Cache store. Defaults to the process-wide cache.
        feedback: Sink for user-visible messages of the aggregate.
        transport: httpx transport for the API client.
        connector: Websocket connector for the channel.
    """

    def __init__(
        self,
        user_id: str,
        settings: Settings | None = None,
        *,
        store: TTLCacheStore | None = None,
        feedback: UserFeedback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        connector: Connector = websockets_connector,
    ) -> None:
        settings = settings or get_settings()
        channel_config = settings.channel_config

        self.user_id = user_id
        self.store = store if store is not None else get_app_cache()
        self.cleanup = CacheCleanupTask(
            self.store, settings.cache_config.cleanup_interval_seconds
        )
        self.api = NotificationApiClient(
            user_id, settings.client_config, transport=transport
        )
        self.channel = ClientChannel(
            user_id,
            channel_config,
            url=settings.client_config.websocket_url,
            connector=connector,
        )

        self.notifications = NotificationAggregate(
            self.api, store=self.store, feedback=feedback
        )
        self.unread = UnreadCountTracker(self.api, store=self.store)
        self.notifications.bind_channel(self.channel)
        self.unread.bind_channel(self.channel)

        self.list_delivery = DeliveryCoordinator(
            self.channel,
            PollingStrategy(
                "notification-list",
                self.notifications.refresh_notifications,
                channel_config.list_poll_interval_seconds,
            ),
        )
        self.unread_delivery = DeliveryCoordinator(
            self.channel,
            PollingStrategy(
                "unread-count",
                self._poll_unread,
                channel_config.unread_poll_interval_seconds,
            ),
        )

    async def _poll_unread(self) -> int:
        return await self.unread.refresh(force=True)

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def start(self) -> None:
        """Start background work and load the initial state."""
        self.cleanup.start()
        self.list_delivery.start()
        self.unread_delivery.start()
        self.channel.connect()
        await self.notifications.fetch_notifications()
        await self.unread.refresh()
        logger.info("Notification client started", user_id=self.user_id)

    async def close(self) -> None:
        """Stop background work and release connections."""
        await self.list_delivery.close()
        await self.unread_delivery.close()
        await self.channel.disconnect()
        await self.unread.aclose()
        await self.cleanup.stop()
        await self.api.aclose()
        logger.info("Notification client closed", user_id=self.user_id)
