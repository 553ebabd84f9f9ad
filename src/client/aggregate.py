"""Client-side notification state kept consistent with the server.

``NotificationAggregate`` holds the current page of notifications, the
unread count and the pagination of the last fetch. It is updated from three
sources:

- list fetches, cached under the ``notifications`` key prefix
- local mutations (mark read, mark all read, delete), applied optimistically
  and then persisted through the API
- channel events (pushed notifications, reads from other sessions)

The unread count never drops below zero and is reset to the server's value
after every full fetch, which corrects any drift from optimistic updates.
Failed mutations are reported through ``UserFeedback`` and are not rolled
back; the next fetch reconciles local state.
"""

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from src.cache import keys
from src.cache.binding import CachedFetch
from src.cache.invalidation import CacheInvalidationPolicy
from src.cache.store import TTLCacheStore, get_app_cache
from src.client.api import NotificationApiClient
from src.client.channel import ClientChannel
from src.core.config import get_settings
from src.core.exceptions import ApiRequestError
from src.notifications.delivery import ChannelEvent
from src.notifications.schemas import NotificationPage, NotificationRecord, Pagination

type AggregateListener = Callable[["NotificationAggregate"], None]


class UserFeedback(Protocol):
    """Sink for user-visible confirmations and failures."""

    def success(self, message: str) -> None:
        """Report a completed action."""
        ...

    def error(self, message: str) -> None:
        """Report a failed action."""
        ...


class LoggingFeedback:
    """``UserFeedback`` that writes to the log."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.warning(message)


class NotificationAggregate:
    """List and unread-count state of the notification center.

    Args:
        api: HTTP access to the notification endpoints.
        store: Cache store. Defaults to the process-wide cache.
        feedback: Where confirmations and failures go.
        page_size: Page size of list fetches. Defaults to ``client_config.page_size``.
    """

    def __init__(
        self,
        api: NotificationApiClient,
        *,
        store: TTLCacheStore | None = None,
        feedback: UserFeedback | None = None,
        page_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.api = api
        self.store = store if store is not None else get_app_cache()
        self.invalidation = CacheInvalidationPolicy(self.store)
        self.feedback: UserFeedback = feedback or LoggingFeedback()

        self.page = 1
        self.limit = page_size or settings.client_config.page_size
        self.unread_only = False

        self.notifications: list[NotificationRecord] = []
        self.unread_count = 0
        self.pagination: Pagination | None = None
        self.error: str | None = None
        self._listeners: list[AggregateListener] = []

        self._query: CachedFetch[NotificationPage] = CachedFetch(
            key=self._cache_key,
            fetcher=self._fetch_page,
            ttl_minutes=keys.CacheTTL(settings.cache_config).notifications,
            store=self.store,
        )

    @property
    def loading(self) -> bool:
        """Whether a list fetch is in flight."""
        return self._query.loading

    def subscribe(self, listener: AggregateListener) -> Callable[[], None]:
        """Register a callback invoked after every state change.

        Returns:
            Callable[[], None]: Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _cache_key(self) -> str:
        return keys.notifications(
            {"page": self.page, "limit": self.limit, "unreadOnly": self.unread_only}
        )

    async def _fetch_page(self) -> NotificationPage:
        return await self.api.list_notifications(
            page=self.page, limit=self.limit, unread_only=self.unread_only
        )

    def _find(self, notification_id: str) -> int | None:
        return next(
            (i for i, n in enumerate(self.notifications) if n.id == notification_id),
            None,
        )

    def _decrement_unread(self) -> None:
        self.unread_count = max(0, self.unread_count - 1)

    # Fetching

    async def fetch_notifications(
        self, *, page: int | None = None, unread_only: bool | None = None
    ) -> bool:
        """Load a page, serving it from the cache when a valid entry exists.

        Args:
            page: Page to load. Keeps the current page if omitted.
            unread_only: Restrict to unread notifications. Keeps the current
                filter if omitted.

        Returns:
            bool: True if state was updated, False if the fetch failed.
        """
        if page is not None:
            self.page = page
        if unread_only is not None:
            self.unread_only = unread_only
        return await self._load(force=False)

    async def refresh_notifications(self) -> bool:
        """Reload the current page from the server, bypassing the cache."""
        return await self._load(force=True)

    async def _load(self, *, force: bool) -> bool:
        try:
            result = await (self._query.refetch() if force else self._query.fetch_cached())
        except ApiRequestError as e:
            self.error = e.message
            self.feedback.error(f"Failed to load notifications: {e.message}")
            self._notify()
            return False

        self.error = None
        self.notifications = list(result.data)
        self.unread_count = result.unread_count
        self.pagination = result.pagination
        self._notify()
        return True

    # Mutations

    async def mark_as_read(self, notification_id: str) -> bool:
        """Mark one notification read, locally first, then on the server.

        The unread count drops by one only if the notification was unread.

        Returns:
            bool: True if the server accepted the change.
        """
        index = self._find(notification_id)
        if index is not None and not self.notifications[index].read:
            self.notifications[index] = self.notifications[index].model_copy(
                update={"read": True}
            )
            self._decrement_unread()
            self._notify()

        try:
            await self.api.mark_as_read(notification_id)
        except ApiRequestError as e:
            self.feedback.error(f"Failed to mark notification as read: {e.message}")
            return False
        finally:
            self.invalidation.invalidate_notifications()

        self.feedback.success("Notification marked as read")
        return True

    async def mark_all_as_read(self) -> bool:
        """Mark every notification read on the server, then locally.

        Returns:
            bool: True if the server accepted the change.
        """
        try:
            updated = await self.api.mark_all_as_read()
        except ApiRequestError as e:
            self.feedback.error(f"Failed to mark all notifications as read: {e.message}")
            return False

        self._apply_all_read()
        self.invalidation.invalidate_notifications()
        self.feedback.success(f"{updated} notifications marked as read")
        return True

    async def delete_notification(self, notification_id: str) -> bool:
        """Remove one notification, locally first, then on the server.

        Returns:
            bool: True if the server accepted the deletion.
        """
        index = self._find(notification_id)
        if index is not None:
            removed = self.notifications.pop(index)
            if not removed.read:
                self._decrement_unread()
            if self.pagination is not None:
                self.pagination = self.pagination.model_copy(
                    update={"total": max(0, self.pagination.total - 1)}
                )
            self._notify()

        try:
            await self.api.delete_notification(notification_id)
        except ApiRequestError as e:
            self.feedback.error(f"Failed to delete notification: {e.message}")
            return False
        finally:
            self.invalidation.invalidate_notifications()

        self.feedback.success("Notification deleted")
        return True

    # Channel events

    def apply_pushed_notification(self, data: NotificationRecord | dict[str, Any]) -> bool:
        """Insert a pushed notification at the top of the list.

        A notification already present (e.g. delivered by a poll as well) is
        ignored. Caches made stale by the notification's type are evicted.

        Returns:
            bool: True if the notification was new.
        """
        try:
            record = (
                data
                if isinstance(data, NotificationRecord)
                else NotificationRecord.model_validate(data)
            )
        except PydanticValidationError:
            logger.warning("Ignoring malformed pushed notification")
            return False

        self.invalidation.invalidate_for_notification(record.type)
        if self._find(record.id) is not None:
            return False

        self.notifications.insert(0, record)
        if not record.read:
            self.unread_count += 1
        if self.pagination is not None:
            self.pagination = self.pagination.model_copy(
                update={"total": self.pagination.total + 1}
            )
        self._notify()
        return True

    def apply_remote_read(self, notification_id: str) -> None:
        """Apply a read made in another session of the same user."""
        self.invalidation.invalidate_notifications()
        index = self._find(notification_id)
        if index is None or self.notifications[index].read:
            return
        self.notifications[index] = self.notifications[index].model_copy(
            update={"read": True}
        )
        self._decrement_unread()
        self._notify()

    def apply_remote_read_all(self, _data: object = None) -> None:
        """Apply a mark-all-read made in another session of the same user."""
        self.invalidation.invalidate_notifications()
        self._apply_all_read()

    def _apply_all_read(self) -> None:
        self.notifications = [
            n if n.read else n.model_copy(update={"read": True})
            for n in self.notifications
        ]
        self.unread_count = 0
        self._notify()

    def bind_channel(self, channel: ClientChannel) -> None:
        """Route the channel's notification events to this aggregate."""
        channel.on(ChannelEvent.NOTIFICATION, self.apply_pushed_notification)
        channel.on(ChannelEvent.NOTIFICATION_READ, self.apply_remote_read)
        channel.on(ChannelEvent.NOTIFICATIONS_READ_ALL, self.apply_remote_read_all)


class UnreadCountTracker:
    """Unread badge state backed by a one-item unread-only list query.

    A push of an unread notification bumps the count locally, once per
    notification id, and evicts the cached notifications queries so the next
    fetch cannot restore an older count. Reads made elsewhere schedule a
    forced refresh, since only the server knows whether the notification was
    still unread. The refresh runs as a task so a slow request does not hold
    up the channel's later frames.

    Args:
        api: HTTP access to the notification endpoints.
        store: Cache store. Defaults to the process-wide cache.
    """

    def __init__(
        self, api: NotificationApiClient, *, store: TTLCacheStore | None = None
    ) -> None:
        self.api = api
        self.store = store if store is not None else get_app_cache()
        self.invalidation = CacheInvalidationPolicy(self.store)
        self.unread_count = 0
        self._seen: set[str] = set()
        self._stale = False
        self._refresh_task: asyncio.Task[None] | None = None
        self._query: CachedFetch[NotificationPage] = CachedFetch(
            key=keys.notifications({"page": 1, "limit": 1, "unreadOnly": True}),
            fetcher=lambda: self.api.list_notifications(page=1, limit=1, unread_only=True),
            ttl_minutes=keys.CacheTTL(get_settings().cache_config).notifications,
            store=self.store,
        )

    @property
    def error(self) -> str | None:
        """Message of the last failed refresh."""
        return self._query.error

    async def refresh(self, *, force: bool = False) -> int:
        """Load the server's unread count; keeps the old value on failure."""
        try:
            page = await (self._query.refetch() if force else self._query.fetch_cached())
        except ApiRequestError:
            return self.unread_count
        self.unread_count = page.unread_count
        return self.unread_count

    def apply_pushed_notification(self, data: dict[str, Any]) -> bool:
        """Count a pushed notification if it arrived unread and is new.

        Returns:
            bool: True if the count changed.
        """
        if not isinstance(data, dict):
            return False
        self.invalidation.invalidate_notifications()
        notification_id = data.get("id")
        if notification_id in self._seen:
            return False
        if isinstance(notification_id, str):
            self._seen.add(notification_id)
        if data.get("read", False):
            return False
        self.unread_count += 1
        return True

    def schedule_refresh(self, _data: object = None) -> None:
        """Refresh the count from the server in the background.

        Calls arriving while a refresh is in flight are coalesced into one
        more refresh after it.
        """
        self._stale = True
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(
                self._refresh_while_stale(), name="unread-count-refresh"
            )

    async def wait_refreshed(self) -> None:
        """Wait for a scheduled refresh to finish."""
        if self._refresh_task is not None:
            await asyncio.shield(self._refresh_task)

    async def aclose(self) -> None:
        """Cancel a scheduled refresh."""
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _refresh_while_stale(self) -> None:
        while self._stale:
            self._stale = False
            await self.refresh(force=True)

    def bind_channel(self, channel: ClientChannel) -> None:
        """Route the channel's notification events to this tracker."""
        channel.on(ChannelEvent.NOTIFICATION, self.apply_pushed_notification)
        channel.on(ChannelEvent.NOTIFICATION_READ, self.schedule_refresh)
        channel.on(ChannelEvent.NOTIFICATIONS_READ_ALL, self.schedule_refresh)
