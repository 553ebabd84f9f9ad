"""Notification persistence.

Every query except the retention sweep is scoped to one user; a user can
never read, mark or delete someone else's notification through this
repository.
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from src.infrastructure.database.repository import BaseRepository
from src.notifications.models import Notification, NotificationType


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notification records."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Notification)

    def savepoint(self) -> AsyncSessionTransaction:
        """Open a SAVEPOINT so a failed insert leaves the outer transaction usable.

        Example:
            async with repository.savepoint():
                await repository.create(notification)
        """
        return self.session.begin_nested()

    async def commit(self) -> None:
        """Commit the session's transaction.

        Channel events describing a change are published only after this
        returns, so no client hears about a row that is later rolled back.
        """
        await self.session.commit()

    async def list_for_user(
        self,
        user_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Return one page of a user's notifications, newest first."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = (
            stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str, *, unread_only: bool = False) -> int:
        """Count a user's notifications, optionally only the unread ones."""
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.read.is_(False))
        return await self.count(*conditions)

    async def count_by_type(self, user_id: str) -> dict[NotificationType, int]:
        """Count a user's notifications grouped by type."""
        stmt = (
            select(Notification.type, func.count())
            .where(Notification.user_id == user_id)
            .group_by(Notification.type)
        )
        result = await self.session.execute(stmt)
        return {row[0]: row[1] for row in result.all()}

    async def get_for_user(
        self, user_id: str, notification_id: str
    ) -> Notification | None:
        """Return the notification if it exists and belongs to ``user_id``."""
        stmt = select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_read(self, user_id: str, notification_id: str) -> Notification | None:
        """Set ``read`` on one notification.

        Marking an already read notification is a no-op that still returns it.

        Returns:
            Notification | None: The notification, or None if not found.
        """
        notification = await self.get_for_user(user_id, notification_id)
        if notification is None:
            return None

        if not notification.read:
            notification.read = True
            await self.session.flush()
            await self.session.refresh(notification)
            logger.info(
                "Notification marked as read",
                notification_id=notification_id,
                user_id=user_id,
            )
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of ``user_id`` as read.

        Returns:
            int: Number of notifications that changed.
        """
        updated = await self.update_many(
            {"read": True, "updated_at": func.now()},
            Notification.user_id == user_id,
            Notification.read.is_(False),
        )
        logger.info("Marked {} notifications as read", updated, user_id=user_id)
        return updated

    async def delete_for_user(self, user_id: str, notification_id: str) -> bool:
        """Delete one of the user's notifications.

        Returns:
            bool: False if it did not exist or belongs to another user.
        """
        return (
            await self.delete_many(
                Notification.id == notification_id, Notification.user_id == user_id
            )
            > 0
        )

    async def delete_read_older_than(self, cutoff: datetime) -> int:
        """Delete read notifications created before ``cutoff``.

        Unread notifications are kept regardless of age.
        """
        return await self.delete_many(
            Notification.read.is_(True), Notification.created_at < cutoff
        )
