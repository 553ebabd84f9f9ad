"""Notification endpoints of the signed-in user."""

import math
from typing import Annotated

from fastapi import APIRouter, Query
from loguru import logger

from src.api.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, NOTIFICATIONS_PREFIX
from src.api.dependencies import CurrentUserId, Hub, NotificationRepo
from src.core.exceptions import NotFoundError
from src.notifications.schemas import (
    DeleteResult,
    MarkAllReadResult,
    NotificationEnvelope,
    NotificationPage,
    NotificationRecord,
    NotificationStats,
    NotificationStatsEnvelope,
    NotificationUpdate,
    Pagination,
)

router = APIRouter(prefix=NOTIFICATIONS_PREFIX, tags=["notifications"])


def _not_found(notification_id: str) -> NotFoundError:
    return NotFoundError(
        "Notification not found", context={"notification_id": notification_id}
    )


@router.get("", response_model=NotificationPage)
async def list_notifications(
    user_id: CurrentUserId,
    repository: NotificationRepo,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
) -> NotificationPage:
    """List the user's notifications, newest first.

    ``unreadCount`` always counts all unread notifications of the user,
    independent of ``unreadOnly`` and paging.
    """
    notifications = await repository.list_for_user(
        user_id, page=page, limit=limit, unread_only=unread_only
    )
    total = await repository.count_for_user(user_id, unread_only=unread_only)
    unread_count = await repository.count_for_user(user_id, unread_only=True)

    return NotificationPage(
        data=[NotificationRecord.model_validate(n) for n in notifications],
        unread_count=unread_count,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.get("/stats", response_model=NotificationStatsEnvelope)
async def notification_stats(
    user_id: CurrentUserId, repository: NotificationRepo
) -> NotificationStatsEnvelope:
    """Count the user's notifications by read state and by type."""
    total = await repository.count_for_user(user_id)
    unread = await repository.count_for_user(user_id, unread_only=True)
    by_type = await repository.count_by_type(user_id)
    return NotificationStatsEnvelope(
        data=NotificationStats(
            total=total, unread=unread, read=total - unread, by_type=by_type
        )
    )


@router.patch("/mark-all-read", response_model=MarkAllReadResult)
async def mark_all_read(
    user_id: CurrentUserId, repository: NotificationRepo, hub: Hub
) -> MarkAllReadResult:
    """Mark every unread notification of the user as read."""
    updated = await repository.mark_all_read(user_id)
    await repository.commit()
    hub.publish_read_all(user_id)
    return MarkAllReadResult(updated_count=updated)


@router.get("/{notification_id}", response_model=NotificationEnvelope)
async def get_notification(
    notification_id: str, user_id: CurrentUserId, repository: NotificationRepo
) -> NotificationEnvelope:
    """Return one of the user's notifications."""
    notification = await repository.get_for_user(user_id, notification_id)
    if notification is None:
        raise _not_found(notification_id)
    return NotificationEnvelope(data=NotificationRecord.model_validate(notification))


@router.patch("/{notification_id}", response_model=NotificationEnvelope)
async def update_notification(
    notification_id: str,
    update: NotificationUpdate,
    user_id: CurrentUserId,
    repository: NotificationRepo,
    hub: Hub,
) -> NotificationEnvelope:
    """Mark one notification as read. ``{"read": false}`` is rejected."""
    _ = update
    notification = await repository.mark_read(user_id, notification_id)
    if notification is None:
        raise _not_found(notification_id)
    await repository.commit()
    hub.publish_read(user_id, notification_id)
    return NotificationEnvelope(data=NotificationRecord.model_validate(notification))


@router.delete("/{notification_id}", response_model=DeleteResult)
async def delete_notification(
    notification_id: str, user_id: CurrentUserId, repository: NotificationRepo
) -> DeleteResult:
    """Delete one of the user's notifications."""
    if not await repository.delete_for_user(user_id, notification_id):
        raise _not_found(notification_id)
    logger.info("Notification deleted", notification_id=notification_id, user_id=user_id)
    return DeleteResult()
