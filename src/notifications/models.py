"""Persisted notification records."""

from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, Enum, Index, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.constants import SHORT_TEXT_LENGTH
from src.infrastructure.database.base import BaseModel, UserOwnedMixin

ACTION_URL_LENGTH = 512


class NotificationType(StrEnum):
    """Domain events that produce a notification."""

    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    INVOICE_DELETED = "INVOICE_DELETED"
    INVOICE_PAID = "INVOICE_PAID"
    INVOICE_OVERDUE = "INVOICE_OVERDUE"
    REMINDER = "REMINDER"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    CUSTOMER_CREATED = "CUSTOMER_CREATED"
    CUSTOMER_UPDATED = "CUSTOMER_UPDATED"
    CUSTOMER_DELETED = "CUSTOMER_DELETED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"


class Notification(UserOwnedMixin, BaseModel):
    """One notification addressed to one user.

    ``read`` starts False and only ever becomes True. ``data`` holds the
    JSON form of the payload model selected by ``type``
    (see ``src.notifications.schemas.PAYLOAD_MODELS``).
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_id_read", "user_id", "read"),
        Index("ix_notifications_user_id_created_at", "user_id", "created_at"),
    )

    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, native_enum=False, length=32), nullable=False
    )
    title: Mapped[str] = mapped_column(String(SHORT_TEXT_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    read: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    action_url: Mapped[str | None] = mapped_column(String(ACTION_URL_LENGTH))
