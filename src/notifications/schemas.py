"""Wire shapes of notifications, their typed payloads and the sweep report.

Every model serializes with camelCase aliases (``actionUrl``,
``unreadCount``) and accepts either the alias or the Python name on input.

The persisted ``data`` column is untyped JSON. Each ``NotificationType`` has
its own payload model in ``PAYLOAD_MODELS``; the service stores
``payload.model_dump(mode="json", by_alias=True)`` and
``NotificationRecord.payload()`` parses it back.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.notifications.models import NotificationType


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Payloads


class InvoicePayload(CamelModel):
    """Payload of invoice created, deleted and paid notifications."""

    invoice_id: str
    invoice_number: str
    customer_name: str | None = None
    amount: float


class InvoiceUpdatedPayload(InvoicePayload):
    """Payload of an invoice update, listing the changed fields."""

    changed_fields: list[str] = Field(default_factory=list)


class InvoiceOverduePayload(InvoicePayload):
    """Payload of an overdue invoice."""

    days_past_due: int = Field(..., ge=0)


class ReminderPayload(InvoicePayload):
    """Payload of an upcoming due date reminder."""

    due_date: datetime
    days_before: int = Field(..., ge=0)


class PaymentReceivedPayload(InvoicePayload):
    """Payload of a payment registered against an invoice."""

    payment_amount: float


class CustomerPayload(CamelModel):
    """Payload of customer created and deleted notifications."""

    customer_id: str
    customer_name: str
    customer_email: str | None = None


class CustomerUpdatedPayload(CustomerPayload):
    """Payload of a customer update, listing the changed fields."""

    changed_fields: list[str] = Field(default_factory=list)


class SettingsPayload(CamelModel):
    """Payload of a settings update."""

    changed_fields: list[str] = Field(default_factory=list)


PAYLOAD_MODELS: dict[NotificationType, type[CamelModel]] = {
    NotificationType.INVOICE_CREATED: InvoicePayload,
    NotificationType.INVOICE_UPDATED: InvoiceUpdatedPayload,
    NotificationType.INVOICE_DELETED: InvoicePayload,
    NotificationType.INVOICE_PAID: InvoicePayload,
    NotificationType.INVOICE_OVERDUE: InvoiceOverduePayload,
    NotificationType.REMINDER: ReminderPayload,
    NotificationType.PAYMENT_RECEIVED: PaymentReceivedPayload,
    NotificationType.CUSTOMER_CREATED: CustomerPayload,
    NotificationType.CUSTOMER_UPDATED: CustomerUpdatedPayload,
    NotificationType.CUSTOMER_DELETED: CustomerPayload,
    NotificationType.SETTINGS_UPDATED: SettingsPayload,
}


def parse_payload(
    notification_type: NotificationType, data: dict[str, Any] | None
) -> CamelModel | None:
    """Parse stored payload JSON into the model registered for its type."""
    if data is None:
        return None
    return PAYLOAD_MODELS[notification_type].model_validate(data)


# Records


class NotificationRecord(CamelModel):
    """A notification as returned by the API and pushed over the channel."""

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    read: bool = False
    action_url: str | None = None
    created_at: datetime
    updated_at: datetime

    def payload(self) -> CamelModel | None:
        """Return ``data`` parsed into the payload model for ``type``."""
        return parse_payload(self.type, self.data)


class Pagination(CamelModel):
    """Page position of a list response."""

    page: int
    limit: int
    total: int
    total_pages: int


class NotificationPage(CamelModel):
    """Response of the notification list endpoint."""

    success: bool = True
    data: list[NotificationRecord]
    unread_count: int = Field(..., ge=0)
    pagination: Pagination


class NotificationEnvelope(CamelModel):
    """Response carrying a single notification."""

    success: bool = True
    data: NotificationRecord


class NotificationUpdate(CamelModel):
    """Body of the single-notification PATCH. Only ``read: true`` is accepted."""

    read: bool

    @field_validator("read")
    @classmethod
    def only_mark_read(cls, v: bool) -> bool:
        """Reject attempts to mark a notification unread."""
        _ = cls
        if not v:
            msg = "Notifications can only be marked as read"
            raise ValueError(msg)
        return v


class MarkAllReadResult(CamelModel):
    """Response of the mark-all-read endpoint."""

    success: bool = True
    updated_count: int


class DeleteResult(CamelModel):
    """Response of the delete endpoint."""

    success: bool = True
    message: str = "Notification deleted"


class NotificationStats(CamelModel):
    """Counts of a user's notifications by read state and by type."""

    total: int
    unread: int
    read: int
    by_type: dict[NotificationType, int]


class NotificationStatsEnvelope(CamelModel):
    """Response of the stats endpoint."""

    success: bool = True
    data: NotificationStats


# Sweeps


class SweepCounts(CamelModel):
    """Result count per sweep; None when that sweep failed."""

    overdue_invoices: int | None = None
    reminders_sent: int | None = None
    notifications_cleaned: int | None = None


class SweepReport(CamelModel):
    """Outcome of one run of the scheduled sweeps.

    ``success`` is True only when every sweep succeeded. ``errors`` maps the
    failed sweep names to their error message.
    """

    success: bool
    data: SweepCounts
    errors: dict[str, str] = Field(default_factory=dict)
    message: str
