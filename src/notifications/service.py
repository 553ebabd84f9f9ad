"""Notification generation.

``NotificationService.create_notification`` is the one primitive: it
persists a record with ``read=False`` and keeps it as pending. Pending
records are pushed to the owner's live sessions by ``publish_pending`` once
the caller's transaction has committed, so clients never receive a
notification whose row is rolled back. The ``notify_*`` helpers turn a
domain event into title, message, typed payload and action link.

Notifications are side effects of business mutations, never part of them.
Call sites wrap helpers in ``notify_best_effort`` so that an invoice or
customer change succeeds even when its notification cannot be stored:

    invoice = await invoices.update(invoice_id, changes)
    await notify_best_effort(
        service.notify_invoice_updated(invoice, list(changes)),
        event="invoice_updated",
    )
    await session.commit()
    service.publish_pending()
"""

import math
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pydantic
from loguru import logger

from src.billing.models import Customer, Invoice
from src.core.config import NotificationConfig, get_settings
from src.core.constants import CUSTOMERS_PATH, INVOICES_PATH, SETTINGS_PATH
from src.core.exceptions import ValidationError
from src.core.types import PayloadData
from src.notifications.delivery import ConnectionHub
from src.notifications.models import Notification, NotificationType
from src.notifications.repository import NotificationRepository
from src.notifications.schemas import (
    CamelModel,
    CustomerPayload,
    CustomerUpdatedPayload,
    InvoiceOverduePayload,
    InvoicePayload,
    InvoiceUpdatedPayload,
    NotificationRecord,
    PaymentReceivedPayload,
    ReminderPayload,
    SettingsPayload,
    parse_payload,
)

ONE_DAY = timedelta(days=1)

type Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def days_past_due(due_date: datetime, now: datetime) -> int:
    """Whole days elapsed since ``due_date``, rounded down."""
    return math.floor((now - as_aware(due_date)) / ONE_DAY)


def days_until_due(due_date: datetime, now: datetime) -> int:
    """Days left until ``due_date``, rounded up."""
    return math.ceil((as_aware(due_date) - now) / ONE_DAY)


def invoice_url(invoice_id: str) -> str:
    """Dashboard page of an invoice."""
    return f"{INVOICES_PATH}/{invoice_id}"


def customer_url(customer_id: str) -> str:
    """Dashboard page of a customer."""
    return f"{CUSTOMERS_PATH}/{customer_id}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


async def notify_best_effort[T](
    operation: Awaitable[T], *, event: str, **context: object
) -> T | None:
    """Await a notification operation, logging instead of raising on failure.

    Args:
        operation: The pending ``notify_*`` or ``create_notification`` call.
        event: Short event name for the log line.
        **context: Extra structured fields for the log line.

    Returns:
        T | None: The operation's result, or None if it failed.
    """
    try:
        return await operation
    except Exception:
        logger.exception("Failed to create {} notification", event, **context)
        return None


class NotificationService:
    """Creates notifications for domain events.

    Created records wait in ``pending`` until ``publish_pending`` is called
    after the commit. A service is bound to one session, so dropping it
    after a failed transaction drops its unpublished records too.

    Args:
        repository: Notification persistence bound to the caller's session.
        hub: Connection hub for real-time push. ``None`` disables push.
        config: Notification settings. Defaults to the application settings.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        hub: ConnectionHub | None = None,
        *,
        config: NotificationConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.repository = repository
        self.hub = hub
        self.config = config or get_settings().notification_config
        self.clock = clock
        self.pending: list[NotificationRecord] = []

    def format_amount(self, amount: float) -> str:
        """Render a money amount with the configured currency symbol."""
        return f"{amount:,.2f}{self.config.currency_symbol}"

    def publish_pending(self) -> int:
        """Push every pending record to its owner's sessions.

        Call only after the transaction that stored the records committed.
        Push failures are logged; the records stay stored either way.

        Returns:
            int: Number of records handed to the hub.
        """
        records, self.pending = self.pending, []
        if self.hub is None:
            return 0
        published = 0
        for record in records:
            try:
                self.hub.publish_notification(record)
            except Exception:
                logger.exception(
                    "Failed to push notification",
                    notification_id=record.id,
                    user_id=record.user_id,
                )
            else:
                published += 1
        return published

    async def create_notification(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: CamelModel | PayloadData | None = None,
        action_url: str | None = None,
    ) -> NotificationRecord:
        """Persist a new unread notification and queue it for push.

        Args:
            user_id: Recipient.
            notification_type: Event type; selects the payload model.
            title: Short heading.
            message: Human-readable text.
            data: Payload model, or a dict validated against the payload
                model of ``notification_type``.
            action_url: Dashboard link, None when the entity no longer exists.

        Returns:
            NotificationRecord: The stored notification.

        Raises:
            ValidationError: If ``data`` does not fit the type's payload model.
            SQLAlchemyError: If the record cannot be stored.
        """
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            data=self._serialize_payload(notification_type, data),
            action_url=action_url,
            read=False,
        )
        async with self.repository.savepoint():
            notification = await self.repository.create(notification)

        record = NotificationRecord.model_validate(notification)
        logger.info(
            "Notification created",
            notification_id=record.id,
            user_id=user_id,
            notification_type=notification_type.value,
        )
        if self.hub is not None:
            self.pending.append(record)
        return record

    @staticmethod
    def _serialize_payload(
        notification_type: NotificationType, data: CamelModel | PayloadData | None
    ) -> PayloadData | None:
        if data is None:
            return None
        try:
            payload = (
                data
                if isinstance(data, CamelModel)
                else parse_payload(notification_type, data)
            )
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid payload for {notification_type.value} notification",
                context={"errors": e.errors(include_url=False)},
                cause=e,
            ) from e
        return payload.model_dump(mode="json", by_alias=True) if payload else None

    # Invoice events

    @staticmethod
    def _invoice_payload(invoice: Invoice) -> dict[str, Any]:
        return {
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "customer_name": invoice.customer_name,
            "amount": float(invoice.total),
        }

    async def notify_invoice_created(self, invoice: Invoice) -> NotificationRecord:
        """Notify that an invoice was created."""
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.INVOICE_CREATED,
            title="New invoice created",
            message=(
                f"Invoice {invoice.invoice_number} was created for "
                f"{invoice.customer_name}"
            ),
            data=InvoicePayload(**self._invoice_payload(invoice)),
            action_url=invoice_url(invoice.id),
        )

    async def notify_invoice_updated(
        self, invoice: Invoice, changed_fields: Sequence[str] = ()
    ) -> NotificationRecord:
        """Notify that an invoice was edited."""
        message = f"Invoice {invoice.invoice_number} was updated"
        if changed_fields:
            message += f" ({', '.join(changed_fields)})"
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.INVOICE_UPDATED,
            title="Invoice updated",
            message=message,
            data=InvoiceUpdatedPayload(
                **self._invoice_payload(invoice), changed_fields=list(changed_fields)
            ),
            action_url=invoice_url(invoice.id),
        )

    async def notify_invoice_deleted(self, invoice: Invoice) -> NotificationRecord:
        """Notify that an invoice was deleted. There is no page to link to."""
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.INVOICE_DELETED,
            title="Invoice deleted",
            message=(
                f"Invoice {invoice.invoice_number} for {invoice.customer_name} "
                "was deleted"
            ),
            data=InvoicePayload(**self._invoice_payload(invoice)),
            action_url=None,
        )

    async def notify_invoice_paid(self, invoice: Invoice) -> NotificationRecord:
        """Notify that an invoice was paid in full."""
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.INVOICE_PAID,
            title="Invoice paid",
            message=(
                f"Invoice {invoice.invoice_number} was paid in the amount of "
                f"{self.format_amount(float(invoice.total))}"
            ),
            data=InvoicePayload(**self._invoice_payload(invoice)),
            action_url=invoice_url(invoice.id),
        )

    async def notify_invoice_overdue(self, invoice: Invoice) -> NotificationRecord:
        """Notify that an invoice passed its due date unpaid."""
        overdue_days = max(days_past_due(invoice.due_date, self.clock()), 0)
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.INVOICE_OVERDUE,
            title="Invoice overdue",
            message=(
                f"Invoice {invoice.invoice_number} is past its due date "
                f"by {_plural(overdue_days, 'day')}"
            ),
            data=InvoiceOverduePayload(
                **self._invoice_payload(invoice), days_past_due=overdue_days
            ),
            action_url=invoice_url(invoice.id),
        )

    async def notify_invoice_reminder(
        self, invoice: Invoice, days_before: int
    ) -> NotificationRecord:
        """Remind that an invoice falls due in ``days_before`` days."""
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.REMINDER,
            title="Reminder: invoice due soon",
            message=(
                f"Invoice {invoice.invoice_number} is due in "
                f"{_plural(days_before, 'day')}"
            ),
            data=ReminderPayload(
                **self._invoice_payload(invoice),
                due_date=as_aware(invoice.due_date),
                days_before=days_before,
            ),
            action_url=invoice_url(invoice.id),
        )

    async def notify_payment_received(
        self, invoice: Invoice, amount: float
    ) -> NotificationRecord:
        """Notify that a payment was registered against an invoice."""
        return await self.create_notification(
            user_id=invoice.user_id,
            notification_type=NotificationType.PAYMENT_RECEIVED,
            title="Payment received",
            message=(
                f"A payment of {self.format_amount(amount)} was received for "
                f"invoice {invoice.invoice_number}"
            ),
            data=PaymentReceivedPayload(
                **self._invoice_payload(invoice), payment_amount=amount
            ),
            action_url=invoice_url(invoice.id),
        )

    # Customer events

    async def notify_customer_created(self, customer: Customer) -> NotificationRecord:
        """Notify that a customer was added."""
        return await self.create_notification(
            user_id=customer.user_id,
            notification_type=NotificationType.CUSTOMER_CREATED,
            title="New customer added",
            message=f"Customer {customer.name} was added",
            data=CustomerPayload(
                customer_id=customer.id,
                customer_name=customer.name,
                customer_email=customer.email,
            ),
            action_url=customer_url(customer.id),
        )

    async def notify_customer_updated(
        self, customer: Customer, changed_fields: Sequence[str] = ()
    ) -> NotificationRecord:
        """Notify that a customer's details changed."""
        message = f"Customer {customer.name} was updated"
        if changed_fields:
            message += f" ({', '.join(changed_fields)})"
        return await self.create_notification(
            user_id=customer.user_id,
            notification_type=NotificationType.CUSTOMER_UPDATED,
            title="Customer updated",
            message=message,
            data=CustomerUpdatedPayload(
                customer_id=customer.id,
                customer_name=customer.name,
                customer_email=customer.email,
                changed_fields=list(changed_fields),
            ),
            action_url=customer_url(customer.id),
        )

    async def notify_customer_deleted(self, customer: Customer) -> NotificationRecord:
        """Notify that a customer was removed."""
        return await self.create_notification(
            user_id=customer.user_id,
            notification_type=NotificationType.CUSTOMER_DELETED,
            title="Customer deleted",
            message=f"Customer {customer.name} was deleted",
            data=CustomerPayload(
                customer_id=customer.id,
                customer_name=customer.name,
                customer_email=customer.email,
            ),
            action_url=None,
        )

    # Settings events

    async def notify_settings_updated(
        self, user_id: str, changed_fields: Sequence[str] = ()
    ) -> NotificationRecord:
        """Notify that the user's business settings changed."""
        message = "Your business settings were updated"
        if changed_fields:
            message += f" ({', '.join(changed_fields)})"
        return await self.create_notification(
            user_id=user_id,
            notification_type=NotificationType.SETTINGS_UPDATED,
            title="Settings updated",
            message=message,
            data=SettingsPayload(changed_fields=list(changed_fields)),
            action_url=SETTINGS_PATH,
        )
