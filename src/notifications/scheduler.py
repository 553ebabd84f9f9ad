"""Periodic sweeps: overdue transition, due date reminders and retention.

The three sweeps are invoked by an external periodic trigger through
``run_scheduled_sweeps``, which runs each one in its own database session
and reports per-sweep results, so a failing sweep neither rolls back nor
prevents the others.

"Today" is the current date in the configured business time zone. The
overdue sweep transitions invoices with a conditional update
(``WHERE status = 'SENT'``); two sweeps racing on the same invoice both
see it as a candidate but only one wins the update, so each invoice is
transitioned and notified exactly once.
"""

from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, time, timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.billing.repository import InvoiceRepository
from src.core.config import NotificationConfig, get_settings
from src.infrastructure.database.session import get_async_session
from src.notifications.delivery import ConnectionHub
from src.notifications.repository import NotificationRepository
from src.notifications.schemas import SweepCounts, SweepReport
from src.notifications.service import (
    Clock,
    NotificationService,
    days_until_due,
    notify_best_effort,
    utc_now,
)

type SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]
type SchedulerFactory = Callable[[AsyncSession], "NotificationScheduler"]


class NotificationScheduler:
    """Batch operations over invoices and notifications.

    Args:
        invoices: Invoice repository.
        notifications: Notification repository.
        service: Notification service used for overdue and reminder notices.
        config: Notification settings. Defaults to the application settings.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        invoices: InvoiceRepository,
        notifications: NotificationRepository,
        service: NotificationService,
        *,
        config: NotificationConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.invoices = invoices
        self.notifications = notifications
        self.service = service
        self.config = config or get_settings().notification_config
        self.clock = clock

    @classmethod
    def for_session(
        cls, session: AsyncSession, hub: ConnectionHub | None = None
    ) -> "NotificationScheduler":
        """Build a scheduler whose repositories share ``session``."""
        notifications = NotificationRepository(session)
        return cls(
            InvoiceRepository(session),
            notifications,
            NotificationService(notifications, hub),
        )

    def today_start(self) -> datetime:
        """Midnight of the current business day, as an aware datetime."""
        tz = self.config.tzinfo
        today = self.clock().astimezone(tz).date()
        return datetime.combine(today, time.min, tzinfo=tz)

    async def check_overdue_invoices(self) -> int:
        """Move SENT invoices due before today to OVERDUE and notify their owners.

        Returns:
            int: Number of invoices this run transitioned.
        """
        candidates = await self.invoices.find_sent_due_before(self.today_start())
        logger.info("Found {} overdue invoices", len(candidates), sweep="overdue")

        processed = 0
        for invoice in candidates:
            if not await self.invoices.mark_overdue(invoice.id):
                logger.debug(
                    "Invoice {} already transitioned, skipping",
                    invoice.id,
                    sweep="overdue",
                )
                continue
            processed += 1
            await notify_best_effort(
                self.service.notify_invoice_overdue(invoice),
                event="invoice_overdue",
                invoice_id=invoice.id,
            )
        return processed

    async def send_upcoming_reminders(self) -> int:
        """Remind owners of SENT invoices falling due within the reminder window.

        The window runs from tomorrow 00:00 to the end of the day
        ``reminder_window_days`` days from today. Invoice status is not
        changed, so an invoice is reminded on each run while in the window.

        Returns:
            int: Number of reminders created.
        """
        today = self.today_start()
        window_start = today + timedelta(days=1)
        window_end = (
            today
            + timedelta(days=self.config.reminder_window_days + 1)
            - timedelta(microseconds=1)
        )
        upcoming = await self.invoices.find_sent_due_between(window_start, window_end)
        logger.info("Found {} upcoming invoices", len(upcoming), sweep="reminders")

        now = self.clock()
        sent = 0
        for invoice in upcoming:
            record = await notify_best_effort(
                self.service.notify_invoice_reminder(
                    invoice, days_until_due(invoice.due_date, now)
                ),
                event="reminder",
                invoice_id=invoice.id,
            )
            if record is not None:
                sent += 1
        return sent

    async def cleanup_old_notifications(self, days_old: int | None = None) -> int:
        """Delete read notifications older than ``days_old`` days.

        Args:
            days_old: Retention window. Defaults to ``retention_days``.

        Returns:
            int: Number of notifications deleted.
        """
        days = days_old if days_old is not None else self.config.retention_days
        cutoff = self.clock() - timedelta(days=days)
        deleted = await self.notifications.delete_read_older_than(cutoff)
        logger.info("Deleted {} old notifications", deleted, sweep="retention")
        return deleted


SWEEPS: tuple[
    tuple[str, str, Callable[[NotificationScheduler], Awaitable[int]]], ...
] = (
    (
        "check_overdue_invoices",
        "overdue_invoices",
        NotificationScheduler.check_overdue_invoices,
    ),
    (
        "send_upcoming_reminders",
        "reminders_sent",
        NotificationScheduler.send_upcoming_reminders,
    ),
    (
        "cleanup_old_notifications",
        "notifications_cleaned",
        NotificationScheduler.cleanup_old_notifications,
    ),
)


async def run_scheduled_sweeps(
    *,
    hub: ConnectionHub | None = None,
    session_factory: SessionFactory = get_async_session,
    scheduler_factory: SchedulerFactory | None = None,
) -> SweepReport:
    """Run every sweep in its own session and report the outcome of each.

    Never raises for a sweep failure; failures are logged and listed in
    ``SweepReport.errors``. Notifications created by a sweep are pushed only
    after its session committed; a failed sweep pushes nothing.

    Args:
        hub: Connection hub for pushing the created notifications.
        session_factory: Opens a committing session per sweep.
        scheduler_factory: Builds the scheduler for a session. Defaults to
            ``NotificationScheduler.for_session``.

    Returns:
        SweepReport: Counts of the successful sweeps and errors of the others.
    """

    def build(session: AsyncSession) -> NotificationScheduler:
        if scheduler_factory is not None:
            return scheduler_factory(session)
        return NotificationScheduler.for_session(session, hub)

    counts: dict[str, int] = {}
    errors: dict[str, str] = {}
    for name, field, sweep in SWEEPS:
        try:
            async with session_factory() as session:
                scheduler = build(session)
                counts[field] = await sweep(scheduler)
        except Exception as e:
            logger.exception("Sweep {} failed", name, sweep=name)
            errors[name] = str(e) or type(e).__name__
        else:
            # The session has committed; its notifications are now durable
            scheduler.service.publish_pending()

    success = not errors
    report = SweepReport(
        success=success,
        data=SweepCounts(**counts),
        errors=errors,
        message=(
            "Scheduled sweeps completed successfully"
            if success
            else f"{len(errors)} of {len(SWEEPS)} sweeps failed"
        ),
    )
    logger.info(
        "Scheduled sweeps finished",
        overdue_invoices=report.data.overdue_invoices,
        reminders_sent=report.data.reminders_sent,
        notifications_cleaned=report.data.notifications_cleaned,
        failed=list(errors),
    )
    return report
