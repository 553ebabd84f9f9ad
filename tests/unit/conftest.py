"""Shared fixtures for unit tests."""

from collections.abc import AsyncIterator, Callable, Generator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from src.billing.models import Customer, Invoice, InvoiceStatus
from src.cache.store import reset_app_cache
from src.core.config import Settings, get_settings
from src.infrastructure.database.base import generate_id
from src.notifications.delivery import get_connection_hub
from src.notifications.models import Notification, NotificationType
from src.notifications.schemas import NotificationRecord

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class FakeClock:
    """Mutable clock returning epoch milliseconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms

    def advance_minutes(self, minutes: float) -> None:
        self.advance_ms(minutes * 60_000)


class FakeNotificationRepository:
    """In-memory stand-in for ``NotificationRepository``."""

    def __init__(self) -> None:
        self.items: dict[str, Notification] = {}
        self.fail_create: Exception | None = None
        self.fail_commit: Exception | None = None
        self.commits = 0

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        yield

    async def commit(self) -> None:
        if self.fail_commit is not None:
            raise self.fail_commit
        self.commits += 1

    async def create(self, notification: Notification) -> Notification:
        if self.fail_create is not None:
            raise self.fail_create
        notification.id = notification.id or generate_id()
        notification.created_at = notification.created_at or NOW
        notification.updated_at = notification.updated_at or NOW
        self.items[notification.id] = notification
        return notification

    def for_user(self, user_id: str) -> list[Notification]:
        return sorted(
            (n for n in self.items.values() if n.user_id == user_id),
            key=lambda n: n.created_at,
            reverse=True,
        )

    async def list_for_user(
        self, user_id: str, *, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> list[Notification]:
        items = [n for n in self.for_user(user_id) if not (unread_only and n.read)]
        return items[(page - 1) * limit : page * limit]

    async def count_for_user(self, user_id: str, *, unread_only: bool = False) -> int:
        return len([n for n in self.for_user(user_id) if not (unread_only and n.read)])

    async def count_by_type(self, user_id: str) -> dict[NotificationType, int]:
        counts: dict[NotificationType, int] = {}
        for n in self.for_user(user_id):
            counts[n.type] = counts.get(n.type, 0) + 1
        return counts

    async def get_for_user(self, user_id: str, notification_id: str) -> Notification | None:
        n = self.items.get(notification_id)
        return n if n is not None and n.user_id == user_id else None

    async def mark_read(self, user_id: str, notification_id: str) -> Notification | None:
        n = await self.get_for_user(user_id, notification_id)
        if n is not None:
            n.read = True
        return n

    async def mark_all_read(self, user_id: str) -> int:
        unread = [n for n in self.for_user(user_id) if not n.read]
        for n in unread:
            n.read = True
        return len(unread)

    async def delete_for_user(self, user_id: str, notification_id: str) -> bool:
        if await self.get_for_user(user_id, notification_id) is None:
            return False
        del self.items[notification_id]
        return True

    async def delete_read_older_than(self, cutoff: datetime) -> int:
        stale = [n.id for n in self.items.values() if n.read and n.created_at < cutoff]
        for notification_id in stale:
            del self.items[notification_id]
        return len(stale)


class FakeInvoiceRepository:
    """In-memory stand-in for ``InvoiceRepository``.

    With ``stale_reads`` the finders keep returning every invoice that was
    SENT when the repository was built, like a concurrent sweep that read
    its candidates before another sweep committed.
    """

    def __init__(self, invoices: list[Invoice], *, stale_reads: bool = False) -> None:
        self.invoices = {invoice.id: invoice for invoice in invoices}
        self._snapshot = [i for i in invoices if i.status is InvoiceStatus.SENT]
        self.stale_reads = stale_reads

    def _sent(self) -> list[Invoice]:
        if self.stale_reads:
            return list(self._snapshot)
        return [i for i in self.invoices.values() if i.status is InvoiceStatus.SENT]

    async def find_sent_due_before(self, cutoff: datetime) -> list[Invoice]:
        return [i for i in self._sent() if i.due_date < cutoff]

    async def find_sent_due_between(self, start: datetime, end: datetime) -> list[Invoice]:
        return [i for i in self._sent() if start <= i.due_date <= end]

    async def mark_overdue(self, invoice_id: str) -> bool:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.status is not InvoiceStatus.SENT:
            return False
        invoice.status = InvoiceStatus.OVERDUE
        return True


@pytest.fixture(autouse=True)
def clean_process_state() -> Generator[None]:
    """Reset cached settings, the connection hub and the app cache around each test."""
    get_settings.cache_clear()
    get_connection_hub.cache_clear()
    reset_app_cache()
    yield
    get_settings.cache_clear()
    get_connection_hub.cache_clear()
    reset_app_cache()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Drop application environment variables so defaults apply."""
    for key in (
        "ENVIRONMENT",
        "DEBUG",
        "API_PORT",
        "PORT",
        "NOTIFICATION_CONFIG__CRON_SECRET",
        "NOTIFICATION_CONFIG__TIMEZONE",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Provide a real Settings object with test values.

    Returns:
        Settings: Settings built from test environment variables.
    """
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("APP_VERSION", "1.0.0")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("API_PORT", "3000")
    return Settings()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a controllable epoch-milliseconds clock."""
    return FakeClock()


@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' used by service and scheduler tests."""
    return NOW


@pytest.fixture
def notification_repository() -> FakeNotificationRepository:
    """Provide an empty in-memory notification repository."""
    return FakeNotificationRepository()


@pytest.fixture
def invoice_repository_factory() -> Callable[..., FakeInvoiceRepository]:
    """Provide a factory of in-memory invoice repositories."""
    return FakeInvoiceRepository


@pytest.fixture
def make_invoice() -> Callable[..., Invoice]:
    """Provide a factory of detached invoices with a loaded customer."""

    def factory(
        *,
        invoice_number: str = "INV-0001",
        customer_name: str = "Acme",
        due_date: datetime = NOW,
        status: InvoiceStatus = InvoiceStatus.SENT,
        total: str = "1500.00",
        user_id: str = "user-1",
    ) -> Invoice:
        customer = Customer(
            id=generate_id(), user_id=user_id, name=customer_name, email="billing@acme.test"
        )
        return Invoice(
            id=generate_id(),
            user_id=user_id,
            invoice_number=invoice_number,
            customer_id=customer.id,
            customer=customer,
            due_date=due_date,
            status=status,
            total=Decimal(total),
        )

    return factory


@pytest.fixture
def make_notification() -> Callable[..., Notification]:
    """Provide a factory of detached notification rows."""

    def factory(
        *,
        user_id: str = "user-1",
        notification_type: NotificationType = NotificationType.INVOICE_CREATED,
        read: bool = False,
        created_at: datetime = NOW,
        title: str = "New invoice created",
    ) -> Notification:
        return Notification(
            id=generate_id(),
            user_id=user_id,
            type=notification_type,
            title=title,
            message="Invoice INV-0001 was created for Acme",
            data=None,
            read=read,
            action_url=None,
            created_at=created_at,
            updated_at=created_at,
        )

    return factory


@pytest.fixture
def make_record() -> Callable[..., NotificationRecord]:
    """Provide a factory of notification records as the API returns them."""

    def factory(
        *,
        notification_id: str | None = None,
        read: bool = False,
        notification_type: NotificationType = NotificationType.INVOICE_CREATED,
        created_at: datetime = NOW,
        user_id: str = "user-1",
    ) -> NotificationRecord:
        return NotificationRecord(
            id=notification_id or generate_id(),
            user_id=user_id,
            type=notification_type,
            title="New invoice created",
            message="Invoice INV-0001 was created for Acme",
            read=read,
            created_at=created_at,
            updated_at=created_at,
        )

    return factory


def page_json(records: list[NotificationRecord], unread_count: int, **pagination: Any) -> dict[str, Any]:
    """Build the JSON body of the list endpoint."""
    limit = pagination.get("limit", 20)
    total = pagination.get("total", len(records))
    return {
        "success": True,
        "data": [r.model_dump(mode="json", by_alias=True) for r in records],
        "unreadCount": unread_count,
        "pagination": {
            "page": pagination.get("page", 1),
            "limit": limit,
            "total": total,
            "totalPages": -(-total // limit),
        },
    }


@pytest.fixture
def make_page_json() -> Callable[..., dict[str, Any]]:
    """Provide ``page_json`` as a fixture."""
    return page_json
