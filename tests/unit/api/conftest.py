"""Fixtures for API tests: an app wired to in-memory dependencies."""

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.api.dependencies import get_notification_repository, get_sweep_runner
from src.api.main import create_app
from src.core.config import Settings
from src.notifications.delivery import ConnectionHub, get_connection_hub
from src.notifications.schemas import SweepCounts, SweepReport

if TYPE_CHECKING:
    from tests.unit.conftest import FakeNotificationRepository


@pytest.fixture
def hub() -> ConnectionHub:
    """Provide a hub isolated from the process-wide one."""
    return ConnectionHub()


@pytest.fixture
def sweep_report() -> SweepReport:
    """Report returned by the overridden sweep runner."""
    return SweepReport(
        success=True,
        data=SweepCounts(overdue_invoices=2, reminders_sent=1, notifications_cleaned=0),
        message="Scheduled sweeps completed successfully",
    )


@pytest.fixture
def app(
    mock_settings: Settings,
    notification_repository: "FakeNotificationRepository",
    hub: ConnectionHub,
    sweep_report: SweepReport,
) -> FastAPI:
    """Application whose persistence, hub and sweeps are in-memory."""
    application = create_app(mock_settings)

    async def run_sweeps() -> SweepReport:
        return sweep_report

    application.dependency_overrides[get_notification_repository] = (
        lambda: notification_repository
    )
    application.dependency_overrides[get_connection_hub] = lambda: hub
    application.dependency_overrides[get_sweep_runner] = lambda: run_sweeps
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """HTTP client talking to the app in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client
