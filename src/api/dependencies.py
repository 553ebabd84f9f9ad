"""FastAPI dependencies shared by the routers.

The caller's identity comes from the ``X-User-ID`` header set by the
authentication layer in front of this service. Every dependency here can be
replaced through ``app.dependency_overrides`` in tests.
"""

import hmac
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Annotated

from fastapi import Depends, Header

from src.api.constants import BEARER_PREFIX, USER_ID_HEADER
from src.core.config import get_settings
from src.core.exceptions import UnauthorizedError
from src.infrastructure.database.dependencies import DatabaseSession
from src.notifications.delivery import ConnectionHub, get_connection_hub
from src.notifications.repository import NotificationRepository
from src.notifications.scheduler import run_scheduled_sweeps
from src.notifications.schemas import SweepReport

type SweepRunner = Callable[[], Awaitable[SweepReport]]


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> str:
    """Return the authenticated user's id.

    Raises:
        UnauthorizedError: If the header is missing or blank.
    """
    if x_user_id is None or not x_user_id.strip():
        raise UnauthorizedError("Authentication required")
    return x_user_id.strip()


async def get_notification_repository(db: DatabaseSession) -> NotificationRepository:
    """Provide a notification repository bound to the request session."""
    return NotificationRepository(db)


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Check the bearer secret of the periodic trigger.

    Raises:
        UnauthorizedError: If the secret is missing or wrong.
    """
    expected = f"{BEARER_PREFIX}{get_settings().notification_config.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise UnauthorizedError("Unauthorized")


def get_sweep_runner(
    hub: Annotated[ConnectionHub, Depends(get_connection_hub)],
) -> SweepRunner:
    """Provide the callable running all scheduled sweeps."""
    return partial(run_scheduled_sweeps, hub=hub)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
NotificationRepo = Annotated[NotificationRepository, Depends(get_notification_repository)]
Hub = Annotated[ConnectionHub, Depends(get_connection_hub)]
SweepRunnerDep = Annotated[SweepRunner, Depends(get_sweep_runner)]
