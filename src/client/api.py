"""Async HTTP access to the notification endpoints.

Every method raises ``ApiRequestError`` on transport failures and non-2xx
responses, carrying the server's error message when the body is an
``ErrorResponse``.
"""

from types import TracebackType
from typing import Any, Self

import httpx
from loguru import logger

from src.api.constants import NOTIFICATIONS_PREFIX, USER_ID_HEADER
from src.core.config import ClientConfig, get_settings
from src.core.exceptions import ApiRequestError
from src.notifications.schemas import (
    MarkAllReadResult,
    NotificationEnvelope,
    NotificationPage,
    NotificationRecord,
    NotificationStats,
    NotificationStatsEnvelope,
)


class NotificationApiClient:
    """Client of the notification endpoints for one signed-in user.

    Args:
        user_id: Identity sent in the ``X-User-ID`` header.
        config: Client settings. Defaults to the application settings.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` or
            ``httpx.ASGITransport`` in tests.
    """

    def __init__(
        self,
        user_id: str,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or get_settings().client_config
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            headers={USER_ID_HEADER: user_id},
            timeout=self.config.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> dict[str, Any]:
        url = f"{NOTIFICATIONS_PREFIX}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("{} {} failed: {}", method, url, e)
            raise ApiRequestError(
                f"Request to {url} failed", context={"method": method}, cause=e
            ) from e

        if response.is_error:
            raise ApiRequestError(
                self._error_message(response),
                status_code=response.status_code,
                context={"method": method, "url": url},
            )
        body: dict[str, Any] = response.json()
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return f"Request failed with status {response.status_code}"

    async def list_notifications(
        self,
        *,
        page: int = 1,
        limit: int | None = None,
        unread_only: bool = False,
    ) -> NotificationPage:
        """Fetch one page of notifications with the server's unread count."""
        params: dict[str, Any] = {
            "page": page,
            "limit": limit or self.config.page_size,
        }
        if unread_only:
            params["unreadOnly"] = "true"
        body = await self._request("GET", "", params=params)
        return NotificationPage.model_validate(body)

    async def get_stats(self) -> NotificationStats:
        """Fetch counts by read state and type."""
        body = await self._request("GET", "/stats")
        return NotificationStatsEnvelope.model_validate(body).data

    async def mark_as_read(self, notification_id: str) -> NotificationRecord:
        """Persist the read flag of one notification."""
        body = await self._request("PATCH", f"/{notification_id}", json={"read": True})
        return NotificationEnvelope.model_validate(body).data

    async def mark_all_as_read(self) -> int:
        """Persist the read flag of every notification; returns how many changed."""
        body = await self._request("PATCH", "/mark-all-read")
        return MarkAllReadResult.model_validate(body).updated_count

    async def delete_notification(self, notification_id: str) -> None:
        """Delete one notification."""
        await self._request("DELETE", f"/{notification_id}")
