"""Unit tests for src/api/routers/notifications.py."""

from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
import pytest_check
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pytest_mock import MockerFixture

from src.notifications.delivery import ConnectionHub
from src.notifications.models import Notification, NotificationType

if TYPE_CHECKING:
    from tests.unit.conftest import FakeNotificationRepository

USER = {"X-User-ID": "user-1"}


@pytest.fixture
async def seeded(
    notification_repository: "FakeNotificationRepository",
    make_notification: Callable[..., Notification],
) -> list[Notification]:
    """Three notifications of user-1 (two unread) and one of user-2."""
    base = make_notification().created_at
    items = [
        make_notification(created_at=base),
        make_notification(
            created_at=base - timedelta(hours=1),
            notification_type=NotificationType.REMINDER,
        ),
        make_notification(created_at=base - timedelta(hours=2), read=True),
        make_notification(user_id="user-2"),
    ]
    for item in items:
        await notification_repository.create(item)
    return items


@pytest.mark.unit
@pytest.mark.asyncio
class TestNotificationsRouter:
    """Tests for the notification endpoints."""

    async def test_missing_identity_is_unauthorized(self, client: AsyncClient) -> None:
        """Requests without X-User-ID are rejected with an error body."""
        response = await client.get("/api/notifications")

        assert response.status_code == 401
        body = response.json()
        assert body["error_code"] == "UNAUTHORIZED"
        assert body["message"] == "Authentication required"

    async def test_list_page(self, client: AsyncClient, seeded: list[Notification]) -> None:
        """The list is newest first with the user's unread count and pagination."""
        response = await client.get("/api/notifications", params={"limit": 2}, headers=USER)

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 200
        with pytest_check.check:
            assert [n["id"] for n in body["data"]] == [seeded[0].id, seeded[1].id]
        with pytest_check.check:
            assert body["unreadCount"] == 2
        with pytest_check.check:
            assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
        with pytest_check.check:
            assert body["data"][0]["actionUrl"] is None
        with pytest_check.check:
            assert body["success"] is True

    async def test_unread_only_keeps_full_unread_count(
        self, client: AsyncClient, seeded: list[Notification]
    ) -> None:
        """unreadOnly filters the list, not the unread count."""
        response = await client.get(
            "/api/notifications", params={"unreadOnly": "true"}, headers=USER
        )

        body = response.json()
        assert len(body["data"]) == 2
        assert all(n["read"] is False for n in body["data"])
        assert body["unreadCount"] == 2
        assert seeded

    async def test_limit_is_bounded(self, client: AsyncClient) -> None:
        """Page size above the maximum is a validation error."""
        response = await client.get("/api/notifications", params={"limit": 500}, headers=USER)

        assert response.status_code == 422
        assert "limit" in response.json()["details"]["validation_errors"]

    async def test_stats(self, client: AsyncClient, seeded: list[Notification]) -> None:
        """Stats count by read state and type."""
        response = await client.get("/api/notifications/stats", headers=USER)

        assert response.json()["data"] == {
            "total": 3,
            "unread": 2,
            "read": 1,
            "byType": {"INVOICE_CREATED": 2, "REMINDER": 1},
        }
        assert seeded

    async def test_get_foreign_notification_is_not_found(
        self, client: AsyncClient, seeded: list[Notification]
    ) -> None:
        """Another user's notification is indistinguishable from a missing one."""
        response = await client.get(f"/api/notifications/{seeded[3].id}", headers=USER)

        assert response.status_code == 404
        assert response.json()["message"] == "Notification not found"

    async def test_get_notification(
        self, client: AsyncClient, seeded: list[Notification]
    ) -> None:
        """A single notification is returned in an envelope."""
        response = await client.get(f"/api/notifications/{seeded[0].id}", headers=USER)

        assert response.status_code == 200
        assert response.json()["data"]["userId"] == "user-1"

    async def test_mark_read_pushes_to_other_sessions(
        self,
        client: AsyncClient,
        seeded: list[Notification],
        hub: ConnectionHub,
        mocker: MockerFixture,
    ) -> None:
        """PATCH read=true marks the notification and publishes the read."""
        publish = mocker.spy(hub, "publish_read")

        response = await client.patch(
            f"/api/notifications/{seeded[0].id}", json={"read": True}, headers=USER
        )

        assert response.status_code == 200
        assert response.json()["data"]["read"] is True
        assert seeded[0].read is True
        publish.assert_called_once_with("user-1", seeded[0].id)

    async def test_mark_unread_is_rejected(
        self, client: AsyncClient, seeded: list[Notification]
    ) -> None:
        """Read state only moves forward."""
        response = await client.patch(
            f"/api/notifications/{seeded[2].id}", json={"read": False}, headers=USER
        )

        assert response.status_code == 422
        assert seeded[2].read is True

    async def test_mark_read_unknown(self, client: AsyncClient) -> None:
        """Marking a missing notification is a 404."""
        response = await client.patch(
            "/api/notifications/missing", json={"read": True}, headers=USER
        )

        assert response.status_code == 404

    async def test_mark_all_read(
        self,
        client: AsyncClient,
        seeded: list[Notification],
        hub: ConnectionHub,
        mocker: MockerFixture,
    ) -> None:
        """Bulk read returns the number changed and notifies other sessions."""
        publish = mocker.spy(hub, "publish_read_all")

        response = await client.patch("/api/notifications/mark-all-read", headers=USER)

        assert response.json() == {"success": True, "updatedCount": 2}
        assert not seeded[3].read
        publish.assert_called_once_with("user-1")

    async def test_delete(
        self,
        client: AsyncClient,
        seeded: list[Notification],
        notification_repository: "FakeNotificationRepository",
    ) -> None:
        """Delete removes the notification; a second delete is a 404."""
        url = f"/api/notifications/{seeded[0].id}"

        first = await client.delete(url, headers=USER)
        second = await client.delete(url, headers=USER)

        assert first.json() == {"success": True, "message": "Notification deleted"}
        assert second.status_code == 404
        assert seeded[0].id not in notification_repository.items

    async def test_correlation_id_is_echoed(self, client: AsyncClient) -> None:
        """The correlation id header is returned and used in error bodies."""
        response = await client.get(
            "/api/notifications/missing",
            headers={**USER, "X-Correlation-ID": "corr-123"},
        )

        assert response.headers["X-Correlation-ID"] == "corr-123"
        assert response.json()["correlation_id"] == "corr-123"

    async def test_read_events_follow_commit(
        self,
        client: AsyncClient,
        seeded: list[Notification],
        hub: ConnectionHub,
        notification_repository: "FakeNotificationRepository",
        mocker: MockerFixture,
    ) -> None:
        """Other sessions hear about a read only after it was committed."""
        commits_at_publish: list[int] = []
        mocker.patch.object(
            hub,
            "publish_read",
            side_effect=lambda *_: commits_at_publish.append(
                notification_repository.commits
            ),
        )
        mocker.patch.object(
            hub,
            "publish_read_all",
            side_effect=lambda *_: commits_at_publish.append(
                notification_repository.commits
            ),
        )

        await client.patch(
            f"/api/notifications/{seeded[0].id}", json={"read": True}, headers=USER
        )
        await client.patch("/api/notifications/mark-all-read", headers=USER)

        assert commits_at_publish == [1, 2]

    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("PATCH", "/api/notifications/{id}"),
            ("PATCH", "/api/notifications/mark-all-read"),
        ],
    )
    async def test_failed_commit_publishes_nothing(
        self,
        method: str,
        path: str,
        app: FastAPI,
        seeded: list[Notification],
        hub: ConnectionHub,
        notification_repository: "FakeNotificationRepository",
        mocker: MockerFixture,
    ) -> None:
        """A read that cannot be committed is never announced."""
        mocker.patch("src.api.middleware.error_handler.logger")
        publish = mocker.spy(hub, "publish_read")
        publish_all = mocker.spy(hub, "publish_read_all")
        notification_repository.fail_commit = RuntimeError("commit failed")

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as failing_client:
            response = await failing_client.request(
                method,
                path.format(id=seeded[0].id),
                json={"read": True},
                headers=USER,
            )

        assert response.status_code == 500
        publish.assert_not_called()
        publish_all.assert_not_called()
