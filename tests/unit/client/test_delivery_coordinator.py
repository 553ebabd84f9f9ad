"""Unit tests for src/client/delivery.py."""

import asyncio
from collections.abc import Callable

import pytest
import pytest_check
from pytest_mock import MockerFixture

from src.client.delivery import DeliveryCoordinator, DeliveryMode, PollingStrategy


class FakeChannel:
    """Channel stand-in whose connection state the test flips."""

    def __init__(self, *, connected: bool = False) -> None:
        self.connected = connected
        self.listeners: list[Callable[[bool], None]] = []

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def set_connected(self, connected: bool) -> None:
        self.connected = connected
        for listener in list(self.listeners):
            listener(connected)


async def fast_sleep(_delay: float) -> None:
    """Sleep replacement yielding once to the loop."""
    await asyncio.sleep(0)


@pytest.mark.unit
@pytest.mark.asyncio
class TestPollingStrategy:
    """Tests for the polling loop."""

    async def test_polls_until_stopped(self) -> None:
        """poll is called repeatedly while running."""
        calls = 0
        reached = asyncio.Event()

        async def poll() -> None:
            nonlocal calls
            calls += 1
            if calls == 3:
                reached.set()

        poller = PollingStrategy("list", poll, 60, sleep=fast_sleep)
        poller.start()
        await asyncio.wait_for(reached.wait(), timeout=1)
        await poller.aclose()

        assert calls >= 3
        assert poller.running is False

    async def test_failed_poll_keeps_polling(self, mocker: MockerFixture) -> None:
        """A raising poll is logged and the loop continues."""
        mock_logger = mocker.patch("src.client.delivery.logger")
        calls = 0
        reached = asyncio.Event()

        async def poll() -> None:
            nonlocal calls
            calls += 1
            if calls == 2:
                reached.set()
            raise RuntimeError("offline")

        poller = PollingStrategy("list", poll, 60, sleep=fast_sleep)
        poller.start()
        await asyncio.wait_for(reached.wait(), timeout=1)
        await poller.aclose()

        mock_logger.warning.assert_called()

    async def test_waits_interval_before_first_poll(self) -> None:
        """The first poll happens after one interval."""
        delays: list[float] = []
        polled = asyncio.Event()

        async def recording_sleep(delay: float) -> None:
            delays.append(delay)
            await asyncio.sleep(0)

        async def poll() -> None:
            polled.set()

        poller = PollingStrategy("unread", poll, 120, sleep=recording_sleep)
        poller.start()
        await asyncio.wait_for(polled.wait(), timeout=1)
        await poller.aclose()

        assert delays[0] == 120


@pytest.mark.unit
@pytest.mark.asyncio
class TestDeliveryCoordinator:
    """Tests for push versus polling selection."""

    async def test_disconnected_channel_starts_polling(self) -> None:
        """Without a connection the consumer polls."""
        channel = FakeChannel(connected=False)
        poller = PollingStrategy("list", fast_sleep_poll, 60)
        coordinator = DeliveryCoordinator(channel, poller)  # type: ignore[arg-type]

        coordinator.start()

        assert coordinator.mode is DeliveryMode.POLLING
        assert poller.running is True
        await coordinator.close()

    async def test_connected_channel_suppresses_polling(self) -> None:
        """With a connection there is no polling."""
        channel = FakeChannel(connected=True)
        poller = PollingStrategy("list", fast_sleep_poll, 60)
        coordinator = DeliveryCoordinator(channel, poller)  # type: ignore[arg-type]

        coordinator.start()

        assert coordinator.mode is DeliveryMode.PUSH
        assert poller.running is False
        await coordinator.close()

    async def test_never_push_and_poll_together(self) -> None:
        """Each connection change leaves exactly one path active."""
        channel = FakeChannel(connected=False)
        poller = PollingStrategy("list", fast_sleep_poll, 60)
        coordinator = DeliveryCoordinator(channel, poller)  # type: ignore[arg-type]
        coordinator.start()

        observed: list[tuple[DeliveryMode, bool]] = []
        for connected in (True, False, True, False):
            channel.set_connected(connected)
            await asyncio.sleep(0)
            observed.append((coordinator.mode, poller.running))

        with pytest_check.check:
            assert observed == [
                (DeliveryMode.PUSH, False),
                (DeliveryMode.POLLING, True),
                (DeliveryMode.PUSH, False),
                (DeliveryMode.POLLING, True),
            ]

        await coordinator.close()
        with pytest_check.check:
            assert coordinator.mode is DeliveryMode.IDLE
        with pytest_check.check:
            assert poller.running is False
        with pytest_check.check:
            assert channel.listeners == []


async def fast_sleep_poll() -> None:
    """Poll that does nothing."""
