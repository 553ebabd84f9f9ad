"""Push versus polling delivery for notification consumers.

Each consumer (the notification list, the unread badge) owns a
``DeliveryCoordinator``. While the channel is connected updates arrive by
push and the consumer's poller is stopped; while it is not, the poller
refreshes the consumer on its own interval. The two never run together.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from enum import StrEnum

from loguru import logger

from src.client.channel import ClientChannel


class DeliveryMode(StrEnum):
    """How a consumer currently receives updates."""

    IDLE = "idle"
    PUSH = "push"
    POLLING = "polling"


class PollingStrategy:
    """Calls ``poll`` every ``interval_seconds`` until stopped.

    A failing poll is logged and the loop carries on.

    Args:
        name: Label used in logs and as the task name.
        poll: Coroutine function refreshing the consumer.
        interval_seconds: Delay between polls.
        sleep: Awaitable delay, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        poll: Callable[[], Awaitable[object]],
        interval_seconds: float,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self._poll = poll
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the polling loop is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling. Calling it twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"poll-{self.name}")
        logger.debug("Polling {} every {}s", self.name, self.interval_seconds)

    def stop(self) -> None:
        """Cancel the polling loop."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.debug("Stopped polling {}", self.name)

    async def aclose(self) -> None:
        """Cancel the polling loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            try:
                await self._poll()
            except Exception as e:
                logger.warning("Polling {} failed: {}", self.name, e)


class DeliveryCoordinator:
    """Keeps exactly one delivery path active for a consumer.

    Args:
        channel: Push channel whose connection state drives the choice.
        poller: Fallback used while the channel is down.
    """

    def __init__(self, channel: ClientChannel, poller: PollingStrategy) -> None:
        self.channel = channel
        self.poller = poller
        self.mode = DeliveryMode.IDLE
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        """Follow the channel state, starting from its current value."""
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self._on_connection_change)
        self._on_connection_change(self.channel.connected)

    def _on_connection_change(self, connected: bool) -> None:
        if connected:
            self.poller.stop()
            self.mode = DeliveryMode.PUSH
        else:
            self.poller.start()
            self.mode = DeliveryMode.POLLING
        logger.debug("{} delivery switched to {}", self.poller.name, self.mode.value)

    async def close(self) -> None:
        """Stop following the channel and stop polling."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.poller.aclose()
        self.mode = DeliveryMode.IDLE
