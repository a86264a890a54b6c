"""Recurring automatic update checks."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from mcnotify.core.manager import NotifyManager
from mcnotify.core.models import CheckStats
from mcnotify.core.queue import TaskQueue

logger = logging.getLogger(__name__)


class Scheduler:
    """Drives NotifyManager.check_once on a fixed base tick.

    The tick is shorter than any subscription interval; the manager decides
    per subscription whether its own interval has elapsed. Passes go through
    the shared TaskQueue so they never interleave with manual checks.
    """

    def __init__(
        self,
        manager: NotifyManager,
        queue: TaskQueue | None = None,
        base_tick: float | None = None,
        startup_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize Scheduler.

        Args:
            manager: Check engine
            queue: Task queue shared with manual commands
            base_tick: Seconds between passes (settings.base_tick by default)
            startup_delay: Seconds before the first pass (settings.startup_delay
                by default)
            sleep: Sleep function, injectable for tests
        """
        settings = manager.settings
        self._manager = manager
        self._queue = queue or TaskQueue()
        self.base_tick = base_tick if base_tick is not None else settings.base_tick
        self.startup_delay = (
            startup_delay if startup_delay is not None else settings.startup_delay
        )
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the scheduler loop is alive."""
        return self._task is not None and not self._task.done()

    async def _pass(self) -> CheckStats | None:
        store = self._manager.config_store
        if not await store.is_enabled():
            return None
        subs = await store.active_subscriptions()
        if not subs:
            return None

        logger.debug("Automatic update check started, %d subscription(s)", len(subs))
        stats = await self._manager.check_once()
        if stats is not None:
            logger.debug(
                "Automatic update check done: checked=%d, updated=%d, "
                "skipped=%d, failed=%d",
                stats.checked,
                stats.updated,
                stats.skipped,
                stats.failed,
            )
        return stats

    async def tick(self) -> CheckStats | None:
        """Run one automatic pass. Never raises.

        Returns:
            CheckStats of the pass, or None if nothing ran
        """
        try:
            return await self._queue.submit("notify-auto-check", self._pass)
        except Exception as e:
            logger.warning("Automatic update check failed: %s", e)
            return None

    async def _log_startup(self) -> None:
        subs = await self._manager.config_store.active_subscriptions()
        if subs:
            min_interval = min(sub.interval for sub in subs)
        else:
            min_interval = self._manager.config_store.default_interval
        logger.info(
            "Automatic update checks started, base tick: %gs, "
            "shortest subscription interval: %d min",
            self.base_tick,
            round(min_interval / 60000),
        )

    async def run(self) -> None:
        """Wait for the startup delay, then run a pass every base tick forever."""
        try:
            await self._log_startup()
        except Exception as e:
            logger.warning("Failed to read subscriptions at startup: %s", e)

        await self._sleep(self.startup_delay)
        while True:
            await self.tick()
            await self._sleep(self.base_tick)

    def start(self) -> asyncio.Task[None]:
        """Start the loop as a background task on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="mcnotify-scheduler")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop; in-flight fetches and saves are abandoned."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
