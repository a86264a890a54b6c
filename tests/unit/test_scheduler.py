"""Tests for mcnotify.core.scheduler."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from mcnotify.core.config import Settings
from mcnotify.core.exceptions import APIError
from mcnotify.core.manager import NotifyManager
from mcnotify.core.models import CheckStats, Platform
from mcnotify.core.queue import TaskQueue
from mcnotify.core.scheduler import Scheduler
from mcnotify.core.store import ConfigStore, StateStore
from tests.conftest import FakeClock, FakeFetcher, RecordingDelivery, make_version

MR = Platform.MODRINTH


class StopLoop(Exception):
    """Raised by the fake sleep to end the scheduler loop."""


class FakeSleep:
    """Records sleeps and stops the loop after a number of them."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if len(self.calls) >= self.limit:
            raise StopLoop


@pytest.fixture
async def queue() -> AsyncIterator[TaskQueue]:
    """Running task queue without pauses."""
    async with TaskQueue(pause=0) as q:
        yield q


@pytest.fixture
async def manager(
    settings: Settings,
    config_store: ConfigStore,
    state_store: StateStore,
    fetchers: dict[Platform, FakeFetcher],
    delivery: RecordingDelivery,
    clock: FakeClock,
) -> AsyncIterator[NotifyManager]:
    """NotifyManager wired to fakes."""
    async with NotifyManager(
        settings,
        config_store=config_store,
        state_store=state_store,
        fetchers=fetchers,
        delivery=delivery,
        clock=clock,
    ) as m:
        yield m


class TestSchedulerInit:
    """Tests for Scheduler initialization."""

    def test_defaults_from_settings(self, settings: Settings) -> None:
        """base_tick and startup_delay default to the settings."""
        # Arrange
        manager = NotifyManager(settings)

        # Act
        scheduler = Scheduler(manager)

        # Assert
        assert scheduler.base_tick == settings.base_tick
        assert scheduler.startup_delay == settings.startup_delay

    def test_overrides(self, settings: Settings) -> None:
        """Explicit values win over the settings."""
        # Arrange
        manager = NotifyManager(settings)

        # Act
        scheduler = Scheduler(manager, base_tick=5, startup_delay=0)

        # Assert
        assert scheduler.base_tick == 5
        assert scheduler.startup_delay == 0


class TestTick:
    """Tests for Scheduler.tick."""

    async def test_runs_check_pass(
        self,
        manager: NotifyManager,
        queue: TaskQueue,
        fetchers: dict[Platform, FakeFetcher],
    ) -> None:
        """A tick checks due subscriptions."""
        # Arrange
        await manager.config_store.add_subscription("C1", MR, "abc123")
        fetchers[MR].queue("abc123", make_version("1.0"))
        scheduler = Scheduler(manager, queue)

        # Act
        stats = await scheduler.tick()

        # Assert
        assert isinstance(stats, CheckStats)
        assert stats.checked == 1
        assert manager.state_store.snapshot() == {"C1|mr|abc123": "1.0"}

    async def test_no_subscriptions_skips_pass(
        self, manager: NotifyManager, queue: TaskQueue
    ) -> None:
        """Nothing runs without subscriptions."""
        # Arrange
        scheduler = Scheduler(manager, queue)

        # Act & Assert
        assert await scheduler.tick() is None

    async def test_disabled_skips_pass(
        self,
        manager: NotifyManager,
        queue: TaskQueue,
        fetchers: dict[Platform, FakeFetcher],
    ) -> None:
        """Nothing runs while globally disabled."""
        # Arrange
        await manager.config_store.add_subscription("C1", MR, "abc123")
        await manager.config_store.set_enabled(False)
        scheduler = Scheduler(manager, queue)

        # Act
        stats = await scheduler.tick()

        # Assert
        assert stats is None
        assert fetchers[MR].calls == []

    async def test_never_raises(
        self,
        manager: NotifyManager,
        queue: TaskQueue,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Errors escaping the pass are logged and swallowed."""
        # Arrange
        await manager.config_store.add_subscription("C1", MR, "abc123")

        async def broken(*args, **kwargs) -> None:
            raise APIError("down")

        monkeypatch.setattr(manager, "check_once", broken)
        scheduler = Scheduler(manager, queue)

        # Act
        stats = await scheduler.tick()

        # Assert
        assert stats is None
        assert queue.running


class TestRun:
    """Tests for the scheduler loop."""

    async def test_waits_startup_delay_then_ticks(
        self,
        manager: NotifyManager,
        queue: TaskQueue,
        fetchers: dict[Platform, FakeFetcher],
    ) -> None:
        """The loop sleeps the startup delay, then alternates tick and sleep."""
        # Arrange
        await manager.config_store.add_subscription("C1", MR, "abc123")
        fetchers[MR].queue("abc123", make_version("1.0"))
        sleep = FakeSleep(limit=3)
        scheduler = Scheduler(
            manager, queue, base_tick=60, startup_delay=10, sleep=sleep
        )

        # Act
        with pytest.raises(StopLoop):
            await scheduler.run()

        # Assert
        assert sleep.calls == [10, 60, 60]
        assert fetchers[MR].calls == ["abc123"]

    async def test_start_and_stop(
        self, manager: NotifyManager, queue: TaskQueue
    ) -> None:
        """start runs the loop in the background and stop cancels it."""
        # Arrange
        scheduler = Scheduler(manager, queue, base_tick=0.01, startup_delay=0)

        # Act
        task = scheduler.start()
        await asyncio.sleep(0.05)
        running = scheduler.running
        await scheduler.stop()

        # Assert
        assert running is True
        assert scheduler.running is False
        assert task.cancelled()
