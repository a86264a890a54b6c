"""Shared test fixtures."""

from pathlib import Path

import pytest

from mcnotify.core.config import Settings
from mcnotify.core.models import (
    ActiveSubscription,
    Card,
    LatestVersion,
    NotifyConfig,
    Platform,
    ProjectDetail,
)
from mcnotify.core.store import ConfigStore, StateStore


class FakeFetcher:
    """In-memory VersionFetcher returning queued results."""

    def __init__(self, platform: Platform) -> None:
        self.platform = platform
        self.versions: dict[str, list[LatestVersion | None | Exception]] = {}
        self.calls: list[str] = []
        self.detail_calls: list[str] = []

    def queue(
        self, project_id: str, *results: LatestVersion | None | Exception
    ) -> None:
        self.versions.setdefault(project_id, []).extend(results)

    async def get_latest_version(self, project_id: str) -> LatestVersion | None:
        self.calls.append(project_id)
        queued = self.versions.get(project_id, [])
        result = queued.pop(0) if len(queued) > 1 else (queued[0] if queued else None)
        if isinstance(result, Exception):
            raise result
        return result

    async def get_project(self, project_id: str) -> ProjectDetail:
        self.detail_calls.append(project_id)
        source = self.platform.display_name
        return ProjectDetail(id=project_id, title=f"Project {project_id}", source=source)


class RecordingDelivery:
    """Delivery collaborator that records what it was asked to send."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.sent: list[tuple[str, str]] = []

    async def send(self, channel_id: str, content: str) -> bool:
        self.sent.append((channel_id, content))
        return self.result


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_version(version: str, **overrides) -> LatestVersion:
    """Helper to create LatestVersion for tests."""
    defaults = {
        "version_id": f"id-{version}",
        "version": version,
        "loaders": ["fabric"],
        "game_versions": ["1.21.4"],
        "file_name": f"mod-{version}.jar",
        "file_size": 1024,
    }
    return LatestVersion(**{**defaults, **overrides})


def make_sub(
    project_id: str = "abc123",
    platform: Platform = Platform.MODRINTH,
    channel_id: str = "C1",
    interval: int = 60_000,
) -> ActiveSubscription:
    """Helper to create ActiveSubscription for tests."""
    return ActiveSubscription(
        channel_id=channel_id,
        platform=platform,
        project_id=project_id,
        interval=interval,
    )


def make_card(text: str = "card") -> Card:
    """Helper to create a text Card."""
    return Card(data=text.encode(), media_type="text/plain")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at temporary data files."""
    return Settings(
        config_file=str(tmp_path / "data" / "notify_config.json"),
        state_file=str(tmp_path / "data" / "notify_state.json"),
        enabled=True,
        interval=60_000,
        admin_authority=3,
    )


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigStore:
    """ConfigStore backed by a temporary file."""
    return ConfigStore(
        tmp_path / "data" / "notify_config.json",
        initial=NotifyConfig(enabled=True),
        default_interval=60_000,
    )


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    """StateStore backed by a temporary file."""
    return StateStore(tmp_path / "data" / "notify_state.json")


@pytest.fixture
def fetchers() -> dict[Platform, FakeFetcher]:
    """Fake fetchers for both platforms."""
    return {
        Platform.MODRINTH: FakeFetcher(Platform.MODRINTH),
        Platform.CURSEFORGE: FakeFetcher(Platform.CURSEFORGE),
    }


@pytest.fixture
def delivery() -> RecordingDelivery:
    """Delivery that accepts every card."""
    return RecordingDelivery()


@pytest.fixture
def clock() -> FakeClock:
    """Fake wall clock."""
    return FakeClock()
