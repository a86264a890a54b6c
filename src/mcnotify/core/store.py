"""Durable JSON stores for subscriptions and last-seen versions."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mcnotify.core.exceptions import StoreError
from mcnotify.core.models import (
    DEFAULT_INTERVAL_MS,
    ActiveSubscription,
    ChannelGroup,
    NotifyConfig,
    Platform,
    Subscription,
    VersionState,
    effective_interval,
    state_key,
)

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any | None:
    """Read a JSON document.

    Returns:
        Parsed document, or None if the file does not exist

    Raises:
        StoreError: If the file cannot be read or parsed
    """
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StoreError(f"Failed to read {path.name}: {e}", path=path) from e


def _write_json(path: Path, data: Any) -> None:
    """Write a pretty-printed JSON document, creating parent directories.

    Raises:
        StoreError: If the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise StoreError(f"Failed to write {path.name}: {e}", path=path) from e


class ConfigStore:
    """Global enable flag and per-channel subscription groups.

    The document is loaded once per store and every mutation is written
    straight back to disk. Write failures are logged; the in-memory copy
    stays authoritative for the rest of the process.
    """

    def __init__(
        self,
        path: Path,
        initial: NotifyConfig | None = None,
        default_interval: int = DEFAULT_INTERVAL_MS,
    ) -> None:
        """Initialize ConfigStore.

        Args:
            path: Path to the config JSON file
            initial: In-memory config used until (and if) the file is read
            default_interval: Interval (ms) for subscriptions without their own
        """
        self._path = path
        self._config = initial.model_copy(deep=True) if initial else NotifyConfig()
        self._default_interval = default_interval
        self._loaded = False

    @property
    def path(self) -> Path:
        """Path to the config file."""
        return self._path

    @property
    def default_interval(self) -> int:
        """Default interval (ms) applied to subscriptions."""
        return self._default_interval

    async def load(self) -> NotifyConfig:
        """Load the config file once.

        Returns:
            The in-memory NotifyConfig
        """
        if self._loaded:
            return self._config
        self._loaded = True

        try:
            data = await asyncio.to_thread(_read_json, self._path)
        except StoreError as e:
            logger.warning("Config file unreadable, using defaults: %s", e)
            data = None

        if not isinstance(data, dict):
            if self._config.groups:
                await self.save()
            return self._config

        if isinstance(data.get("enabled"), bool):
            self._config.enabled = data["enabled"]
        raw_groups = data.get("groups")
        if isinstance(raw_groups, list):
            self._config.groups = self._parse_groups(raw_groups)
        return self._config

    def _parse_groups(self, raw_groups: list[Any]) -> list[ChannelGroup]:
        groups = []
        for index, raw in enumerate(raw_groups):
            try:
                groups.append(ChannelGroup.model_validate(raw))
            except ValidationError as e:
                logger.warning("Dropping invalid channel group #%d: %s", index, e)
        return groups

    async def save(self) -> bool:
        """Write the config file.

        Returns:
            True if written, False if the write failed
        """
        payload = {
            "enabled": bool(self._config.enabled),
            "groups": [
                group.model_dump(mode="json", by_alias=True)
                for group in self._config.groups
            ],
        }
        try:
            await asyncio.to_thread(_write_json, self._path, payload)
        except StoreError as e:
            logger.warning("Config file write failed: %s", e)
            return False
        return True

    async def is_enabled(self) -> bool:
        """Global automatic-check switch."""
        config = await self.load()
        return config.enabled

    async def set_enabled(self, enabled: bool) -> None:
        """Set the global automatic-check switch."""
        config = await self.load()
        config.enabled = enabled
        await self.save()

    async def get_group(self, channel_id: str) -> ChannelGroup | None:
        """Find the group for a channel, if any."""
        config = await self.load()
        return next((g for g in config.groups if g.channel_id == channel_id), None)

    async def ensure_group(self, channel_id: str) -> ChannelGroup:
        """Find or lazily create the group for a channel (not persisted here)."""
        group = await self.get_group(channel_id)
        if group is None:
            group = ChannelGroup(channel_id=channel_id)
            self._config.groups.append(group)
        return group

    async def add_subscription(
        self,
        channel_id: str,
        platform: Platform,
        project_id: str,
        interval: int | None = None,
    ) -> bool:
        """Add a subscription to a channel.

        Returns:
            True if added, False if the pair already exists in the channel
        """
        group = await self.ensure_group(channel_id)
        if any(sub.matches(platform, project_id) for sub in group.subs):
            return False

        group.subs.append(
            Subscription(
                platform=platform.value,
                project_id=project_id,
                interval=effective_interval(interval, self._default_interval),
            )
        )
        await self.save()
        return True

    async def remove_subscription(
        self, channel_id: str, platform: Platform, project_id: str
    ) -> bool:
        """Remove a subscription from a channel.

        Version state for the pair is left in the state store.

        Returns:
            True if removed, False if no such subscription exists
        """
        group = await self.get_group(channel_id)
        if group is None or not group.subs:
            return False

        before = len(group.subs)
        group.subs = [s for s in group.subs if not s.matches(platform, project_id)]
        if len(group.subs) == before:
            return False

        await self.save()
        return True

    async def set_channel_enabled(self, channel_id: str, enabled: bool) -> None:
        """Enable or disable automatic checks for one channel."""
        group = await self.ensure_group(channel_id)
        group.enabled = enabled
        await self.save()

    async def active_subscriptions(
        self, channel_id: str | None = None
    ) -> list[ActiveSubscription]:
        """List valid subscriptions of enabled groups in stored order.

        Args:
            channel_id: Restrict to one channel

        Returns:
            Resolved subscriptions with effective intervals
        """
        config = await self.load()
        result = []
        for group in config.groups:
            if channel_id is not None and group.channel_id != channel_id:
                continue
            if not group.enabled:
                continue
            for sub in group.subs:
                platform = sub.platform_key
                if platform is None or not sub.project_id:
                    continue
                result.append(
                    ActiveSubscription(
                        channel_id=group.channel_id,
                        platform=platform,
                        project_id=sub.project_id,
                        interval=effective_interval(
                            sub.interval, self._default_interval
                        ),
                    )
                )
        return result


class StateStore:
    """Last-seen version per (channel, platform, project).

    Entries are only ever created or updated; removing a subscription does
    not remove its entry.
    """

    def __init__(self, path: Path) -> None:
        """Initialize StateStore.

        Args:
            path: Path to the state JSON file
        """
        self._path = path
        self._states: dict[str, VersionState] = {}
        self._loaded = False
        self._saving = False

    @property
    def path(self) -> Path:
        """Path to the state file."""
        return self._path

    async def load(self) -> None:
        """Load the state file once. Unreadable files yield an empty map."""
        if self._loaded:
            return
        self._loaded = True

        try:
            data = await asyncio.to_thread(_read_json, self._path)
        except StoreError as e:
            logger.warning("State file unreadable, starting empty: %s", e)
            return

        if not isinstance(data, dict):
            return
        for key, value in data.items():
            if not isinstance(value, dict):
                continue
            last_version = value.get("lastVersion")
            self._states[key] = VersionState(
                last_version=last_version if isinstance(last_version, str) else None
            )

    async def save(self) -> bool:
        """Write the state file.

        A save requested while another is in flight is dropped.

        Returns:
            True if written, False if dropped or failed
        """
        if self._saving:
            logger.debug("State save already in progress, dropping this one")
            return False
        self._saving = True
        try:
            payload = {
                key: state.model_dump(by_alias=True)
                for key, state in self._states.items()
            }
            await asyncio.to_thread(_write_json, self._path, payload)
            return True
        except StoreError as e:
            logger.warning("State file write failed: %s", e)
            return False
        finally:
            self._saving = False

    async def get(
        self, channel_id: str, platform: Platform, project_id: str
    ) -> VersionState | None:
        """Get the stored state for a tuple, or None if never observed."""
        await self.load()
        return self._states.get(state_key(channel_id, platform, project_id))

    async def create(
        self, channel_id: str, platform: Platform, project_id: str, last_version: str
    ) -> None:
        """Create the state for a tuple and persist it."""
        await self._set(channel_id, platform, project_id, last_version)

    async def update(
        self, channel_id: str, platform: Platform, project_id: str, last_version: str
    ) -> None:
        """Update the state for a tuple and persist it."""
        await self._set(channel_id, platform, project_id, last_version)

    async def _set(
        self, channel_id: str, platform: Platform, project_id: str, last_version: str
    ) -> None:
        await self.load()
        key = state_key(channel_id, platform, project_id)
        self._states[key] = VersionState(last_version=last_version)
        await self.save()

    def snapshot(self) -> dict[str, str | None]:
        """Copy of the in-memory key -> lastVersion map."""
        return {key: state.last_version for key, state in self._states.items()}
