"""Data models for mcnotify."""

import base64
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Interval constants are in milliseconds, matching the persisted config file.
MIN_INTERVAL_MS = 60 * 1000
DEFAULT_INTERVAL_MS = 30 * 60 * 1000


class Platform(str, Enum):
    """Supported content platforms."""

    MODRINTH = "mr"
    CURSEFORGE = "cf"

    @classmethod
    def parse(cls, value: object) -> "Platform | None":
        """Parse a platform code or name.

        Args:
            value: "mr", "cf", "modrinth" or "curseforge" (case-insensitive)

        Returns:
            Platform, or None if the value is not recognized
        """
        if isinstance(value, Platform):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip().lower()
        aliases = {
            "mr": cls.MODRINTH,
            "modrinth": cls.MODRINTH,
            "cf": cls.CURSEFORGE,
            "curseforge": cls.CURSEFORGE,
        }
        return aliases.get(text)

    @property
    def display_name(self) -> str:
        """Human readable platform name."""
        return "Modrinth" if self is Platform.MODRINTH else "CurseForge"


class RoleLevel(IntEnum):
    """Chat role levels, ordered by privilege."""

    NONE = 0
    MEMBER = 1
    ADMIN = 2
    OWNER = 3


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def effective_interval(raw: int | None, default: int | None = None) -> int:
    """Resolve the interval actually used for a subscription.

    Args:
        raw: Interval stored on the subscription (ms), may be None
        default: Global default interval (ms)

    Returns:
        Interval in milliseconds, never below MIN_INTERVAL_MS
    """
    value = raw if raw is not None and raw > 0 else None
    fallback = default if default is not None and default > 0 else None
    return max(MIN_INTERVAL_MS, value or fallback or DEFAULT_INTERVAL_MS)


# Persisted config models


class Subscription(BaseModel):
    """One tracked project inside a channel group."""

    model_config = ConfigDict(populate_by_name=True)

    platform: str = ""
    project_id: str = Field(default="", alias="projectId")
    interval: int | None = None

    @field_validator("platform", "project_id", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return _coerce_str(value)

    @field_validator("platform")
    @classmethod
    def _lower_platform(cls, value: str) -> str:
        return value.lower()

    @field_validator("interval", mode="before")
    @classmethod
    def _numeric_interval(cls, value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and math.isfinite(value):
            return int(value)
        return None

    @property
    def platform_key(self) -> Platform | None:
        """Parsed platform, or None if the stored code is invalid."""
        return Platform.parse(self.platform)

    def matches(self, platform: Platform, project_id: str) -> bool:
        """Check whether this subscription is the given (platform, project) pair."""
        return self.platform_key is platform and self.project_id == project_id


class ChannelGroup(BaseModel):
    """Subscriptions and enable flag for one delivery channel."""

    model_config = ConfigDict(populate_by_name=True)

    channel_id: str = Field(alias="channelId", min_length=1)
    enabled: bool = True
    subs: list[Subscription] = Field(default_factory=list)

    @field_validator("channel_id", mode="before")
    @classmethod
    def _channel_str(cls, value: Any) -> str:
        return _coerce_str(value)

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled_bool(cls, value: Any) -> bool:
        return value if isinstance(value, bool) else True

    @field_validator("subs", mode="before")
    @classmethod
    def _subs_list(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]


class NotifyConfig(BaseModel):
    """Process-wide notify configuration persisted to the config file."""

    enabled: bool = False
    groups: list[ChannelGroup] = Field(default_factory=list)


class VersionState(BaseModel):
    """Last seen version for one (channel, platform, project) tuple."""

    model_config = ConfigDict(populate_by_name=True)

    last_version: str | None = Field(default=None, alias="lastVersion")


@dataclass(frozen=True)
class ActiveSubscription:
    """A validated subscription resolved against its channel and defaults."""

    channel_id: str
    platform: Platform
    project_id: str
    interval: int

    @property
    def key(self) -> str:
        """Composite key used by the state file and the last-check map."""
        return state_key(self.channel_id, self.platform, self.project_id)

    @property
    def label(self) -> str:
        """Short "platform:projectId" label."""
        return f"{self.platform.value}:{self.project_id}"


def state_key(channel_id: str, platform: Platform, project_id: str) -> str:
    """Build the "<channelId>|<platform>|<projectId>" state key."""
    return f"{channel_id}|{platform.value}|{project_id}"


# Fetch results


class LatestVersion(BaseModel):
    """Platform-agnostic projection of a project's newest release."""

    version_id: str
    version: str
    changelog: str = ""
    downloads: int | None = None
    date_published: datetime | None = None
    release_type: str | None = None
    loaders: list[str] = Field(default_factory=list)
    game_versions: list[str] = Field(default_factory=list)
    file_name: str = ""
    file_size: int = 0


class ProjectDetail(BaseModel):
    """Project detail merged with the latest version for card rendering."""

    id: str
    slug: str | None = None
    title: str
    description: str = ""
    downloads: int | None = None
    icon_url: str | None = None
    url: str | None = None
    source: str
    content_type: str | None = None


class Card(BaseModel):
    """A rendered notification card."""

    data: bytes
    media_type: str = "image/png"

    def to_src(self) -> str:
        """Encode the card as a data URI suitable for chat image elements."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


# Modrinth API data models


class ModrinthFile(BaseModel):
    """File entry of a Modrinth version."""

    url: str | None = None
    filename: str = ""
    size: int = 0
    primary: bool = False


class ModrinthVersion(BaseModel):
    """Version information from Modrinth API."""

    id: str
    name: str | None = None
    version_number: str | None = None
    version_type: str | None = None
    changelog: str | None = None
    downloads: int | None = None
    date_published: datetime | None = None
    loaders: list[str] = Field(default_factory=list)
    game_versions: list[str] = Field(default_factory=list)
    files: list[ModrinthFile] = Field(default_factory=list)


class ModrinthProject(BaseModel):
    """Project information from Modrinth API."""

    id: str
    slug: str
    title: str
    description: str = ""
    project_type: str | None = None
    downloads: int | None = None
    icon_url: str | None = None


# CurseForge API data models


class CurseForgeFile(BaseModel):
    """File entry from the CurseForge files endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    display_name: str | None = Field(default=None, alias="displayName")
    file_name: str | None = Field(default=None, alias="fileName")
    changelog: str | None = None
    download_count: int | None = Field(default=None, alias="downloadCount")
    file_date: datetime | None = Field(default=None, alias="fileDate")
    release_type: int | None = Field(default=None, alias="releaseType")
    file_length: int | None = Field(default=None, alias="fileLength")
    game_versions: list[str] = Field(default_factory=list, alias="gameVersions")


class CurseForgeLinks(BaseModel):
    """Links block of a CurseForge mod."""

    model_config = ConfigDict(populate_by_name=True)

    website_url: str | None = Field(default=None, alias="websiteUrl")


class CurseForgeLogo(BaseModel):
    """Logo block of a CurseForge mod."""

    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")


class CurseForgeMod(BaseModel):
    """Mod information from CurseForge API."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    name: str
    slug: str | None = None
    summary: str = ""
    download_count: int | None = Field(default=None, alias="downloadCount")
    links: CurseForgeLinks | None = None
    logo: CurseForgeLogo | None = None


# Check results


class CheckStats(BaseModel):
    """Tally of one checking pass."""

    checked: int = 0
    updated: int = 0
    no_change: int = 0
    skipped: int = 0
    failed: int = 0


class CheckOneResult(BaseModel):
    """Result of checking a single subscription on demand."""

    sent: bool = False
    updated: bool = False
