"""Update card rendering and delivery."""

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from mcnotify.core.api import VersionFetcher
from mcnotify.core.exceptions import NotificationError
from mcnotify.core.models import (
    ActiveSubscription,
    Card,
    LatestVersion,
    Platform,
    ProjectDetail,
)

logger = logging.getLogger(__name__)

CHANGELOG_PREVIEW_LENGTH = 300

# === Collaborator Protocols ===


class CardRenderer(Protocol):
    """Protocol for update card renderers."""

    async def render(
        self, detail: ProjectDetail, latest: LatestVersion
    ) -> list[Card]:
        """Render one or more cards for a project update.

        Args:
            detail: Project detail
            latest: Latest version record

        Returns:
            Rendered cards, in delivery order
        """
        ...


class Bot(Protocol):
    """Protocol for a chat connection able to post to a channel."""

    platform: str

    async def send_message(self, channel_id: str, content: str) -> None:
        """Post an image (as a URI) to a channel on this connection."""
        ...


class Delivery(Protocol):
    """Protocol for delivering image content to a channel."""

    async def send(self, channel_id: str, content: str) -> bool:
        """Deliver content; returns False if no connection accepted it."""
        ...


# === Renderers ===


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"  # pragma: no cover


class PlainCardRenderer:
    """Renders a text card for environments without an image backend."""

    async def render(
        self, detail: ProjectDetail, latest: LatestVersion
    ) -> list[Card]:
        lines = [
            f"[{detail.source}] {detail.title}",
            f"New version: {latest.version}",
        ]
        if latest.loaders:
            lines.append(f"Loaders: {', '.join(latest.loaders)}")
        if latest.game_versions:
            lines.append(f"Game versions: {', '.join(latest.game_versions)}")
        if latest.file_name:
            lines.append(f"File: {latest.file_name} ({_format_size(latest.file_size)})")
        if latest.date_published is not None:
            lines.append(f"Published: {latest.date_published:%Y-%m-%d %H:%M} UTC")
        if latest.downloads is not None:
            lines.append(f"Downloads: {latest.downloads:,}")
        changelog = latest.changelog.strip()
        if changelog:
            if len(changelog) > CHANGELOG_PREVIEW_LENGTH:
                changelog = changelog[:CHANGELOG_PREVIEW_LENGTH].rstrip() + "..."
            lines.extend(["", changelog])
        if detail.url:
            lines.extend(["", detail.url])
        return [Card(data="\n".join(lines).encode("utf-8"), media_type="text/plain")]


# === Delivery ===


def parse_channel_id(channel_id: str) -> tuple[str, str] | None:
    """Split a "platform:channelId" target.

    Returns:
        (platform, channel) or None if there is no platform prefix
    """
    idx = channel_id.find(":")
    if idx <= 0:
        return None
    return channel_id[:idx], channel_id[idx + 1 :]


class ChannelRouter:
    """Delivers content through whichever bot connection owns a channel.

    A "platform:channelId" target goes to the bot of that platform. Without
    a prefix a single connection is used directly, and with several each is
    tried in turn until one accepts the message.
    """

    def __init__(self, bots: Sequence[Bot] = ()) -> None:
        self._bots: list[Bot] = list(bots)

    def add_bot(self, bot: Bot) -> None:
        """Register a bot connection."""
        self._bots.append(bot)

    async def send(self, channel_id: str, content: str) -> bool:
        parsed = parse_channel_id(channel_id)
        if parsed is not None:
            platform, target = parsed
            bot = next((b for b in self._bots if b.platform == platform), None)
            if bot is not None:
                await bot.send_message(target, content)
                return True

        if len(self._bots) == 1:
            await self._bots[0].send_message(channel_id, content)
            return True

        for bot in self._bots:
            try:
                await bot.send_message(channel_id, content)
                return True
            except Exception as e:
                logger.debug("Bot %s could not send to %s: %s", bot.platform, channel_id, e)

        logger.warning(
            "Cannot send to channel %s, use the platform:channelId form", channel_id
        )
        return False


# === Notifier ===


class Notifier:
    """Fetches project detail, renders update cards and delivers them."""

    CONTENT_TYPE = "mod"

    def __init__(
        self,
        fetchers: Mapping[Platform, VersionFetcher],
        delivery: Delivery,
        renderers: Mapping[Platform, CardRenderer] | None = None,
    ) -> None:
        """Initialize Notifier.

        Args:
            fetchers: Platform clients used to fetch project detail
            delivery: Channel delivery collaborator
            renderers: Card renderer per platform (plain text by default)
        """
        self._fetchers = fetchers
        self._delivery = delivery
        default = PlainCardRenderer()
        self._renderers: dict[Platform, CardRenderer] = {
            Platform.MODRINTH: default,
            Platform.CURSEFORGE: default,
            **(renderers or {}),
        }

    def _renderer_for(self, detail: ProjectDetail) -> CardRenderer:
        if detail.source == Platform.CURSEFORGE.display_name:
            return self._renderers[Platform.CURSEFORGE]
        return self._renderers[Platform.MODRINTH]

    async def send_update(
        self, sub: ActiveSubscription, latest: LatestVersion
    ) -> int:
        """Render and deliver the update card(s) for a subscription.

        Args:
            sub: Subscription whose project changed
            latest: Latest version record

        Returns:
            Number of cards delivered

        Raises:
            NotificationError: If fetching detail, rendering or delivery fails
        """
        try:
            detail = await self._fetchers[sub.platform].get_project(sub.project_id)
            detail = detail.model_copy(update={"content_type": self.CONTENT_TYPE})
            cards = await self._renderer_for(detail).render(detail, latest)
            for card in cards:
                if not await self._delivery.send(sub.channel_id, card.to_src()):
                    raise NotificationError(
                        f"No connection accepted the card for {sub.channel_id}",
                        channel_id=sub.channel_id,
                    )
        except NotificationError as e:
            logger.warning("Failed to send notification (%s): %s", sub.label, e)
            raise
        except Exception as e:
            logger.warning("Failed to send notification (%s): %s", sub.label, e)
            raise NotificationError(str(e), channel_id=sub.channel_id) from e

        logger.info(
            "Sent %d card(s) for %s %s to %s",
            len(cards),
            sub.label,
            latest.version,
            sub.channel_id,
        )
        return len(cards)
