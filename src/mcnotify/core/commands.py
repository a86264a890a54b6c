"""Chat commands for managing update subscriptions."""

import logging
from typing import cast

from mcnotify.core.auth import Authorizer, CommandContext
from mcnotify.core.manager import NotifyManager
from mcnotify.core.models import ActiveSubscription, Platform, effective_interval
from mcnotify.core.queue import TaskQueue
from mcnotify.core.store import ConfigStore

logger = logging.getLogger(__name__)

MISSING_ARGS = "Missing arguments."
BAD_PLATFORM = "Invalid platform, use mr or cf."
NO_CHANNEL = "This command can only be used in a channel."
PERMISSION_DENIED = "Permission denied."
EMPTY_PROJECT_ID = "Project id must not be empty."
NO_SUBSCRIPTIONS = "No subscriptions."
NOT_FOUND = "Subscription not found."
NO_UPDATES = "No updates."

ON_VALUES = {"1", "on", "true", "yes", "y"}
OFF_VALUES = {"0", "off", "false", "no", "n"}

HELP_TEXT = "\n".join(
    [
        "notify usage:",
        "1) notify.add <platform> <projectId>     add a subscription",
        "2) notify.remove <platform> <projectId>  remove a subscription",
        "3) notify.list                           list subscriptions",
        "4) notify.enable <onoff>                 enable/disable this channel",
        "5) notify.check [arg] [-b]               check for updates now",
        "Platforms: mr = Modrinth, cf = CurseForge",
        "Arguments:",
        "- <platform>: platform code, mr or cf",
        "- <projectId>: project id on the platform (not the display name)",
        "- <onoff>: on/off or true/false",
        "- [arg]: list number or projectId of the subscription to check",
        "- -b: send the latest card even if nothing changed",
    ]
)


def parse_on_off(value: str | None) -> bool | None:
    """Parse an on/off switch argument.

    Returns:
        True, False, or None if the value is not recognized
    """
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    if text in ON_VALUES:
        return True
    if text in OFF_VALUES:
        return False
    return None


class NotifyCommands:
    """add/remove/list/enable/check/help, each returning the reply text."""

    def __init__(
        self,
        manager: NotifyManager,
        queue: TaskQueue,
        authorizer: Authorizer | None = None,
    ) -> None:
        """Initialize NotifyCommands.

        Args:
            manager: Check engine holding the stores
            queue: Task queue shared with the scheduler
            authorizer: Permission gate (from settings.admin_authority by default)
        """
        self._manager = manager
        self._queue = queue
        self._authorizer = authorizer or Authorizer(manager.settings.admin_authority)

    @property
    def _store(self) -> ConfigStore:
        return self._manager.config_store

    async def _deny(self, ctx: CommandContext) -> str | None:
        """Refusal reply, or None when ctx has a channel and may manage it."""
        if not ctx.channel_id:
            return NO_CHANNEL
        if not await self._authorizer.can_manage(ctx):
            return PERMISSION_DENIED
        return None

    async def _parse_target(
        self, ctx: CommandContext, platform: str | None, project_id: str | None
    ) -> tuple[Platform, str] | str:
        """Validate add/remove arguments; returns the pair or an error reply."""
        await self._store.load()
        if not platform or not project_id:
            return MISSING_ARGS
        platform_key = Platform.parse(platform)
        if platform_key is None:
            return BAD_PLATFORM
        if denied := await self._deny(ctx):
            return denied
        pid = project_id.strip()
        if not pid:
            return EMPTY_PROJECT_ID
        return platform_key, pid

    async def add(
        self, ctx: CommandContext, platform: str | None, project_id: str | None
    ) -> str:
        """Subscribe the invoking channel to a project."""
        target = await self._parse_target(ctx, platform, project_id)
        if isinstance(target, str):
            return target
        platform_key, pid = target
        channel_id = cast(str, ctx.channel_id)

        if not await self._store.add_subscription(channel_id, platform_key, pid):
            return f"Subscription already exists: {platform_key.value}:{pid}"
        logger.info("Subscribed %s to %s:%s", channel_id, platform_key.value, pid)
        return f"Subscription added: {platform_key.value}:{pid}"

    async def remove(
        self, ctx: CommandContext, platform: str | None, project_id: str | None
    ) -> str:
        """Unsubscribe the invoking channel from a project."""
        target = await self._parse_target(ctx, platform, project_id)
        if isinstance(target, str):
            return target
        platform_key, pid = target
        channel_id = cast(str, ctx.channel_id)

        if not await self._store.remove_subscription(channel_id, platform_key, pid):
            return NOT_FOUND
        logger.info("Unsubscribed %s from %s:%s", channel_id, platform_key.value, pid)
        return f"Subscription removed: {platform_key.value}:{pid}"

    async def list_subscriptions(self, ctx: CommandContext) -> str:
        """List the invoking channel's subscriptions, numbered."""
        await self._store.load()
        if denied := await self._deny(ctx):
            return denied
        channel_id = cast(str, ctx.channel_id)

        group = await self._store.get_group(channel_id)
        if group is None:
            return NO_SUBSCRIPTIONS
        # Numbering must match the selection used by check
        subs = [s for s in group.subs if s.platform_key is not None and s.project_id]
        if not subs:
            if not group.enabled:
                return "Notifications are disabled for this channel. No subscriptions."
            return NO_SUBSCRIPTIONS

        status = "enabled" if group.enabled else "disabled"
        lines = [f"Channel notifications: {status}"]
        for index, sub in enumerate(subs, start=1):
            code = sub.platform_key.value if sub.platform_key else sub.platform
            interval = effective_interval(sub.interval, self._store.default_interval)
            lines.append(
                f"{index}. {code}:{sub.project_id} ({round(interval / 60000)} min)"
            )
        return "\n".join(lines)

    async def enable(self, ctx: CommandContext, onoff: str | None) -> str:
        """Enable or disable automatic checks for the invoking channel."""
        await self._store.load()
        if denied := await self._deny(ctx):
            return denied
        channel_id = cast(str, ctx.channel_id)

        flag = parse_on_off(onoff)
        if flag is None:
            return "Invalid onoff argument, use on/off or true/false."
        await self._store.set_channel_enabled(channel_id, flag)
        state = "enabled" if flag else "disabled"
        logger.info("Notifications %s for %s", state, channel_id)
        if flag:
            return "Notifications enabled for this channel."
        return "Notifications disabled for this channel."

    def _select(
        self, subs: list[ActiveSubscription], arg: str
    ) -> list[ActiveSubscription] | str:
        text = arg.strip()
        if text.isdigit():
            index = int(text)
            if 1 <= index <= len(subs):
                return [subs[index - 1]]
        match = next((s for s in subs if s.project_id == text), None)
        if match is not None:
            return [match]
        if text.isdigit():
            return "No subscription with that number."
        return "No subscription with that project id."

    async def check(
        self, ctx: CommandContext, arg: str | None = None, force: bool = False
    ) -> str:
        """Check the invoking channel's subscriptions now.

        Args:
            ctx: Command context
            arg: 1-based list number or project id; all subscriptions if omitted
            force: Send the latest card even if the version is unchanged

        Returns:
            Reply text
        """
        await self._store.load()
        if denied := await self._deny(ctx):
            return denied
        channel_id = cast(str, ctx.channel_id)

        subs = await self._store.active_subscriptions(channel_id)
        if not subs:
            return NO_SUBSCRIPTIONS

        targets = subs
        if arg:
            selected = self._select(subs, arg)
            if isinstance(selected, str):
                return selected
            targets = selected

        async def run() -> tuple[int, int]:
            sent = failed = 0
            for sub in targets:
                try:
                    result = await self._manager.check_one(sub, force=force)
                except Exception as e:
                    logger.warning("Check failed (%s): %s", sub.label, e)
                    failed += 1
                    continue
                if result.sent:
                    sent += 1
            return sent, failed

        sent, failed = await self._queue.submit("notify-check", run)
        if sent:
            return f"Sent {sent} update card(s)."
        if failed:
            return f"{NO_UPDATES} ({failed} check(s) failed)"
        return NO_UPDATES

    def help(self) -> str:
        """Usage text."""
        return HELP_TEXT
