"""Role resolution and permission checks for notify commands."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from mcnotify.core.models import RoleLevel

logger = logging.getLogger(__name__)

ROLE_NAMES = {
    "owner": RoleLevel.OWNER,
    "admin": RoleLevel.ADMIN,
    "member": RoleLevel.MEMBER,
}


# === Role sources ===


@dataclass(frozen=True)
class RoleRef:
    """A structured role entry carrying an id and/or a name."""

    id: str | None = None
    name: str | None = None


Role = str | RoleRef


@dataclass(frozen=True)
class MemberRoles:
    """Role list cached on the session's guild member."""

    roles: tuple[Role, ...] = ()


@dataclass(frozen=True)
class MemberRole:
    """Single role string cached on the session's guild member."""

    role: str


@dataclass(frozen=True)
class SenderRole:
    """Sender role reported by the raw event (OneBot style)."""

    role: str


@dataclass(frozen=True)
class EventMember:
    """Member block of the raw event, or a member fetched from the platform."""

    role: str | None = None
    roles: tuple[Role, ...] = ()


RoleSource = MemberRoles | MemberRole | SenderRole | EventMember


def _role_names(source: RoleSource) -> set[str]:
    names: set[str] = set()
    roles: tuple[Role, ...] = ()

    if isinstance(source, (MemberRole, SenderRole)):
        names.add(source.role)
    elif isinstance(source, MemberRoles):
        roles = source.roles
    elif isinstance(source, EventMember):
        if source.role:
            names.add(source.role)
        roles = source.roles

    for role in roles:
        if isinstance(role, RoleRef):
            names.update(v for v in (role.id, role.name) if v)
        else:
            names.add(role)
    return names


def level_from_names(names: Iterable[str]) -> RoleLevel:
    """Highest role level among the given role names."""
    return max((ROLE_NAMES.get(n, RoleLevel.NONE) for n in names), default=RoleLevel.NONE)


def resolve_role_level(sources: Iterable[RoleSource]) -> RoleLevel:
    """Resolve the role level from every available role source."""
    names: set[str] = set()
    for source in sources:
        names |= _role_names(source)
    return level_from_names(names)


# === Context ===


class MembershipLookup(Protocol):
    """Protocol for fetching a guild member from the chat platform."""

    async def get_guild_member(self, guild_id: str, user_id: str) -> EventMember:
        """Fetch the member's role information."""
        ...


@dataclass
class CommandContext:
    """Who invoked a command, and where."""

    channel_id: str | None
    user_id: str | None = None
    guild_id: str | None = None
    role_sources: tuple[RoleSource, ...] = ()
    lookup: MembershipLookup | None = None


class Authorizer:
    """Gates notify commands behind a minimum role.

    Authority 1 (or lower) lets everyone through, 2 requires admin and 3
    requires the channel owner.
    """

    def __init__(self, authority: int = 3) -> None:
        self.authority = authority

    async def role_level(self, ctx: CommandContext) -> RoleLevel:
        """Resolve the invoker's role level.

        The membership lookup is only consulted when cached role data yields
        nothing. A failing lookup counts as no role.
        """
        level = resolve_role_level(ctx.role_sources)
        if level > RoleLevel.NONE:
            return level
        if ctx.lookup is None or not ctx.guild_id or not ctx.user_id:
            return level

        try:
            member = await ctx.lookup.get_guild_member(ctx.guild_id, ctx.user_id)
        except Exception as e:
            logger.debug("Member lookup failed for %s: %s", ctx.user_id, e)
            return level
        return resolve_role_level([member])

    async def can_manage(self, ctx: CommandContext, channel_id: str | None = None) -> bool:
        """Check whether the invoker may manage subscriptions.

        Args:
            ctx: Command context
            channel_id: Channel being managed; must be the invoking channel

        Returns:
            True if permitted
        """
        if self.authority <= 1:
            return True
        if channel_id and channel_id != ctx.channel_id:
            return False

        level = await self.role_level(ctx)
        if self.authority <= 2:
            return level >= RoleLevel.ADMIN

        allowed = level >= RoleLevel.OWNER
        if not allowed:
            logger.info(
                "Permission denied: authority=%d, level=%s, user=%s",
                self.authority,
                level.name,
                ctx.user_id,
            )
        return allowed
