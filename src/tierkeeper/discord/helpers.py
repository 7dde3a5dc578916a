"""Discord bot helpers: member role adapters and audit posting."""

from __future__ import annotations

import logging

import discord

from tierkeeper.core.errors import RoleMutationError
from tierkeeper.core.tiers import HeldRole

logger = logging.getLogger(__name__)


class DiscordRoleMutator:
    """RoleMutator backed by a guild member.

    Uses ``discord.Object`` so a role missing from the cache is still sent
    to the API instead of silently skipped.
    """

    def __init__(self, member: discord.Member) -> None:
        self.member = member
        self.member_id = str(member.id)

    async def add_role(self, role_id: int, reason: str) -> None:
        try:
            await self.member.add_roles(discord.Object(id=role_id), reason=reason)
        except discord.HTTPException as exc:
            raise RoleMutationError(role_id, "add", str(exc)) from exc

    async def remove_role(self, role_id: int, reason: str) -> None:
        try:
            await self.member.remove_roles(discord.Object(id=role_id), reason=reason)
        except discord.HTTPException as exc:
            raise RoleMutationError(role_id, "remove", str(exc)) from exc


def held_roles_of(member: discord.Member) -> frozenset[HeldRole]:
    """Snapshot a member's roles for tier resolution."""
    return frozenset(HeldRole(id=role.id, name=role.name) for role in member.roles)


def has_role(member: discord.Member, role_id: int) -> bool:
    return any(role.id == role_id for role in member.roles)


async def post_audit(guild: discord.Guild | None, channel_id: int | None, content: str) -> bool:
    """Send *content* to the audit channel. No-op when unconfigured or unavailable.

    Returns True if the message was sent.
    """
    if channel_id is None or guild is None:
        return False
    channel = guild.get_channel(channel_id)
    if not isinstance(channel, discord.abc.Messageable):
        logger.debug("audit_channel_unavailable channel_id=%s", channel_id)
        return False
    try:
        await channel.send(content, allowed_mentions=discord.AllowedMentions.none())
    except discord.HTTPException:
        logger.warning("audit_post_failed channel_id=%s", channel_id, exc_info=True)
        return False
    return True
