"""
discord.py adapter for the workspace capability set.

One instance wraps one ``discord.Guild``. Identifiers cross the boundary as
strings; platform errors are re-raised as ``WorkspaceError``.
"""

import logging
from functools import wraps
from typing import Dict, Iterable, List, Optional, Union

import discord
from discord import CategoryChannel, Guild, HTTPException, PermissionOverwrite as DiscordOverwrite

from models.permissions import Permission, PermissionOverwrite

from .base import ChannelInfo, ChannelKind, MemberInfo, RoleInfo, WorkspaceError, WorkspacePlatform


logger = logging.getLogger(__name__)

Target = Union[discord.Role, discord.Member, discord.Object]


def _platform_call(func):
    """Translate discord.py HTTP failures into WorkspaceError."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except HTTPException as e:
            raise WorkspaceError(f"{func.__name__} failed: {e}") from e
    return wrapper


def to_discord_overwrite(entry: PermissionOverwrite) -> DiscordOverwrite:
    flags: Dict[str, bool] = {p.value: True for p in entry.allow}
    flags.update({p.value: False for p in entry.deny})
    return DiscordOverwrite(**flags)


def from_discord_overwrite(target_id: str, entry: DiscordOverwrite) -> PermissionOverwrite:
    allow, deny = entry.pair()
    return PermissionOverwrite(
        target_id=target_id,
        allow=frozenset(p for p in Permission if getattr(allow, p.value)),
        deny=frozenset(p for p in Permission if getattr(deny, p.value)),
    )


def _channel_kind(channel: discord.abc.GuildChannel) -> ChannelKind:
    if isinstance(channel, CategoryChannel):
        return ChannelKind.CATEGORY
    if isinstance(channel, discord.VoiceChannel) or isinstance(channel, discord.StageChannel):
        return ChannelKind.VOICE
    return ChannelKind.TEXT


class DiscordWorkspace(WorkspacePlatform):
    """Workspace backed by a live Discord guild."""

    def __init__(self, guild: Guild):
        self.guild = guild
        # Guild.create_role does not populate the guild cache until the gateway event arrives.
        self._created_roles: Dict[str, discord.Role] = {}

    @property
    def organization_id(self) -> str:
        return str(self.guild.id)

    @property
    def organization_name(self) -> str:
        return self.guild.name

    @property
    def default_role_id(self) -> str:
        return str(self.guild.default_role.id)

    def _role(self, role_id: str) -> Optional[discord.Role]:
        return self._created_roles.get(role_id) or self.guild.get_role(int(role_id))

    def _target(self, target_id: str) -> Target:
        role = self._role(target_id)
        if role is not None:
            return role
        snowflake = int(target_id)
        return self.guild.get_member(snowflake) or discord.Object(id=snowflake)

    def _overwrites(self, overwrites: Iterable[PermissionOverwrite]) -> Dict[Target, DiscordOverwrite]:
        return {self._target(entry.target_id): to_discord_overwrite(entry) for entry in overwrites}

    def _info(self, channel: discord.abc.GuildChannel) -> ChannelInfo:
        return ChannelInfo(
            id=str(channel.id),
            name=channel.name,
            kind=_channel_kind(channel),
            parent_id=str(channel.category_id) if getattr(channel, "category_id", None) else None,
            overwrites=[from_discord_overwrite(str(t.id), ow) for t, ow in channel.overwrites.items()],
        )

    async def _get_channel(self, channel_id: str) -> discord.abc.GuildChannel:
        channel = self.guild.get_channel(int(channel_id))
        if channel is None:
            try:
                channel = await self.guild.fetch_channel(int(channel_id))
            except discord.NotFound as e:
                raise WorkspaceError(f"Unknown channel {channel_id}") from e
        return channel

    async def _get_member(self, user_id: str) -> discord.Member:
        member = self.guild.get_member(int(user_id))
        if member is None:
            try:
                member = await self.guild.fetch_member(int(user_id))
            except discord.NotFound as e:
                raise WorkspaceError(f"Unknown member {user_id}") from e
        return member

    def _manageable(self, member: discord.Member) -> bool:
        me = self.guild.me
        if me is None or member.id == self.guild.owner_id:
            return False
        return me.guild_permissions.manage_nicknames and me.top_role > member.top_role

    def _member_info(self, member: discord.Member) -> MemberInfo:
        return MemberInfo(
            id=str(member.id),
            tag=str(member),
            display_name=member.display_name,
            role_ids=[str(r.id) for r in member.roles],
            manageable=self._manageable(member),
        )

    # Channels

    @_platform_call
    async def list_channels(self) -> List[ChannelInfo]:
        channels = await self.guild.fetch_channels()
        return [self._info(c) for c in channels]

    @_platform_call
    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        try:
            return self._info(await self._get_channel(channel_id))
        except WorkspaceError:
            return None

    @_platform_call
    async def create_category(self, name: str, overwrites: Iterable[PermissionOverwrite] = ()) -> ChannelInfo:
        mapped = self._overwrites(overwrites)
        # discord.py rejects overwrites=None
        kwargs = {"overwrites": mapped} if mapped else {}
        category = await self.guild.create_category(name, **kwargs)
        logger.info(f"Created category {name} ({category.id})")
        return self._info(category)

    @_platform_call
    async def create_channel(
        self,
        name: str,
        kind: ChannelKind,
        parent_id: Optional[str] = None,
        overwrites: Optional[Iterable[PermissionOverwrite]] = None,
    ) -> ChannelInfo:
        category = await self._get_channel(parent_id) if parent_id else None
        kwargs = {}
        if overwrites is not None:
            kwargs["overwrites"] = self._overwrites(overwrites)

        if kind == ChannelKind.TEXT:
            channel = await self.guild.create_text_channel(name, category=category, **kwargs)
        elif kind == ChannelKind.VOICE:
            channel = await self.guild.create_voice_channel(name, category=category, **kwargs)
        else:
            raise WorkspaceError("Use create_category for categories")

        logger.debug(f"Created {kind.value} channel {name} ({channel.id})")
        return self._info(channel)

    @_platform_call
    async def delete_channel(self, channel_id: str) -> None:
        channel = await self._get_channel(channel_id)
        await channel.delete()

    @_platform_call
    async def rename_channel(self, channel_id: str, name: str) -> None:
        channel = await self._get_channel(channel_id)
        await channel.edit(name=name)

    @_platform_call
    async def edit_permissions(
        self,
        channel_id: str,
        target_id: str,
        allow: Iterable[Permission] = (),
        deny: Iterable[Permission] = (),
    ) -> None:
        channel = await self._get_channel(channel_id)
        target = self._target(target_id)
        current = channel.overwrites_for(target)
        for permission in allow:
            setattr(current, permission.value, True)
        for permission in deny:
            setattr(current, permission.value, False)
        await channel.set_permissions(target, overwrite=current)

    # Roles

    @_platform_call
    async def list_roles(self) -> List[RoleInfo]:
        return [
            RoleInfo(
                id=str(r.id),
                name=r.name,
                color=r.colour.value,
                permissions=frozenset(p for p in Permission if getattr(r.permissions, p.value)),
            )
            for r in self.guild.roles
        ]

    @_platform_call
    async def create_role(
        self,
        name: str,
        color: int = 0,
        permissions: Iterable[Permission] = (),
        reason: Optional[str] = None,
    ) -> RoleInfo:
        permissions = frozenset(permissions)
        role = await self.guild.create_role(
            name=name,
            colour=discord.Colour(color),
            permissions=discord.Permissions(**{p.value: True for p in permissions}),
            reason=reason,
        )
        self._created_roles[str(role.id)] = role
        logger.info(f"Created role {name} ({role.id})")
        return RoleInfo(id=str(role.id), name=role.name, color=color, permissions=permissions)

    @_platform_call
    async def delete_role(self, role_id: str) -> None:
        role = self._role(role_id)
        if role is None:
            raise WorkspaceError(f"Unknown role {role_id}")
        await role.delete()
        self._created_roles.pop(role_id, None)

    # Members

    @_platform_call
    async def fetch_member(self, user_id: str) -> Optional[MemberInfo]:
        try:
            return self._member_info(await self._get_member(user_id))
        except WorkspaceError:
            return None

    @_platform_call
    async def list_members(self) -> List[MemberInfo]:
        return [self._member_info(m) async for m in self.guild.fetch_members(limit=None)]

    @_platform_call
    async def add_member_role(self, user_id: str, role_id: str) -> None:
        member = await self._get_member(user_id)
        await member.add_roles(discord.Object(id=int(role_id)))

    @_platform_call
    async def remove_member_role(self, user_id: str, role_id: str) -> None:
        member = await self._get_member(user_id)
        await member.remove_roles(discord.Object(id=int(role_id)))

    @_platform_call
    async def set_nickname(self, user_id: str, nickname: str) -> None:
        member = await self._get_member(user_id)
        await member.edit(nick=nickname)

    # Messages

    @_platform_call
    async def bulk_delete_messages(self, channel_id: str, limit: int) -> int:
        channel = await self._get_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise WorkspaceError(f"Channel {channel_id} has no messages")
        deleted = await channel.purge(limit=limit, bulk=True)
        return len(deleted)
