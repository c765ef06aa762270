"""
In-memory workspace.

Behaves like a small organization on the platform: channels, categories,
roles and members live in dictionaries. Backs the CLI dry run and tests.
"""

import itertools
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from models.permissions import Permission, PermissionOverwrite, find_overwrite, overwrite, replace_overwrite

from .base import ChannelInfo, ChannelKind, MemberInfo, RoleInfo, WorkspaceError, WorkspacePlatform


logger = logging.getLogger(__name__)


class InMemoryWorkspace(WorkspacePlatform):
    """Dictionary-backed organization that records every mutation it receives."""

    def __init__(self, organization_id: str = "1000", organization_name: str = "Dry Run"):
        self._organization_id = organization_id
        self._organization_name = organization_name
        self._ids = itertools.count(int(organization_id) + 1 if organization_id.isdigit() else 1)
        self.channels: Dict[str, ChannelInfo] = {}
        self.roles: Dict[str, RoleInfo] = {
            organization_id: RoleInfo(id=organization_id, name="@everyone"),
        }
        self.members: Dict[str, MemberInfo] = {}
        self.messages: Dict[str, int] = {}
        self.mutations: List[Tuple[str, str]] = []

    @property
    def organization_id(self) -> str:
        return self._organization_id

    @property
    def organization_name(self) -> str:
        return self._organization_name

    def _next_id(self) -> str:
        return str(next(self._ids))

    def _record(self, operation: str, subject: str) -> None:
        self.mutations.append((operation, subject))
        logger.debug(f"{operation}: {subject}")

    def _channel(self, channel_id: str) -> ChannelInfo:
        channel = self.channels.get(channel_id)
        if channel is None:
            raise WorkspaceError(f"Unknown channel {channel_id}")
        return channel

    def _member(self, user_id: str) -> MemberInfo:
        member = self.members.get(user_id)
        if member is None:
            raise WorkspaceError(f"Unknown member {user_id}")
        return member

    # Helpers for inspection

    def children_of(self, category_id: str) -> List[ChannelInfo]:
        return [c for c in self.channels.values() if c.parent_id == category_id]

    def categories(self) -> List[ChannelInfo]:
        return [c for c in self.channels.values() if c.is_category]

    def find_by_name(self, name: str) -> Optional[ChannelInfo]:
        for channel in self.channels.values():
            if channel.name == name:
                return channel
        return None

    def add_member(self, user_id: str, tag: str, manageable: bool = True) -> MemberInfo:
        member = MemberInfo(id=user_id, tag=tag, display_name=tag.split("#")[0], manageable=manageable)
        self.members[user_id] = member
        return member

    def add_channel(self, name: str, kind: ChannelKind = ChannelKind.TEXT, parent_id: Optional[str] = None) -> ChannelInfo:
        """Seed a channel without recording a mutation."""
        channel = ChannelInfo(id=self._next_id(), name=name, kind=kind, parent_id=parent_id)
        self.channels[channel.id] = channel
        return channel

    # Channels

    async def list_channels(self) -> List[ChannelInfo]:
        return list(self.channels.values())

    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        return self.channels.get(channel_id)

    async def create_category(self, name: str, overwrites: Iterable[PermissionOverwrite] = ()) -> ChannelInfo:
        category = ChannelInfo(id=self._next_id(), name=name, kind=ChannelKind.CATEGORY, overwrites=list(overwrites))
        self.channels[category.id] = category
        self._record("create_category", name)
        return category

    async def create_channel(
        self,
        name: str,
        kind: ChannelKind,
        parent_id: Optional[str] = None,
        overwrites: Optional[Iterable[PermissionOverwrite]] = None,
    ) -> ChannelInfo:
        if kind == ChannelKind.CATEGORY:
            raise WorkspaceError("Use create_category for categories")
        if overwrites is None:
            overwrites = list(self._channel(parent_id).overwrites) if parent_id else []
        channel = ChannelInfo(id=self._next_id(), name=name, kind=kind, parent_id=parent_id, overwrites=list(overwrites))
        self.channels[channel.id] = channel
        self._record("create_channel", name)
        return channel

    async def delete_channel(self, channel_id: str) -> None:
        channel = self._channel(channel_id)
        del self.channels[channel_id]
        # Children of a deleted category are kept, detached.
        for child in self.children_of(channel_id):
            child.parent_id = None
        self._record("delete_channel", channel.name)

    async def rename_channel(self, channel_id: str, name: str) -> None:
        channel = self._channel(channel_id)
        self._record("rename_channel", f"{channel.name} -> {name}")
        channel.name = name

    async def edit_permissions(
        self,
        channel_id: str,
        target_id: str,
        allow: Iterable[Permission] = (),
        deny: Iterable[Permission] = (),
    ) -> None:
        channel = self._channel(channel_id)
        current = find_overwrite(channel.overwrites, target_id) or overwrite(target_id)
        channel.overwrites = replace_overwrite(channel.overwrites, current.merged_with(allow, deny))
        self._record("edit_permissions", f"{channel.name}:{target_id}")

    # Roles

    async def list_roles(self) -> List[RoleInfo]:
        return list(self.roles.values())

    async def create_role(
        self,
        name: str,
        color: int = 0,
        permissions: Iterable[Permission] = (),
        reason: Optional[str] = None,
    ) -> RoleInfo:
        role = RoleInfo(id=self._next_id(), name=name, color=color, permissions=frozenset(permissions))
        self.roles[role.id] = role
        self._record("create_role", name)
        return role

    async def delete_role(self, role_id: str) -> None:
        role = self.roles.pop(role_id, None)
        if role is None:
            raise WorkspaceError(f"Unknown role {role_id}")
        self._record("delete_role", role.name)

    # Members

    async def fetch_member(self, user_id: str) -> Optional[MemberInfo]:
        return self.members.get(user_id)

    async def list_members(self) -> List[MemberInfo]:
        return list(self.members.values())

    async def add_member_role(self, user_id: str, role_id: str) -> None:
        member = self._member(user_id)
        if role_id not in self.roles:
            raise WorkspaceError(f"Unknown role {role_id}")
        if role_id not in member.role_ids:
            member.role_ids.append(role_id)
        self._record("add_member_role", f"{user_id}:{role_id}")

    async def remove_member_role(self, user_id: str, role_id: str) -> None:
        member = self._member(user_id)
        if role_id not in member.role_ids:
            raise WorkspaceError(f"Member {user_id} does not have role {role_id}")
        member.role_ids.remove(role_id)
        self._record("remove_member_role", f"{user_id}:{role_id}")

    async def set_nickname(self, user_id: str, nickname: str) -> None:
        member = self._member(user_id)
        if not member.manageable:
            raise WorkspaceError(f"Member {user_id} cannot be edited")
        member.display_name = nickname
        self._record("set_nickname", f"{user_id}:{nickname}")

    # Messages

    async def bulk_delete_messages(self, channel_id: str, limit: int) -> int:
        self._channel(channel_id)
        available = self.messages.get(channel_id, 0)
        removed = min(available, limit)
        self.messages[channel_id] = available - removed
        self._record("bulk_delete_messages", f"{channel_id}:{removed}")
        return removed
