"""
Capability set of the remote workspace (one organization on the chat platform).

The provisioning engine only talks to this interface. Calls are assumed to be
rate limited by the platform; pacing is the caller's job.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from models.permissions import Permission, PermissionOverwrite


class ChannelKind(str, Enum):
    CATEGORY = "category"
    TEXT = "text"
    VOICE = "voice"


@dataclass
class ChannelInfo:
    """A category or channel as seen by the engine."""
    id: str
    name: str
    kind: ChannelKind
    parent_id: Optional[str] = None
    overwrites: List[PermissionOverwrite] = field(default_factory=list)

    @property
    def is_category(self) -> bool:
        return self.kind == ChannelKind.CATEGORY


@dataclass
class RoleInfo:
    id: str
    name: str
    color: int = 0
    permissions: FrozenSet[Permission] = frozenset()


@dataclass
class MemberInfo:
    id: str
    tag: str
    display_name: str
    role_ids: List[str] = field(default_factory=list)
    manageable: bool = True


class WorkspaceError(Exception):
    """Raised when the platform rejects a call."""
    pass


class WorkspacePlatform(ABC):
    """Abstract capability set for one organization."""

    @property
    @abstractmethod
    def organization_id(self) -> str:
        pass

    @property
    @abstractmethod
    def organization_name(self) -> str:
        pass

    @property
    def default_role_id(self) -> str:
        """The role every member holds. On the reference platform it shares the organization id."""
        return self.organization_id

    # Channels

    @abstractmethod
    async def list_channels(self) -> List[ChannelInfo]:
        """Every category and channel in the organization."""
        pass

    @abstractmethod
    async def fetch_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        pass

    @abstractmethod
    async def create_category(self, name: str, overwrites: Iterable[PermissionOverwrite] = ()) -> ChannelInfo:
        pass

    @abstractmethod
    async def create_channel(
        self,
        name: str,
        kind: ChannelKind,
        parent_id: Optional[str] = None,
        overwrites: Optional[Iterable[PermissionOverwrite]] = None,
    ) -> ChannelInfo:
        """Create a text or voice channel. ``overwrites=None`` inherits the parent's."""
        pass

    @abstractmethod
    async def delete_channel(self, channel_id: str) -> None:
        pass

    @abstractmethod
    async def rename_channel(self, channel_id: str, name: str) -> None:
        pass

    @abstractmethod
    async def edit_permissions(
        self,
        channel_id: str,
        target_id: str,
        allow: Iterable[Permission] = (),
        deny: Iterable[Permission] = (),
    ) -> None:
        """Set the given flags on one target's overwrite; other flags are left untouched."""
        pass

    # Roles

    @abstractmethod
    async def list_roles(self) -> List[RoleInfo]:
        pass

    @abstractmethod
    async def create_role(
        self,
        name: str,
        color: int = 0,
        permissions: Iterable[Permission] = (),
        reason: Optional[str] = None,
    ) -> RoleInfo:
        pass

    @abstractmethod
    async def delete_role(self, role_id: str) -> None:
        pass

    # Members

    @abstractmethod
    async def fetch_member(self, user_id: str) -> Optional[MemberInfo]:
        pass

    @abstractmethod
    async def list_members(self) -> List[MemberInfo]:
        pass

    @abstractmethod
    async def add_member_role(self, user_id: str, role_id: str) -> None:
        pass

    @abstractmethod
    async def remove_member_role(self, user_id: str, role_id: str) -> None:
        pass

    @abstractmethod
    async def set_nickname(self, user_id: str, nickname: str) -> None:
        pass

    # Messages

    @abstractmethod
    async def bulk_delete_messages(self, channel_id: str, limit: int) -> int:
        """Delete up to ``limit`` recent messages. Returns how many were removed."""
        pass
