"""
Permission vocabulary for workspace channels and roles.

Permission values are named after the platform's overwrite attributes so that
an adapter can translate them one-to-one.
"""

from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, validator


class Permission(str, Enum):
    """Individual permission flags understood by the workspace."""
    VIEW_CHANNEL = "view_channel"
    SEND_MESSAGES = "send_messages"
    ADD_REACTIONS = "add_reactions"
    MANAGE_CHANNELS = "manage_channels"
    MANAGE_MESSAGES = "manage_messages"
    MUTE_MEMBERS = "mute_members"
    MOVE_MEMBERS = "move_members"
    DEAFEN_MEMBERS = "deafen_members"
    CONNECT = "connect"
    SPEAK = "speak"


class PermissionOverwrite(BaseModel):
    """Allow/deny pair applied to one role (or member) on one channel."""

    target_id: str
    allow: FrozenSet[Permission] = frozenset()
    deny: FrozenSet[Permission] = frozenset()

    class Config:
        frozen = True

    @validator("deny")
    def validate_disjoint(cls, v, values):
        """A flag cannot be both allowed and denied."""
        overlap = set(v) & set(values.get("allow", frozenset()))
        if overlap:
            raise ValueError(f"Permissions both allowed and denied: {sorted(p.value for p in overlap)}")
        return v

    def merged_with(self, allow: Iterable[Permission] = (), deny: Iterable[Permission] = ()) -> "PermissionOverwrite":
        """Return a copy with extra flags set; flags not mentioned keep their state."""
        allow, deny = set(allow), set(deny)
        return PermissionOverwrite(
            target_id=self.target_id,
            allow=frozenset((set(self.allow) - deny) | allow),
            deny=frozenset((set(self.deny) - allow) | deny),
        )


def overwrite(target_id: str, allow: Iterable[Permission] = (), deny: Iterable[Permission] = ()) -> PermissionOverwrite:
    """Shorthand constructor used by the provisioning templates."""
    return PermissionOverwrite(target_id=target_id, allow=frozenset(allow), deny=frozenset(deny))


def find_overwrite(overwrites: List[PermissionOverwrite], target_id: str) -> Optional[PermissionOverwrite]:
    for entry in overwrites:
        if entry.target_id == target_id:
            return entry
    return None


def replace_overwrite(overwrites: List[PermissionOverwrite], new_entry: PermissionOverwrite) -> List[PermissionOverwrite]:
    """Return a new list where the entry for ``new_entry.target_id`` is swapped in (or appended)."""
    result = [entry for entry in overwrites if entry.target_id != new_entry.target_id]
    result.append(new_entry)
    return result
