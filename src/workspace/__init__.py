"""Remote workspace capability set and its implementations."""

from .base import (
    ChannelKind,
    ChannelInfo,
    RoleInfo,
    MemberInfo,
    WorkspaceError,
    WorkspacePlatform,
)
from .memory import InMemoryWorkspace

__all__ = [
    "ChannelKind",
    "ChannelInfo",
    "RoleInfo",
    "MemberInfo",
    "WorkspaceError",
    "WorkspacePlatform",
    "InMemoryWorkspace",
]
