"""
Badge sync: rewrite a registered agent's nickname from an external badge feed.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union

from database.store import AgencyStore
from workspace.base import WorkspacePlatform


logger = logging.getLogger(__name__)

NICKNAME_MAX_LENGTH = 32

WorkspaceResolver = Callable[[str], Awaitable[Optional[WorkspacePlatform]]]
Badges = Union[str, Sequence[str], None]


class AgentNotFound(LookupError):
    """No member is registered under the agent name."""
    pass


class BadgeSyncError(Exception):
    """The mapping exists but the nickname could not be synced."""
    pass


@dataclass
class BadgeSyncResult:
    user_id: str
    nickname: str
    nickname_applied: bool


def badge_string(badges: Badges) -> str:
    if badges is None:
        return ""
    if isinstance(badges, str):
        return badges
    return "".join(str(b) for b in badges)


def badge_nickname(agent_name: str, badges: Badges, max_length: int = NICKNAME_MAX_LENGTH) -> str:
    return f"{agent_name} {badge_string(badges)}".strip()[:max_length]


class BadgeSyncService:
    """
    Applies badge updates to members across organizations.

    Args:
        store: Agency store holding the agent-name mappings
        resolve_workspace: Returns the workspace for an organization id, or None
        nickname_max_length: The platform's display-name length limit
    """

    def __init__(self, store: AgencyStore, resolve_workspace: WorkspaceResolver, nickname_max_length: int = NICKNAME_MAX_LENGTH):
        self.store = store
        self.resolve_workspace = resolve_workspace
        self.nickname_max_length = nickname_max_length

    async def sync(self, organization_id: str, agent_name: str, badges: Badges) -> BadgeSyncResult:
        """
        Raises:
            AgentNotFound: Nothing is mapped to ``agent_name``; nothing was changed
            BadgeSyncError: The organization or member could not be reached
        """
        mapping = await self.store.get_agent_mapping(organization_id, agent_name)
        if mapping is None:
            raise AgentNotFound(f"Agent not found: {agent_name}")

        workspace = await self.resolve_workspace(organization_id)
        if workspace is None:
            raise BadgeSyncError(f"Organization {organization_id} is not available")

        member = await workspace.fetch_member(mapping.user_id)
        if member is None:
            raise BadgeSyncError(f"Member {mapping.user_id} is not in organization {organization_id}")

        nickname = badge_nickname(agent_name, badges, self.nickname_max_length)
        applied = False
        if member.manageable:
            await workspace.set_nickname(member.id, nickname)
            applied = True
        else:
            logger.warning(f"Cannot change nickname of {member.tag}; badges stored only")

        await self.store.update_agent_badges(organization_id, mapping.user_id, badge_string(badges))
        logger.info(f"Synced badges for {agent_name}: {nickname}")
        return BadgeSyncResult(user_id=mapping.user_id, nickname=nickname, nickname_applied=applied)
