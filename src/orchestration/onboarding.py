"""
Member onboarding: the agency selection portal, agent registration, leader
code redemption and the unassigned role handed to new members.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from database.store import AgencyStore
from models import Agency, LeaderCode
from workspace.base import WorkspaceError, WorkspacePlatform


logger = logging.getLogger(__name__)

ROW_WIDTH = 5
MAX_ROWS = 5
ONBOARD_PREFIX = "onboard_"
LEADER_LOGIN_ID = "leader_login"


@dataclass
class PortalButton:
    custom_id: str
    label: str
    style: str = "primary"


@dataclass
class OnboardingPortal:
    """Button layout for the agency selection surface."""
    rows: List[List[PortalButton]]
    role_ids: Dict[str, str]
    omitted: List[str] = field(default_factory=list)
    title: str = "Agency Onboarding Portal"
    description: str = "Welcome! Select your agency below to get started."

    @property
    def button_count(self) -> int:
        return sum(len(row) for row in self.rows)


def build_portal(agencies: Sequence[Agency]) -> OnboardingPortal:
    """
    One button per agency (payload: the agent role id), five per row, then a
    trailing leader-access button. Agencies that do not fit in the platform's
    row limit are listed in ``omitted``.
    """
    capacity = ROW_WIDTH * MAX_ROWS - 1
    shown, omitted = list(agencies[:capacity]), [a.name for a in agencies[capacity:]]
    if omitted:
        logger.warning(f"Onboarding portal has room for {capacity} agencies; omitting {len(omitted)}")

    buttons = [PortalButton(custom_id=f"{ONBOARD_PREFIX}{a.agent_role_id}", label=a.name) for a in shown]
    buttons.append(PortalButton(custom_id=LEADER_LOGIN_ID, label="Leader Access 🔑", style="success"))
    rows = [buttons[i:i + ROW_WIDTH] for i in range(0, len(buttons), ROW_WIDTH)]

    return OnboardingPortal(
        rows=rows,
        role_ids={a.name: a.agent_role_id for a in shown},
        omitted=omitted,
    )


def role_id_from_custom_id(custom_id: str) -> Optional[str]:
    if custom_id.startswith(ONBOARD_PREFIX):
        return custom_id[len(ONBOARD_PREFIX):] or None
    return None


def render_leader_codes(codes: Sequence[LeaderCode]) -> str:
    if not codes:
        return "No leader codes configured."
    lines = ["### Leader Access Codes"]
    for c in codes:
        extra = f" (+ <@&{c.agency_role_id}>)" if c.agency_role_id else ""
        lines.append(f"• **{c.code}**: <@&{c.leader_role_id}>{extra} - {c.description or 'No description'}")
    return "\n".join(lines)


class OnboardingService:
    """Registration flows for one organization."""

    def __init__(self, workspace: WorkspacePlatform, store: AgencyStore):
        self.workspace = workspace
        self.store = store

    @property
    def organization_id(self) -> str:
        return self.workspace.organization_id

    async def portal(self) -> OnboardingPortal:
        return build_portal(await self.store.list_agencies(self.organization_id))

    async def setup_server(self, unassigned_role_id: Optional[str], owner_id: Optional[str]):
        return await self.store.update_config(
            self.organization_id,
            server_name=self.workspace.organization_name,
            unassigned_role_id=unassigned_role_id,
            owner_id=owner_id,
        )

    async def assign_unassigned_role(self, user_id: str) -> bool:
        """Give a new member the configured unassigned role. Best effort."""
        config = await self.store.get_config(self.organization_id)
        if not config or not config.unassigned_role_id:
            return False
        try:
            await self.workspace.add_member_role(user_id, config.unassigned_role_id)
            return True
        except WorkspaceError as e:
            logger.warning(f"Could not assign unassigned role to {user_id}: {e}")
            return False

    async def register_agent(self, user_id: str, agent_name: str, role_id: Optional[str] = None) -> str:
        """
        Record the member's agent name. When ``role_id`` comes from the portal,
        also grant the agency role, drop the unassigned role and log the onboarding.
        """
        agent_name = agent_name.strip()
        if not agent_name:
            raise ValueError("Agent name must not be empty")

        if role_id:
            try:
                await self.workspace.add_member_role(user_id, role_id)
            except WorkspaceError as e:
                logger.error(f"Could not grant role {role_id} to {user_id}: {e}")

            config = await self.store.get_config(self.organization_id)
            if config and config.unassigned_role_id:
                try:
                    await self.workspace.remove_member_role(user_id, config.unassigned_role_id)
                except WorkspaceError as e:
                    logger.warning(f"Could not remove unassigned role from {user_id}: {e}")

            await self.store.record_onboarding(self.organization_id, user_id, role_id)

        await self.store.save_agent_mapping(self.organization_id, user_id, agent_name)
        logger.info(f"Registered {user_id} as agent {agent_name}")
        return f"✅ Registered as **{agent_name}**! Your nickname badges will sync automatically."

    async def redeem_leader_code(self, user_id: str, code: str) -> Optional[LeaderCode]:
        """Grant the leader (and optional agency) role for a valid code. Returns None for an unknown code."""
        leader_code = await self.store.get_leader_code(self.organization_id, code.strip())
        if leader_code is None:
            return None
        await self.workspace.add_member_role(user_id, leader_code.leader_role_id)
        if leader_code.agency_role_id:
            await self.workspace.add_member_role(user_id, leader_code.agency_role_id)
        logger.info(f"Leader code {leader_code.code} redeemed by {user_id}")
        return leader_code

    async def add_leader_code(
        self,
        code: str,
        leader_role_id: str,
        agency_role_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> LeaderCode:
        leader_code = LeaderCode(
            organization_id=self.organization_id,
            code=code.strip(),
            leader_role_id=leader_role_id,
            agency_role_id=agency_role_id,
            description=description,
        )
        await self.store.add_leader_code(leader_code)
        return leader_code

    async def list_leader_codes(self) -> str:
        return render_leader_codes(await self.store.list_leader_codes(self.organization_id))

    async def remove_leader_code(self, code: str) -> bool:
        return await self.store.remove_leader_code(self.organization_id, code.strip())
