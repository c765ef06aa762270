"""
Permission cascade applied when a hierarchy edge is created.

Mapping a downline under an upline records the edge and lets the upline's
agent role view the downline's category. The grant is single-hop: mapping
A -> B and then B -> C gives C's role view on B's category only, never on
A's. Visibility further down a chain needs one mapping per link.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from database.store import AgencyStore
from models import Agency
from models.permissions import Permission
from workspace.base import WorkspacePlatform


logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    downline: Agency
    upline: Agency
    edge_created: bool
    permission_granted: bool
    note: Optional[str] = None

    def summary(self) -> str:
        text = f"Mapped {self.downline.name} under {self.upline.name}"
        if not self.edge_created:
            text += " (edge already present)"
        if not self.permission_granted:
            text += f"; visibility not granted: {self.note}"
        return text


class UnknownAgencyError(LookupError):
    """Raised when an agency id or name does not resolve in the organization."""
    pass


class PermissionCascade:
    """Records hierarchy edges and applies the single-hop view grant."""

    def __init__(self, workspace: WorkspacePlatform, store: AgencyStore):
        self.workspace = workspace
        self.store = store

    @property
    def organization_id(self) -> str:
        return self.workspace.organization_id

    async def map_by_name(self, downline_name: str, upline_name: str) -> CascadeResult:
        """Resolve both names, then map. Raises ``UnknownAgencyError`` naming the first missing agency."""
        downline = await self.store.find_agency_by_name(self.organization_id, downline_name)
        if downline is None:
            raise UnknownAgencyError(f"agency '{downline_name}' not found")
        upline = await self.store.find_agency_by_name(self.organization_id, upline_name)
        if upline is None:
            raise UnknownAgencyError(f"agency '{upline_name}' not found")
        return await self.apply(downline, upline)

    async def map_by_id(self, downline_id: int, upline_id: int) -> CascadeResult:
        downline = await self.store.get_agency(self.organization_id, downline_id)
        if downline is None:
            raise UnknownAgencyError(f"agency id {downline_id} not found")
        upline = await self.store.get_agency(self.organization_id, upline_id)
        if upline is None:
            raise UnknownAgencyError(f"agency id {upline_id} not found")
        return await self.apply(downline, upline)

    async def apply(self, downline: Agency, upline: Agency) -> CascadeResult:
        edge_created = await self.store.add_edge(self.organization_id, downline.id, upline.id)

        category = await self.workspace.fetch_channel(downline.category_id)
        if category is None:
            logger.warning(f"Category {downline.category_id} of {downline.name} is gone; edge stored without grant")
            return CascadeResult(downline, upline, edge_created, False, "downline category no longer exists")

        await self.workspace.edit_permissions(category.id, upline.agent_role_id, allow=[Permission.VIEW_CHANNEL])
        logger.info(f"Granted {upline.name} view access to {downline.name}'s category")
        return CascadeResult(downline, upline, edge_created, True)

    async def upline_chain(self, agency_name: str) -> List[Agency]:
        """Every agency above ``agency_name``, following edges transitively. Reporting only; grants nothing."""
        agency = await self.store.find_agency_by_name(self.organization_id, agency_name)
        if agency is None:
            raise UnknownAgencyError(f"agency '{agency_name}' not found")
        return await self.store.ancestors_of(self.organization_id, agency.id)
