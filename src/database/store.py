"""
Agency store interface and an in-memory implementation.

``AgencyStore`` is the persistence boundary for agencies, hierarchy edges,
per-organization configuration, leader codes and agent-name mappings. The
PostgreSQL implementation lives in ``database.queries``; ``InMemoryAgencyStore``
backs dry runs and tests.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from models import Agency, AgentMapping, HierarchyEdge, LeaderCode, OrganizationConfig


logger = logging.getLogger(__name__)

CONFIG_FIELDS = frozenset({
    "server_name",
    "start_here_category_id",
    "main_agency_id",
    "unassigned_role_id",
    "owner_id",
})


class AgencyStore(ABC):
    """Abstract interface for agency persistence."""

    # Agencies

    @abstractmethod
    async def save_agency(
        self,
        organization_id: str,
        name: str,
        emoji: Optional[str],
        agent_role_id: str,
        leader_role_id: str,
        category_id: str,
        is_main: bool = False,
    ) -> Agency:
        """Insert an agency, or re-point the existing one with the same name."""
        pass

    @abstractmethod
    async def get_agency(self, organization_id: str, agency_id: int) -> Optional[Agency]:
        pass

    @abstractmethod
    async def find_agency_by_name(self, organization_id: str, name: str) -> Optional[Agency]:
        pass

    @abstractmethod
    async def list_agencies(self, organization_id: str) -> List[Agency]:
        pass

    @abstractmethod
    async def set_main_agency(self, organization_id: str, agency_id: int) -> None:
        """Flag one agency as main, clear the flag elsewhere, and point the config at it."""
        pass

    # Hierarchy

    @abstractmethod
    async def add_edge(self, organization_id: str, downline_agency_id: int, upline_agency_id: int) -> bool:
        """Insert a downline -> upline edge. Returns False if it already existed."""
        pass

    @abstractmethod
    async def list_edges(self, organization_id: str) -> List[HierarchyEdge]:
        pass

    @abstractmethod
    async def ancestors_of(self, organization_id: str, agency_id: int) -> List[Agency]:
        """
        Transitive closure of upline relationships.

        Terminates on cyclic edge sets and never includes the queried agency.
        """
        pass

    # Organization config

    @abstractmethod
    async def get_config(self, organization_id: str) -> Optional[OrganizationConfig]:
        pass

    @abstractmethod
    async def update_config(self, organization_id: str, **fields: Any) -> OrganizationConfig:
        """Upsert the config row, changing only the given fields."""
        pass

    # Leader codes

    @abstractmethod
    async def add_leader_code(self, code: LeaderCode) -> None:
        pass

    @abstractmethod
    async def get_leader_code(self, organization_id: str, code: str) -> Optional[LeaderCode]:
        pass

    @abstractmethod
    async def list_leader_codes(self, organization_id: str) -> List[LeaderCode]:
        pass

    @abstractmethod
    async def remove_leader_code(self, organization_id: str, code: str) -> bool:
        pass

    # Agent mappings and onboarding

    @abstractmethod
    async def get_agent_mapping(self, organization_id: str, agent_name: str) -> Optional[AgentMapping]:
        pass

    @abstractmethod
    async def save_agent_mapping(self, organization_id: str, user_id: str, agent_name: str) -> AgentMapping:
        pass

    @abstractmethod
    async def update_agent_badges(self, organization_id: str, user_id: str, badges: str) -> None:
        pass

    @abstractmethod
    async def record_onboarding(self, organization_id: str, user_id: str, role_id: str) -> None:
        pass


def _check_config_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - CONFIG_FIELDS
    if unknown:
        raise ValueError(f"Unknown config fields: {sorted(unknown)}")


def _check_edge(downline_agency_id: int, upline_agency_id: int) -> None:
    if downline_agency_id == upline_agency_id:
        raise ValueError("An agency cannot be its own upline")


class InMemoryAgencyStore(AgencyStore):
    """
    Process-local store with the same semantics as the PostgreSQL store.

    Used for dry runs and tests; nothing survives the process.
    """

    def __init__(self):
        self._agencies: Dict[int, Agency] = {}
        self._edges: Set[HierarchyEdge] = set()
        self._configs: Dict[str, OrganizationConfig] = {}
        self._leader_codes: Dict[Tuple[str, str], LeaderCode] = {}
        self._mappings: Dict[Tuple[str, str], AgentMapping] = {}
        self.onboarding_log: List[Tuple[str, str, str]] = []
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def save_agency(
        self,
        organization_id: str,
        name: str,
        emoji: Optional[str],
        agent_role_id: str,
        leader_role_id: str,
        category_id: str,
        is_main: bool = False,
    ) -> Agency:
        async with self._lock:
            existing = self._find(organization_id, name)
            agency = Agency(
                id=existing.id if existing else next(self._ids),
                organization_id=organization_id,
                name=name,
                emoji=emoji,
                agent_role_id=agent_role_id,
                leader_role_id=leader_role_id,
                category_id=category_id,
                is_main=is_main,
            )
            self._agencies[agency.id] = agency
            return agency

    def _find(self, organization_id: str, name: str) -> Optional[Agency]:
        for agency in self._agencies.values():
            if agency.organization_id == organization_id and agency.name == name:
                return agency
        return None

    async def get_agency(self, organization_id: str, agency_id: int) -> Optional[Agency]:
        agency = self._agencies.get(agency_id)
        if agency and agency.organization_id == organization_id:
            return agency
        return None

    async def find_agency_by_name(self, organization_id: str, name: str) -> Optional[Agency]:
        return self._find(organization_id, name)

    async def list_agencies(self, organization_id: str) -> List[Agency]:
        return sorted(
            (a for a in self._agencies.values() if a.organization_id == organization_id),
            key=lambda a: a.id,
        )

    async def set_main_agency(self, organization_id: str, agency_id: int) -> None:
        async with self._lock:
            if await self.get_agency(organization_id, agency_id) is None:
                raise ValueError(f"Agency {agency_id} does not exist in {organization_id}")
            for agency in list(self._agencies.values()):
                if agency.organization_id == organization_id:
                    self._agencies[agency.id] = agency.model_copy(update={"is_main": agency.id == agency_id})
        await self.update_config(organization_id, main_agency_id=agency_id)

    async def add_edge(self, organization_id: str, downline_agency_id: int, upline_agency_id: int) -> bool:
        _check_edge(downline_agency_id, upline_agency_id)
        edge = HierarchyEdge(
            organization_id=organization_id,
            downline_agency_id=downline_agency_id,
            upline_agency_id=upline_agency_id,
        )
        async with self._lock:
            if edge in self._edges:
                return False
            self._edges.add(edge)
            return True

    async def list_edges(self, organization_id: str) -> List[HierarchyEdge]:
        return sorted(
            (e for e in self._edges if e.organization_id == organization_id),
            key=lambda e: (e.downline_agency_id, e.upline_agency_id),
        )

    async def ancestors_of(self, organization_id: str, agency_id: int) -> List[Agency]:
        uplines: Dict[int, List[int]] = {}
        for edge in await self.list_edges(organization_id):
            uplines.setdefault(edge.downline_agency_id, []).append(edge.upline_agency_id)

        visited = {agency_id}
        ordered: List[int] = []
        queue = deque(uplines.get(agency_id, []))
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            ordered.append(current)
            queue.extend(uplines.get(current, []))

        return [self._agencies[i] for i in ordered if i in self._agencies]

    async def get_config(self, organization_id: str) -> Optional[OrganizationConfig]:
        return self._configs.get(organization_id)

    async def update_config(self, organization_id: str, **fields: Any) -> OrganizationConfig:
        _check_config_fields(fields)
        async with self._lock:
            current = self._configs.get(organization_id) or OrganizationConfig(organization_id=organization_id)
            updated = current.model_copy(update=fields)
            self._configs[organization_id] = updated
            return updated

    async def add_leader_code(self, code: LeaderCode) -> None:
        self._leader_codes[(code.organization_id, code.code)] = code

    async def get_leader_code(self, organization_id: str, code: str) -> Optional[LeaderCode]:
        return self._leader_codes.get((organization_id, code))

    async def list_leader_codes(self, organization_id: str) -> List[LeaderCode]:
        return [c for (org, _), c in self._leader_codes.items() if org == organization_id]

    async def remove_leader_code(self, organization_id: str, code: str) -> bool:
        return self._leader_codes.pop((organization_id, code), None) is not None

    async def get_agent_mapping(self, organization_id: str, agent_name: str) -> Optional[AgentMapping]:
        for (org, _), mapping in self._mappings.items():
            if org == organization_id and mapping.agent_name == agent_name:
                return mapping
        return None

    async def save_agent_mapping(self, organization_id: str, user_id: str, agent_name: str) -> AgentMapping:
        existing = self._mappings.get((organization_id, user_id))
        mapping = AgentMapping(
            organization_id=organization_id,
            user_id=user_id,
            agent_name=agent_name,
            current_badges=existing.current_badges if existing else None,
            updated_at=datetime.now(),
        )
        self._mappings[(organization_id, user_id)] = mapping
        return mapping

    async def update_agent_badges(self, organization_id: str, user_id: str, badges: str) -> None:
        existing = self._mappings.get((organization_id, user_id))
        if existing is None:
            logger.warning(f"No agent mapping for user {user_id} in {organization_id}; badges not stored")
            return
        self._mappings[(organization_id, user_id)] = existing.model_copy(
            update={"current_badges": badges, "updated_at": datetime.now()}
        )

    async def record_onboarding(self, organization_id: str, user_id: str, role_id: str) -> None:
        self.onboarding_log.append((organization_id, user_id, role_id))
