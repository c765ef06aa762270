"""
PostgreSQL implementation of the agency store.

All statements are parameterized. The ancestor query is a recursive CTE using
``UNION`` (not ``UNION ALL``) so that a cyclic edge set still terminates.
"""

from typing import Any, List, Optional
import logging

from models import Agency, AgentMapping, HierarchyEdge, LeaderCode, OrganizationConfig

from .connection import DatabasePool
from .store import AgencyStore, _check_config_fields, _check_edge


logger = logging.getLogger(__name__)

# Model field -> server_config column
_CONFIG_COLUMNS = {
    "server_name": "server_name",
    "start_here_category_id": "start_here_category_id",
    "main_agency_id": "main_agency_id",
    "unassigned_role_id": "unassigned_role_id",
    "owner_id": "owner_discord_id",
}

_AGENCY_COLUMNS = "agency_id, guild_id, name, emoji, role_id, leader_role_id, category_id, is_main_agency"
_QUALIFIED_AGENCY_COLUMNS = ", ".join(f"a.{c.strip()}" for c in _AGENCY_COLUMNS.split(","))


class PostgresAgencyStore(AgencyStore):
    """Data access layer for agencies, hierarchy and organization configuration."""

    def __init__(self, pool: DatabasePool):
        self.pool = pool

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
        query = f"""
        INSERT INTO agencies (guild_id, name, role_id, leader_role_id, category_id, emoji, is_main_agency)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        ON CONFLICT (guild_id, name) DO UPDATE SET
            role_id = EXCLUDED.role_id,
            leader_role_id = EXCLUDED.leader_role_id,
            category_id = EXCLUDED.category_id,
            emoji = EXCLUDED.emoji,
            is_main_agency = EXCLUDED.is_main_agency
        RETURNING {_AGENCY_COLUMNS}
        """
        record = await self.pool.execute_query_one(
            query, organization_id, name, agent_role_id, leader_role_id, category_id, emoji, is_main
        )
        agency = Agency.from_record(record)
        logger.info(f"Saved agency {agency.name} (id={agency.id}) for {organization_id}")
        return agency

    async def get_agency(self, organization_id: str, agency_id: int) -> Optional[Agency]:
        query = f"SELECT {_AGENCY_COLUMNS} FROM agencies WHERE guild_id = $1 AND agency_id = $2"
        record = await self.pool.execute_query_one(query, organization_id, agency_id)
        return Agency.from_record(record) if record else None

    async def find_agency_by_name(self, organization_id: str, name: str) -> Optional[Agency]:
        query = f"SELECT {_AGENCY_COLUMNS} FROM agencies WHERE guild_id = $1 AND name = $2"
        record = await self.pool.execute_query_one(query, organization_id, name)
        return Agency.from_record(record) if record else None

    async def list_agencies(self, organization_id: str) -> List[Agency]:
        query = f"SELECT {_AGENCY_COLUMNS} FROM agencies WHERE guild_id = $1 ORDER BY agency_id"
        records = await self.pool.execute_query(query, organization_id)
        return [Agency.from_record(r) for r in records]

    async def set_main_agency(self, organization_id: str, agency_id: int) -> None:
        async with self.pool.transaction() as conn:
            await conn.execute(
                "UPDATE agencies SET is_main_agency = (agency_id = $2) WHERE guild_id = $1",
                organization_id, agency_id,
            )
            await conn.execute(
                """
                INSERT INTO server_config (guild_id, main_agency_id) VALUES ($1, $2)
                ON CONFLICT (guild_id) DO UPDATE SET main_agency_id = EXCLUDED.main_agency_id
                """,
                organization_id, agency_id,
            )
        logger.info(f"Agency {agency_id} is now the main agency for {organization_id}")

    async def add_edge(self, organization_id: str, downline_agency_id: int, upline_agency_id: int) -> bool:
        _check_edge(downline_agency_id, upline_agency_id)
        status = await self.pool.execute_command(
            """
            INSERT INTO hierarchy (guild_id, downline_agency_id, upline_agency_id)
            VALUES ($1, $2, $3) ON CONFLICT DO NOTHING
            """,
            organization_id, downline_agency_id, upline_agency_id,
        )
        # asyncpg returns "INSERT 0 <rows>"
        return status.endswith(" 1")

    async def list_edges(self, organization_id: str) -> List[HierarchyEdge]:
        records = await self.pool.execute_query(
            """
            SELECT guild_id, downline_agency_id, upline_agency_id FROM hierarchy
            WHERE guild_id = $1 ORDER BY downline_agency_id, upline_agency_id
            """,
            organization_id,
        )
        return [
            HierarchyEdge(
                organization_id=r["guild_id"],
                downline_agency_id=r["downline_agency_id"],
                upline_agency_id=r["upline_agency_id"],
            )
            for r in records
        ]

    async def ancestors_of(self, organization_id: str, agency_id: int) -> List[Agency]:
        query = f"""
        WITH RECURSIVE upline_tree AS (
            SELECT upline_agency_id FROM hierarchy
            WHERE guild_id = $1 AND downline_agency_id = $2
            UNION
            SELECT h.upline_agency_id FROM hierarchy h
            JOIN upline_tree ut ON h.downline_agency_id = ut.upline_agency_id
            WHERE h.guild_id = $1
        )
        SELECT {_QUALIFIED_AGENCY_COLUMNS}
        FROM agencies a JOIN upline_tree ut ON a.agency_id = ut.upline_agency_id
        WHERE a.agency_id <> $2
        ORDER BY a.agency_id
        """
        records = await self.pool.execute_query(query, organization_id, agency_id)
        return [Agency.from_record(r) for r in records]

    async def get_config(self, organization_id: str) -> Optional[OrganizationConfig]:
        record = await self.pool.execute_query_one(
            """
            SELECT guild_id, server_name, start_here_category_id, main_agency_id,
                   unassigned_role_id, owner_discord_id
            FROM server_config WHERE guild_id = $1
            """,
            organization_id,
        )
        return OrganizationConfig.from_record(record) if record else None

    async def update_config(self, organization_id: str, **fields: Any) -> OrganizationConfig:
        _check_config_fields(fields)
        columns = [_CONFIG_COLUMNS[name] for name in fields]
        values = list(fields.values())

        placeholders = ", ".join(f"${i + 2}" for i in range(len(columns)))
        insert_columns = ", ".join(["guild_id", *columns])
        if columns:
            updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)
            conflict = f"DO UPDATE SET {updates}"
            command = f"INSERT INTO server_config ({insert_columns}) VALUES ($1, {placeholders}) ON CONFLICT (guild_id) {conflict}"
        else:
            command = "INSERT INTO server_config (guild_id) VALUES ($1) ON CONFLICT (guild_id) DO NOTHING"

        await self.pool.execute_command(command, organization_id, *values)
        return await self.get_config(organization_id)

    async def add_leader_code(self, code: LeaderCode) -> None:
        await self.pool.execute_command(
            """
            INSERT INTO leader_codes (guild_id, code, leader_role_id, agency_role_id, description)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (guild_id, code) DO UPDATE SET
                leader_role_id = EXCLUDED.leader_role_id,
                agency_role_id = EXCLUDED.agency_role_id,
                description = EXCLUDED.description
            """,
            code.organization_id, code.code, code.leader_role_id, code.agency_role_id, code.description,
        )

    async def get_leader_code(self, organization_id: str, code: str) -> Optional[LeaderCode]:
        record = await self.pool.execute_query_one(
            "SELECT * FROM leader_codes WHERE guild_id = $1 AND code = $2", organization_id, code
        )
        return LeaderCode.from_record(record) if record else None

    async def list_leader_codes(self, organization_id: str) -> List[LeaderCode]:
        records = await self.pool.execute_query(
            "SELECT * FROM leader_codes WHERE guild_id = $1 ORDER BY code", organization_id
        )
        return [LeaderCode.from_record(r) for r in records]

    async def remove_leader_code(self, organization_id: str, code: str) -> bool:
        status = await self.pool.execute_command(
            "DELETE FROM leader_codes WHERE guild_id = $1 AND code = $2", organization_id, code
        )
        return not status.endswith(" 0")

    async def get_agent_mapping(self, organization_id: str, agent_name: str) -> Optional[AgentMapping]:
        record = await self.pool.execute_query_one(
            "SELECT * FROM agent_mapping WHERE guild_id = $1 AND agent_name = $2", organization_id, agent_name
        )
        return AgentMapping.from_record(record) if record else None

    async def save_agent_mapping(self, organization_id: str, user_id: str, agent_name: str) -> AgentMapping:
        record = await self.pool.execute_query_one(
            """
            INSERT INTO agent_mapping (guild_id, user_id, agent_name)
            VALUES ($1, $2, $3)
            ON CONFLICT (guild_id, user_id) DO UPDATE SET agent_name = EXCLUDED.agent_name
            RETURNING *
            """,
            organization_id, user_id, agent_name,
        )
        return AgentMapping.from_record(record)

    async def update_agent_badges(self, organization_id: str, user_id: str, badges: str) -> None:
        await self.pool.execute_command(
            """
            UPDATE agent_mapping SET current_badges = $1, updated_at = CURRENT_TIMESTAMP
            WHERE guild_id = $2 AND user_id = $3
            """,
            badges, organization_id, user_id,
        )

    async def record_onboarding(self, organization_id: str, user_id: str, role_id: str) -> None:
        await self.pool.execute_command(
            "INSERT INTO onboarding (guild_id, user_id, role_id) VALUES ($1, $2, $3)",
            organization_id, user_id, role_id,
        )
