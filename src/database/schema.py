"""DDL for the agency builder tables. Every statement is safe to re-run."""

import logging
from typing import List

from .connection import DatabasePool


logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS server_config (
        guild_id TEXT PRIMARY KEY,
        server_name TEXT,
        start_here_category_id TEXT,
        main_agency_id INTEGER,
        unassigned_role_id TEXT,
        owner_discord_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agencies (
        agency_id SERIAL PRIMARY KEY,
        guild_id TEXT NOT NULL,
        name TEXT NOT NULL,
        emoji TEXT,
        role_id TEXT NOT NULL,
        leader_role_id TEXT NOT NULL,
        category_id TEXT NOT NULL,
        is_main_agency BOOLEAN NOT NULL DEFAULT FALSE,
        UNIQUE (guild_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hierarchy (
        guild_id TEXT NOT NULL,
        downline_agency_id INTEGER NOT NULL REFERENCES agencies (agency_id),
        upline_agency_id INTEGER NOT NULL REFERENCES agencies (agency_id),
        PRIMARY KEY (guild_id, downline_agency_id, upline_agency_id),
        CHECK (downline_agency_id <> upline_agency_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS leader_codes (
        guild_id TEXT NOT NULL,
        code TEXT NOT NULL,
        leader_role_id TEXT NOT NULL,
        agency_role_id TEXT,
        description TEXT,
        UNIQUE (guild_id, code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_mapping (
        guild_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        agent_name TEXT NOT NULL,
        current_badges TEXT,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (guild_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS onboarding (
        id SERIAL PRIMARY KEY,
        guild_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role_id TEXT NOT NULL,
        onboarded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


async def apply_schema(pool: DatabasePool) -> int:
    """Create any missing tables. Returns the number of statements executed."""
    async with pool.transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)
    logger.info(f"Applied {len(SCHEMA_STATEMENTS)} schema statements")
    return len(SCHEMA_STATEMENTS)
