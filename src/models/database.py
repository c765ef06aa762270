"""
Database models mapping to the agency builder tables.

These Pydantic models map to the schema created by ``database.schema``:
- agencies
- hierarchy
- server_config
- leader_codes
- agent_mapping

Platform identifiers (guild, role, channel, user) are stored as text.
"""

from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, validator


class Agency(BaseModel):
    """Maps to the agencies table."""
    id: int
    organization_id: str
    name: str
    emoji: Optional[str] = None
    agent_role_id: str
    leader_role_id: str
    category_id: str
    is_main: bool = False

    class Config:
        from_attributes = True

    @validator("name")
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Agency name must not be empty")
        return v.strip()

    @property
    def display_name(self) -> str:
        """Category title: the name followed by the emoji when one is set."""
        return f"{self.name} {self.emoji}" if self.emoji else self.name

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Agency":
        """Build from an ``agencies`` row."""
        return cls(
            id=record["agency_id"],
            organization_id=record["guild_id"],
            name=record["name"],
            emoji=record["emoji"],
            agent_role_id=record["role_id"],
            leader_role_id=record["leader_role_id"],
            category_id=record["category_id"],
            is_main=record["is_main_agency"] or False,
        )


class HierarchyEdge(BaseModel):
    """Maps to the hierarchy table: the downline agency reports to the upline agency."""
    organization_id: str
    downline_agency_id: int
    upline_agency_id: int

    class Config:
        frozen = True


class OrganizationConfig(BaseModel):
    """Maps to the server_config table. One row per organization."""
    organization_id: str
    server_name: Optional[str] = None
    start_here_category_id: Optional[str] = None
    main_agency_id: Optional[int] = None
    unassigned_role_id: Optional[str] = None
    owner_id: Optional[str] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "OrganizationConfig":
        return cls(
            organization_id=record["guild_id"],
            server_name=record["server_name"],
            start_here_category_id=record["start_here_category_id"],
            main_agency_id=record["main_agency_id"],
            unassigned_role_id=record["unassigned_role_id"],
            owner_id=record["owner_discord_id"],
        )


class LeaderCode(BaseModel):
    """Maps to the leader_codes table."""
    organization_id: str
    code: str
    leader_role_id: str
    agency_role_id: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "LeaderCode":
        return cls(
            organization_id=record["guild_id"],
            code=record["code"],
            leader_role_id=record["leader_role_id"],
            agency_role_id=record["agency_role_id"],
            description=record["description"],
        )


class AgentMapping(BaseModel):
    """Maps to the agent_mapping table: which member carries which agent name."""
    organization_id: str
    user_id: str
    agent_name: str
    current_badges: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "AgentMapping":
        return cls(
            organization_id=record["guild_id"],
            user_id=record["user_id"],
            agent_name=record["agent_name"],
            current_badges=record["current_badges"],
            updated_at=record["updated_at"],
        )
