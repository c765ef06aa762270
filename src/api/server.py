"""
Badge sync HTTP API.

External tools post an agent's current badges here; the matching member's
nickname is rewritten to carry them.
"""

import logging
from typing import List, Optional, Union

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import AliasChoices, BaseModel, Field

from orchestration.badges import AgentNotFound, BadgeSyncService


logger = logging.getLogger(__name__)


class BadgeUpdate(BaseModel):
    organization_id: str = Field(validation_alias=AliasChoices("organizationId", "guildId"))
    agent_name: str = Field(validation_alias=AliasChoices("agentName", "agent_name"))
    badges: Optional[Union[List[str], str]] = None

    class Config:
        coerce_numbers_to_str = True


def create_app(service: BadgeSyncService, version: str = "0.1.0") -> FastAPI:
    app = FastAPI(title="Agency Builder Badge Sync", version=version)

    @app.get("/")
    async def root():
        return {"service": "agency-builder", "status": "active"}

    @app.post("/api/badges")
    async def sync_badges(update: BadgeUpdate):
        try:
            await service.sync(update.organization_id, update.agent_name, update.badges)
        except AgentNotFound:
            return PlainTextResponse("Agent not found", status_code=404)
        except Exception as e:
            logger.error(f"Badge sync failed for {update.agent_name}: {e}")
            return JSONResponse({"error": str(e)}, status_code=500)
        return {"success": True}

    return app
