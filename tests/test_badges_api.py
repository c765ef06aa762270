"""Tests for badge sync and its HTTP endpoint."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from api import create_app
from orchestration import AgentNotFound, BadgeSyncError, BadgeSyncService, badge_nickname

from conftest import ORG_ID


@pytest.fixture
def service(workspace, store):
    async def resolve(organization_id):
        return workspace if organization_id == ORG_ID else None

    return BadgeSyncService(store, resolve)


class TestBadgeNickname:

    def test_joins_badge_list(self):
        assert badge_nickname("Jane Doe", ["🏆", "🔥"]) == "Jane Doe 🏆🔥"

    def test_no_badges(self):
        assert badge_nickname("Jane Doe", None) == "Jane Doe"
        assert badge_nickname("Jane Doe", []) == "Jane Doe"

    def test_truncated_to_limit(self):
        nickname = badge_nickname("A Very Long Agent Name Indeed", "🏆🏆🏆🏆🏆🏆")
        assert len(nickname) == 32
        assert nickname.startswith("A Very Long Agent Name Indeed ")


class TestBadgeSyncService:

    @pytest.mark.asyncio
    async def test_sync_sets_nickname_and_stores_badges(self, service, workspace, store):
        workspace.add_member("u1", "jane#0001")
        await store.save_agent_mapping(ORG_ID, "u1", "Jane Doe")

        result = await service.sync(ORG_ID, "Jane Doe", ["🏆"])

        assert result.nickname_applied is True
        assert workspace.members["u1"].display_name == "Jane Doe 🏆"
        assert (await store.get_agent_mapping(ORG_ID, "Jane Doe")).current_badges == "🏆"

    @pytest.mark.asyncio
    async def test_unmanageable_member_keeps_nickname(self, service, workspace, store):
        workspace.add_member("u1", "owner#0001", manageable=False)
        await store.save_agent_mapping(ORG_ID, "u1", "Jane Doe")

        result = await service.sync(ORG_ID, "Jane Doe", "🔥")

        assert result.nickname_applied is False
        assert workspace.members["u1"].display_name == "owner"
        assert (await store.get_agent_mapping(ORG_ID, "Jane Doe")).current_badges == "🔥"

    @pytest.mark.asyncio
    async def test_unknown_agent(self, service, workspace):
        with pytest.raises(AgentNotFound):
            await service.sync(ORG_ID, "Nobody", ["🏆"])
        assert workspace.mutations == []

    @pytest.mark.asyncio
    async def test_member_gone(self, service, store):
        await store.save_agent_mapping(ORG_ID, "u1", "Jane Doe")
        with pytest.raises(BadgeSyncError):
            await service.sync(ORG_ID, "Jane Doe", ["🏆"])

    @pytest.mark.asyncio
    async def test_unknown_organization(self, service, store):
        await store.save_agent_mapping("other", "u1", "Jane Doe")
        with pytest.raises(BadgeSyncError):
            await service.sync("other", "Jane Doe", ["🏆"])


class TestBadgeEndpoint:

    @pytest.fixture
    def client(self, service):
        return TestClient(create_app(service))

    def test_root(self, client):
        assert client.get("/").json()["status"] == "active"

    def test_unknown_agent_is_404(self, client, workspace):
        response = client.post("/api/badges", json={"guildId": ORG_ID, "agentName": "Nobody", "badges": ["🏆"]})

        assert response.status_code == 404
        assert response.text == "Agent not found"
        assert workspace.mutations == []

    def test_success(self, client, workspace, store):
        workspace.add_member("u1", "jane#0001")
        asyncio.run(store.save_agent_mapping(ORG_ID, "u1", "Jane Doe"))

        response = client.post("/api/badges", json={"organizationId": int(ORG_ID), "agent_name": "Jane Doe", "badges": ["🏆"]})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert workspace.members["u1"].display_name == "Jane Doe 🏆"

    def test_sync_failure_is_500(self, client, store):
        asyncio.run(store.save_agent_mapping(ORG_ID, "u1", "Jane Doe"))

        response = client.post("/api/badges", json={"guildId": ORG_ID, "agentName": "Jane Doe", "badges": "🏆"})

        assert response.status_code == 500
        assert "not in organization" in response.json()["error"]

    def test_missing_fields_rejected(self, client):
        assert client.post("/api/badges", json={"badges": ["🏆"]}).status_code == 422
