"""Tests for the onboarding portal, registration and leader codes."""

import pytest

from models import Agency, LeaderCode
from orchestration import OnboardingService, build_portal
from orchestration.onboarding import LEADER_LOGIN_ID, render_leader_codes, role_id_from_custom_id

from conftest import ORG_ID


def _agencies(count):
    return [
        Agency(
            id=i, organization_id=ORG_ID, name=f"Agency {i}",
            agent_role_id=f"role{i}", leader_role_id=f"lead{i}", category_id=f"cat{i}",
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def service(workspace, store):
    return OnboardingService(workspace, store)


class TestPortalLayout:

    def test_small_portal(self):
        portal = build_portal(_agencies(3))

        assert len(portal.rows) == 1
        assert [b.label for b in portal.rows[0]][-1] == "Leader Access 🔑"
        assert portal.rows[0][0].custom_id == "onboard_role1"
        assert portal.omitted == []

    def test_leader_button_wraps_to_new_row(self):
        portal = build_portal(_agencies(5))

        assert [len(row) for row in portal.rows] == [5, 1]
        assert portal.rows[1][0].custom_id == LEADER_LOGIN_ID

    def test_overflow_is_omitted(self):
        portal = build_portal(_agencies(30))

        assert portal.button_count == 25
        assert len(portal.rows) == 5
        assert len(portal.role_ids) == 24
        assert portal.omitted == [f"Agency {i}" for i in range(25, 31)]

    def test_role_id_from_custom_id(self):
        assert role_id_from_custom_id("onboard_123") == "123"
        assert role_id_from_custom_id("onboard_") is None
        assert role_id_from_custom_id(LEADER_LOGIN_ID) is None


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_from_portal(self, service, workspace, store):
        unassigned = await workspace.create_role("Unassigned")
        agency_role = await workspace.create_role("The Vault")
        await store.update_config(ORG_ID, unassigned_role_id=unassigned.id)
        workspace.add_member("u1", "jane#0001")
        await workspace.add_member_role("u1", unassigned.id)

        reply = await service.register_agent("u1", "  Jane Doe ", role_id=agency_role.id)

        assert "**Jane Doe**" in reply
        assert workspace.members["u1"].role_ids == [agency_role.id]
        assert store.onboarding_log == [(ORG_ID, "u1", agency_role.id)]
        assert (await store.get_agent_mapping(ORG_ID, "Jane Doe")).user_id == "u1"

    @pytest.mark.asyncio
    async def test_register_without_unassigned_role(self, service, workspace, store):
        agency_role = await workspace.create_role("The Vault")
        await store.update_config(ORG_ID, unassigned_role_id="999")
        workspace.add_member("u1", "jane#0001")

        await service.register_agent("u1", "Jane Doe", role_id=agency_role.id)

        assert workspace.members["u1"].role_ids == [agency_role.id]
        assert len(store.onboarding_log) == 1

    @pytest.mark.asyncio
    async def test_register_name_only(self, service, workspace, store):
        workspace.add_member("u1", "jane#0001")

        await service.register_agent("u1", "Jane Doe")

        assert workspace.mutations == []
        assert store.onboarding_log == []
        assert await store.get_agent_mapping(ORG_ID, "Jane Doe") is not None

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, service):
        with pytest.raises(ValueError):
            await service.register_agent("u1", "   ")

    @pytest.mark.asyncio
    async def test_assign_unassigned_role(self, service, workspace, store):
        workspace.add_member("u1", "new#0001")
        assert await service.assign_unassigned_role("u1") is False

        role = await workspace.create_role("Unassigned")
        await service.setup_server(unassigned_role_id=role.id, owner_id="42")

        assert await service.assign_unassigned_role("u1") is True
        assert workspace.members["u1"].role_ids == [role.id]
        config = await store.get_config(ORG_ID)
        assert config.owner_id == "42"
        assert config.server_name == "Reflect HQ"


class TestLeaderCodes:

    @pytest.mark.asyncio
    async def test_redeem_valid_code(self, service, workspace):
        leader = await workspace.create_role("The Vault Leader")
        agency = await workspace.create_role("The Vault")
        workspace.add_member("u1", "boss#0001")
        await service.add_leader_code(" VAULT ", leader.id, agency_role_id=agency.id)

        redeemed = await service.redeem_leader_code("u1", "VAULT ")

        assert redeemed.code == "VAULT"
        assert workspace.members["u1"].role_ids == [leader.id, agency.id]

    @pytest.mark.asyncio
    async def test_redeem_unknown_code(self, service, workspace):
        workspace.add_member("u1", "boss#0001")

        assert await service.redeem_leader_code("u1", "NOPE") is None
        assert workspace.mutations == []

    @pytest.mark.asyncio
    async def test_list_and_remove(self, service):
        assert await service.list_leader_codes() == "No leader codes configured."
        await service.add_leader_code("VAULT", "10", description="Vault leaders")

        listing = await service.list_leader_codes()
        assert "• **VAULT**: <@&10> - Vault leaders" in listing
        assert await service.remove_leader_code("VAULT") is True
        assert await service.remove_leader_code("VAULT") is False

    def test_render_with_agency_role(self):
        codes = [LeaderCode(organization_id=ORG_ID, code="A", leader_role_id="1", agency_role_id="2")]
        assert render_leader_codes(codes).splitlines()[1] == "• **A**: <@&1> (+ <@&2>) - No description"
