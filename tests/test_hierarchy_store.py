"""Tests for the in-memory agency store: edges, ancestors, upserts and config."""

import pytest

from models import LeaderCode

from conftest import ORG_ID


async def _agency(store, name, is_main=False):
    return await store.save_agency(
        ORG_ID,
        name=name,
        emoji=None,
        agent_role_id=f"role-{name}",
        leader_role_id=f"leader-{name}",
        category_id=f"cat-{name}",
        is_main=is_main,
    )


class TestHierarchyEdges:

    @pytest.mark.asyncio
    async def test_add_edge_is_idempotent(self, store):
        a = await _agency(store, "A")
        b = await _agency(store, "B")

        assert await store.add_edge(ORG_ID, a.id, b.id) is True
        assert await store.add_edge(ORG_ID, a.id, b.id) is False
        assert len(await store.list_edges(ORG_ID)) == 1

    @pytest.mark.asyncio
    async def test_self_edge_rejected(self, store):
        a = await _agency(store, "A")
        with pytest.raises(ValueError):
            await store.add_edge(ORG_ID, a.id, a.id)

    @pytest.mark.asyncio
    async def test_ancestors_follow_chain(self, store):
        a = await _agency(store, "A")
        b = await _agency(store, "B")
        c = await _agency(store, "C")
        await store.add_edge(ORG_ID, a.id, b.id)
        await store.add_edge(ORG_ID, b.id, c.id)

        ancestors = await store.ancestors_of(ORG_ID, a.id)
        assert [x.name for x in ancestors] == ["B", "C"]
        assert await store.ancestors_of(ORG_ID, c.id) == []

    @pytest.mark.asyncio
    async def test_ancestors_terminate_on_cycle(self, store):
        a = await _agency(store, "A")
        b = await _agency(store, "B")
        c = await _agency(store, "C")
        await store.add_edge(ORG_ID, a.id, b.id)
        await store.add_edge(ORG_ID, b.id, c.id)
        await store.add_edge(ORG_ID, c.id, a.id)

        ancestors = await store.ancestors_of(ORG_ID, a.id)
        assert sorted(x.name for x in ancestors) == ["B", "C"]

    @pytest.mark.asyncio
    async def test_edges_scoped_to_organization(self, store):
        a = await _agency(store, "A")
        b = await _agency(store, "B")
        await store.add_edge(ORG_ID, a.id, b.id)

        assert await store.list_edges("other-org") == []


class TestAgencies:

    @pytest.mark.asyncio
    async def test_save_agency_upserts_by_name(self, store):
        first = await _agency(store, "Reflect")
        second = await store.save_agency(
            ORG_ID, name="Reflect", emoji="🦁", agent_role_id="new-role",
            leader_role_id="new-leader", category_id="new-cat",
        )

        assert second.id == first.id
        assert second.agent_role_id == "new-role"
        assert len(await store.list_agencies(ORG_ID)) == 1

    @pytest.mark.asyncio
    async def test_set_main_agency_is_exclusive(self, store):
        a = await _agency(store, "A", is_main=True)
        b = await _agency(store, "B")

        await store.set_main_agency(ORG_ID, b.id)

        agencies = {x.name: x for x in await store.list_agencies(ORG_ID)}
        assert agencies["A"].is_main is False
        assert agencies["B"].is_main is True
        config = await store.get_config(ORG_ID)
        assert config.main_agency_id == b.id

    @pytest.mark.asyncio
    async def test_set_main_agency_unknown_id(self, store):
        with pytest.raises(ValueError):
            await store.set_main_agency(ORG_ID, 999)

    @pytest.mark.asyncio
    async def test_find_agency_by_name(self, store):
        await _agency(store, "The Vault")
        assert (await store.find_agency_by_name(ORG_ID, "The Vault")).name == "The Vault"
        assert await store.find_agency_by_name(ORG_ID, "Nope") is None


class TestConfigAndCodes:

    @pytest.mark.asyncio
    async def test_update_config_merges_fields(self, store):
        await store.update_config(ORG_ID, server_name="HQ")
        config = await store.update_config(ORG_ID, unassigned_role_id="r1")
        assert config.server_name == "HQ"
        assert config.unassigned_role_id == "r1"

    @pytest.mark.asyncio
    async def test_update_config_rejects_unknown_field(self, store):
        with pytest.raises(ValueError):
            await store.update_config(ORG_ID, favourite_color="blue")

    @pytest.mark.asyncio
    async def test_leader_code_crud(self, store):
        code = LeaderCode(organization_id=ORG_ID, code="SECRET", leader_role_id="lr")
        await store.add_leader_code(code)

        assert (await store.get_leader_code(ORG_ID, "SECRET")).leader_role_id == "lr"
        assert len(await store.list_leader_codes(ORG_ID)) == 1
        assert await store.remove_leader_code(ORG_ID, "SECRET") is True
        assert await store.remove_leader_code(ORG_ID, "SECRET") is False

    @pytest.mark.asyncio
    async def test_agent_mapping_and_badges(self, store):
        await store.save_agent_mapping(ORG_ID, "u1", "Jane Doe")
        await store.update_agent_badges(ORG_ID, "u1", "🏆")

        mapping = await store.get_agent_mapping(ORG_ID, "Jane Doe")
        assert mapping.user_id == "u1"
        assert mapping.current_badges == "🏆"

        await store.save_agent_mapping(ORG_ID, "u1", "Jane Smith")
        assert await store.get_agent_mapping(ORG_ID, "Jane Doe") is None
        assert (await store.get_agent_mapping(ORG_ID, "Jane Smith")).current_badges == "🏆"
