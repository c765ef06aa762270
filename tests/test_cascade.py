"""Tests for hierarchy mapping and the single-hop visibility grant."""

import pytest
import pytest_asyncio

from models import AgencySpec, MapEdgeAction
from models.permissions import Permission, find_overwrite
from provisioning import PermissionCascade, ProvisioningTemplates, UnknownAgencyError

from conftest import ORG_ID


@pytest_asyncio.fixture
async def agencies(workspace, store, sleep):
    templates = ProvisioningTemplates(workspace, store, channel_delay=0, sleep=sleep)
    built = {}
    for name in ("Reflect", "The Vault", "Apex"):
        built[name] = await templates.initialize_agency(AgencySpec(name=name))
    return built


@pytest.fixture
def cascade(workspace, store):
    return PermissionCascade(workspace, store)


def _can_view(workspace, category_id, role_id):
    entry = find_overwrite(workspace.channels[category_id].overwrites, role_id)
    return entry is not None and Permission.VIEW_CHANNEL in entry.allow


class TestPermissionCascade:

    @pytest.mark.asyncio
    async def test_upline_sees_downline_category(self, cascade, workspace, agencies):
        vault, reflect = agencies["The Vault"], agencies["Reflect"]

        result = await cascade.map_by_name("The Vault", "Reflect")

        assert result.edge_created is True
        assert result.permission_granted is True
        assert _can_view(workspace, vault.category_id, reflect.agent_role_id)
        assert not _can_view(workspace, reflect.category_id, vault.agent_role_id)

    @pytest.mark.asyncio
    async def test_grant_is_not_transitive(self, cascade, workspace, agencies):
        apex, vault, reflect = agencies["Apex"], agencies["The Vault"], agencies["Reflect"]

        await cascade.map_by_name("Apex", "The Vault")
        await cascade.map_by_name("The Vault", "Reflect")

        assert _can_view(workspace, apex.category_id, vault.agent_role_id)
        assert _can_view(workspace, vault.category_id, reflect.agent_role_id)
        assert not _can_view(workspace, apex.category_id, reflect.agent_role_id)

    @pytest.mark.asyncio
    async def test_repeat_mapping_keeps_single_edge(self, cascade, store, agencies):
        await cascade.map_by_name("The Vault", "Reflect")
        result = await cascade.map_by_name("The Vault", "Reflect")

        assert result.edge_created is False
        assert "edge already present" in result.summary()
        assert len(await store.list_edges(ORG_ID)) == 1

    @pytest.mark.asyncio
    async def test_missing_category_stores_edge_without_grant(self, cascade, workspace, store, agencies):
        vault = agencies["The Vault"]
        del workspace.channels[vault.category_id]

        result = await cascade.map_by_name("The Vault", "Reflect")

        assert result.edge_created is True
        assert result.permission_granted is False
        assert len(await store.list_edges(ORG_ID)) == 1

    @pytest.mark.asyncio
    async def test_unknown_name_raises(self, cascade, store, agencies):
        with pytest.raises(UnknownAgencyError, match="'Ghost' not found"):
            await cascade.map_by_name("Ghost", "Reflect")
        with pytest.raises(UnknownAgencyError, match="'Ghost' not found"):
            await cascade.map_by_name("Reflect", "Ghost")
        assert await store.list_edges(ORG_ID) == []

    @pytest.mark.asyncio
    async def test_map_by_id(self, cascade, agencies):
        result = await cascade.map_by_id(agencies["Apex"].id, agencies["Reflect"].id)
        assert result.summary() == "Mapped Apex under Reflect"

        with pytest.raises(UnknownAgencyError):
            await cascade.map_by_id(999, agencies["Reflect"].id)

    @pytest.mark.asyncio
    async def test_upline_chain_is_transitive_but_grants_nothing(self, cascade, workspace, agencies):
        apex, reflect = agencies["Apex"], agencies["Reflect"]
        await cascade.map_by_name("Apex", "The Vault")
        await cascade.map_by_name("The Vault", "Reflect")

        chain = await cascade.upline_chain("Apex")

        assert [a.name for a in chain] == ["The Vault", "Reflect"]
        assert await cascade.upline_chain("Reflect") == []
        assert not _can_view(workspace, apex.category_id, reflect.agent_role_id)

    @pytest.mark.asyncio
    async def test_upline_chain_unknown_name(self, cascade, agencies):
        with pytest.raises(UnknownAgencyError, match="'Ghost' not found"):
            await cascade.upline_chain("Ghost")

    @pytest.mark.asyncio
    async def test_padded_map_action_resolves_stored_name(self, workspace, store, agencies):
        action = MapEdgeAction.model_validate({"type": "MAP", "downline": " The Vault", "upline": "Reflect "})
        result = await PermissionCascade(workspace, store).map_by_name(action.downline, action.upline)

        assert result.edge_created is True
