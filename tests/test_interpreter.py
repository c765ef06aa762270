"""Tests for the action interpreter."""

from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from models import ACTION_TYPES, ActionList, StepStatus
from orchestration import ActionInterpreter
from provisioning import ProvisioningTemplates
from workspace import ChannelKind, WorkspaceError
from workspace.memory import InMemoryWorkspace

from conftest import ORG_ID


class FlakyWorkspace(InMemoryWorkspace):
    """Refuses to touch anything whose name is in ``broken``."""

    def __init__(self, *broken):
        super().__init__(organization_id=ORG_ID, organization_name="Reflect HQ")
        self.broken = set(broken)

    async def create_category(self, name, overwrites=()):
        if name in self.broken:
            raise WorkspaceError(f"Missing Access: {name}")
        return await super().create_category(name, overwrites)

    async def delete_channel(self, channel_id):
        if self.channels[channel_id].name in self.broken:
            raise WorkspaceError("Missing Access")
        await super().delete_channel(channel_id)


def _interpreter(workspace, store, sleep, **kwargs):
    templates = ProvisioningTemplates(workspace, store, channel_delay=0, sleep=sleep)
    return ActionInterpreter(workspace, store, templates=templates, **kwargs)


FULL_BUILD = {
    "actions": [
        {"type": "WIPE"},
        {"type": "CREATE_MAIN_STRUCTURE"},
        {"type": "INITIALIZE", "agencies": [
            {"name": "Reflect Agencies", "emoji": "🦁", "is_main": True},
            {"name": "The Vault", "emoji": "💎"},
        ]},
        {"type": "MAP", "downline": "The Vault", "upline": "Reflect Agencies"},
        {"type": "MAP", "downline": "Apex", "upline": "Reflect Agencies"},
        {"type": "DEPLOY_ONBOARDING"},
    ]
}


class TestActionInterpreter:

    @pytest.mark.asyncio
    async def test_full_build(self, workspace, store, sleep):
        origin = workspace.add_channel("war-room")
        old = workspace.add_channel("Old Stuff", ChannelKind.CATEGORY)
        workspace.add_channel("old-chat", parent_id=old.id)
        publisher = AsyncMock()
        interpreter = _interpreter(workspace, store, sleep, origin_channel_id=origin.id, portal_publisher=publisher)

        report = await interpreter.execute(ActionList.model_validate(FULL_BUILD))

        statuses = [o.status for o in report.outcomes]
        assert statuses == [
            StepStatus.OK, StepStatus.OK, StepStatus.OK, StepStatus.OK, StepStatus.SKIPPED, StepStatus.OK,
        ]
        assert report.outcomes[0].detail == "2 removed"
        assert report.outcomes[2].label == "Initialized 2/2 agencies"
        assert report.outcomes[4].detail == "agency 'Apex' not found"

        assert origin.id in workspace.channels
        assert workspace.find_by_name("Old Stuff") is None

        main = await store.find_agency_by_name(ORG_ID, "Reflect Agencies")
        assert (await store.get_config(ORG_ID)).main_agency_id == main.id
        assert len(await store.list_edges(ORG_ID)) == 1

        publisher.assert_awaited_once()
        portal = publisher.await_args[0][0]
        assert list(portal.role_ids) == ["Reflect Agencies", "The Vault"]
        assert interpreter.last_portal is portal

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_actions(self, store, sleep):
        workspace = FlakyWorkspace("ADMIN ⚔️")
        interpreter = _interpreter(workspace, store, sleep)

        report = await interpreter.execute(ActionList.model_validate({"actions": [
            {"type": "CREATE_MAIN_STRUCTURE"},
            {"type": "INITIALIZE", "agencies": [{"name": "The Vault"}]},
        ]}))

        assert report.outcomes[0].status == StepStatus.FAILED
        assert "Missing Access" in report.outcomes[0].detail
        assert report.outcomes[1].status == StepStatus.OK
        assert await store.find_agency_by_name(ORG_ID, "The Vault") is not None

    @pytest.mark.asyncio
    async def test_partial_initialize_is_failed_step(self, store, sleep):
        workspace = FlakyWorkspace("Broken")
        interpreter = _interpreter(workspace, store, sleep)

        report = await interpreter.execute(ActionList.model_validate({"actions": [
            {"type": "INITIALIZE", "agencies": [{"name": "Broken"}, {"name": "Apex"}]},
        ]}))

        outcome = report.outcomes[0]
        assert outcome.status == StepStatus.FAILED
        assert outcome.label == "Initialized 1/2 agencies"
        assert "Agency Broken" in outcome.detail

    @pytest.mark.asyncio
    async def test_wipe_counts_undeletable_channels(self, store, sleep):
        workspace = FlakyWorkspace("rules")
        workspace.add_channel("rules")
        workspace.add_channel("chat")
        interpreter = _interpreter(workspace, store, sleep)

        report = await interpreter.execute(ActionList.model_validate({"actions": [{"type": "WIPE"}]}))

        assert report.outcomes[0].status == StepStatus.OK
        assert report.outcomes[0].detail == "1 removed, 1 could not be deleted"
        assert [c.name for c in workspace.channels.values()] == ["rules"]

    @pytest.mark.asyncio
    async def test_wipe_deletes_channels_before_categories(self, workspace, store, sleep):
        category = workspace.add_channel("Old", ChannelKind.CATEGORY)
        workspace.add_channel("old-chat", parent_id=category.id)
        interpreter = _interpreter(workspace, store, sleep)

        await interpreter.execute(ActionList.model_validate({"actions": [{"type": "WIPE"}]}))

        assert workspace.mutations == [("delete_channel", "old-chat"), ("delete_channel", "Old")]

    @pytest.mark.asyncio
    async def test_deploy_without_publisher(self, workspace, store, sleep):
        interpreter = _interpreter(workspace, store, sleep)

        report = await interpreter.execute(ActionList.model_validate({"actions": [{"type": "DEPLOY_ONBOARDING"}]}))

        assert report.outcomes[0].detail == "0 agencies"
        assert interpreter.last_portal.button_count == 1

    def test_unhandled_action_type_rejected(self, workspace, store, monkeypatch):
        class RenameAction(BaseModel):
            pass

        monkeypatch.setattr("orchestration.interpreter.ACTION_TYPES", ACTION_TYPES + (RenameAction,))
        with pytest.raises(TypeError, match="RenameAction"):
            ActionInterpreter(workspace, store)
