"""Tests for the discord.py workspace adapter, using mocked guild objects."""

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from models.permissions import Permission, overwrite
from workspace import ChannelKind, WorkspaceError
from workspace.discord_workspace import DiscordWorkspace, from_discord_overwrite, to_discord_overwrite


def _category(channel_id=500, name="The Vault 💎"):
    category = MagicMock(spec=discord.CategoryChannel)
    category.id = channel_id
    category.name = name
    category.category_id = None
    category.overwrites = {}
    return category


@pytest.fixture
def guild():
    guild = MagicMock()
    guild.id = 1000
    guild.name = "Reflect HQ"
    guild.default_role.id = 1000
    guild.get_role.return_value = None
    guild.get_member.return_value = None
    return guild


class TestOverwriteTranslation:

    def test_round_trip_flags(self):
        entry = overwrite("1", allow=[Permission.VIEW_CHANNEL, Permission.CONNECT], deny=[Permission.SEND_MESSAGES])

        native = to_discord_overwrite(entry)
        assert native.view_channel is True
        assert native.send_messages is False
        assert native.manage_channels is None

        back = from_discord_overwrite("1", native)
        assert back == entry


class TestDiscordWorkspace:

    @pytest.mark.asyncio
    async def test_create_category(self, guild):
        guild.create_category = AsyncMock(return_value=_category())
        workspace = DiscordWorkspace(guild)

        info = await workspace.create_category("The Vault 💎", overwrites=[overwrite("1000", deny=[Permission.VIEW_CHANNEL])])

        assert info.id == "500"
        assert info.kind == ChannelKind.CATEGORY
        (name,), kwargs = guild.create_category.await_args
        assert name == "The Vault 💎"
        (target, native), = kwargs["overwrites"].items()
        assert target.id == 1000
        assert native.view_channel is False

    @pytest.mark.asyncio
    async def test_create_category_without_overwrites(self, guild):
        guild.create_category = AsyncMock(return_value=_category())

        await DiscordWorkspace(guild).create_category("Plain")

        assert "overwrites" not in guild.create_category.await_args.kwargs

    @pytest.mark.asyncio
    async def test_new_role_overwrite_is_keyed_by_role_before_cache_update(self, guild):
        role = MagicMock(spec=discord.Role)
        role.id = 777
        role.name = "The Vault Agent"
        role.delete = AsyncMock()
        guild.create_role = AsyncMock(return_value=role)
        guild.create_category = AsyncMock(return_value=_category())
        workspace = DiscordWorkspace(guild)

        info = await workspace.create_role("The Vault Agent")
        await workspace.create_category("The Vault 💎", overwrites=[overwrite(info.id, allow=[Permission.VIEW_CHANNEL])])

        (target, native), = guild.create_category.await_args.kwargs["overwrites"].items()
        assert target is role
        assert isinstance(target, discord.Role)
        assert native.view_channel is True

        await workspace.delete_role(info.id)
        role.delete.assert_awaited_once()

    def test_unknown_target_falls_back_to_object(self, guild):
        target = DiscordWorkspace(guild)._target("888")
        assert isinstance(target, discord.Object)
        assert target.id == 888

    @pytest.mark.asyncio
    async def test_platform_errors_become_workspace_errors(self, guild):
        response = MagicMock(status=403, reason="Forbidden")
        guild.create_category = AsyncMock(side_effect=discord.Forbidden(response, "Missing Access"))

        with pytest.raises(WorkspaceError, match="create_category failed"):
            await DiscordWorkspace(guild).create_category("Nope")

    @pytest.mark.asyncio
    async def test_missing_member_is_none(self, guild):
        response = MagicMock(status=404, reason="Not Found")
        guild.fetch_member = AsyncMock(side_effect=discord.NotFound(response, "Unknown Member"))

        assert await DiscordWorkspace(guild).fetch_member("42") is None

    def test_owner_is_not_manageable(self, guild):
        guild.owner_id = 42
        member = MagicMock(id=42)
        assert DiscordWorkspace(guild)._manageable(member) is False
