"""
Slash commands.

Each command resolves the bot from ``interaction.client`` and hands off to
the interpreter, the wizard or one of the services. Structure and
configuration commands are limited to the admin user or the organization's
configured owner.
"""

import logging
from typing import TYPE_CHECKING, List, Optional

import discord
from discord import app_commands

from models import (
    ActionList,
    AgencySpec,
    BuildMainStructureAction,
    DeployOnboardingAction,
    InitializeAgenciesAction,
    WipeAction,
)
from provisioning.cascade import UnknownAgencyError
from provisioning.reconcile import ReconciliationEngine
from utils.text_chunking import chunk_message_lines

from .views import AgentRegistrationModal, webhook_embed

if TYPE_CHECKING:
    from .client import AgencyBuilderBot


logger = logging.getLogger(__name__)

CLEAR_LIMIT = 100


def _bot(interaction: discord.Interaction) -> "AgencyBuilderBot":
    return interaction.client  # type: ignore[return-value]


async def _is_admin(interaction: discord.Interaction) -> bool:
    return await _bot(interaction).is_admin(str(interaction.user.id), interaction.guild_id)


admin_only = app_commands.check(_is_admin)


async def send_chunked(interaction: discord.Interaction, text: str) -> None:
    """Reply to a deferred interaction, splitting text over the message limit."""
    chunks = chunk_message_lines(text.splitlines()) or ["Done."]
    await interaction.edit_original_response(content=chunks[0])
    for chunk in chunks[1:]:
        await interaction.followup.send(chunk, ephemeral=True)


async def _run_actions(interaction: discord.Interaction, action_list: ActionList) -> None:
    await interaction.response.defer(ephemeral=True, thinking=True)
    report = await _bot(interaction).interpreter_for(interaction).execute(action_list)
    await send_chunked(interaction, report.render())


@app_commands.command(name="war-room", description="Guided build wizard, or a direct build from plain-language instructions")
@app_commands.describe(prompt="Optional: plain-language instructions that skip the wizard")
@app_commands.guild_only()
@admin_only
async def war_room(interaction: discord.Interaction, prompt: Optional[str] = None):
    bot = _bot(interaction)
    if not prompt:
        await bot.start_wizard(interaction)
        return

    await interaction.response.defer(ephemeral=True, thinking=True)
    action_list = await bot.extractor.parse_command(prompt)
    if action_list is None or not action_list.actions:
        await interaction.edit_original_response(content="Could not parse instructions.")
        return
    report = await bot.interpreter_for(interaction).execute(action_list)
    await send_chunked(interaction, report.render())


@app_commands.command(name="wipe-structure", description="Delete every category and channel except this one")
@app_commands.guild_only()
@admin_only
async def wipe_structure(interaction: discord.Interaction):
    await _run_actions(interaction, ActionList(actions=[WipeAction()]))


@app_commands.command(name="build-main-structure", description="Create the shared sections (Admin, Start Here, Sales Ops...)")
@app_commands.guild_only()
@admin_only
async def build_main_structure(interaction: discord.Interaction):
    await _run_actions(interaction, ActionList(actions=[BuildMainStructureAction()]))


@app_commands.command(name="initialize-agencies", description="Create agency roles, categories and channels")
@app_commands.describe(agencies="Comma separated list of agency names")
@app_commands.guild_only()
@admin_only
async def initialize_agencies(interaction: discord.Interaction, agencies: str):
    specs = [AgencySpec(name=name) for name in agencies.split(",") if name.strip()]
    if not specs:
        await interaction.response.send_message("No agency names given.", ephemeral=True)
        return
    await _run_actions(interaction, ActionList(actions=[InitializeAgenciesAction(agencies=specs)]))


@app_commands.command(name="add-agency-structure", description="Add an agency without touching existing structure")
@app_commands.rename(agency_name="agency-name")
@app_commands.describe(agency_name="Name of the agency", emoji="Optional emoji for the category")
@app_commands.guild_only()
@admin_only
async def add_agency_structure(interaction: discord.Interaction, agency_name: str, emoji: Optional[str] = None):
    await interaction.response.defer(ephemeral=True, thinking=True)
    templates = _bot(interaction).interpreter_for(interaction).templates
    outcomes = await templates.add_agency_structure([AgencySpec(name=agency_name, emoji=emoji)])
    await send_chunked(interaction, "\n".join(o.render() for o in outcomes))


@app_commands.command(name="map-hierarchy", description="Place a sub-agency under its upline")
@app_commands.rename(downline_id="downline-id", upline_id="upline-id")
@app_commands.describe(downline_id="Agency ID of the sub-agency", upline_id="Agency ID of the parent agency")
@app_commands.guild_only()
@admin_only
async def map_hierarchy(interaction: discord.Interaction, downline_id: int, upline_id: int):
    await interaction.response.defer(ephemeral=True, thinking=True)
    cascade = _bot(interaction).interpreter_for(interaction).cascade
    try:
        result = await cascade.map_by_id(downline_id, upline_id)
    except (UnknownAgencyError, ValueError) as e:
        await interaction.edit_original_response(content=f"⚠️ {e}")
        return
    await interaction.edit_original_response(content=f"✅ {result.summary()}")


@app_commands.command(name="show-uplines", description="List every agency above the given agency")
@app_commands.rename(agency_name="agency-name")
@app_commands.guild_only()
async def show_uplines(interaction: discord.Interaction, agency_name: str):
    await interaction.response.defer(ephemeral=True, thinking=True)
    cascade = _bot(interaction).interpreter_for(interaction).cascade
    try:
        uplines = await cascade.upline_chain(agency_name)
    except UnknownAgencyError as e:
        await interaction.edit_original_response(content=f"⚠️ {e}")
        return
    if not uplines:
        await interaction.edit_original_response(content=f"{agency_name} has no uplines.")
        return
    lines = [f"### Uplines of {agency_name}"] + [f"• {a.display_name} (ID {a.id})" for a in uplines]
    await send_chunked(interaction, "\n".join(lines))


@app_commands.command(name="organize-channels", description="Rename existing agency channels to the standard format")
@app_commands.guild_only()
@admin_only
async def organize_channels(interaction: discord.Interaction):
    await interaction.response.defer(ephemeral=True, thinking=True)
    bot = _bot(interaction)
    workspace = bot.workspace_for(interaction.guild)
    agencies = await bot.store.list_agencies(workspace.organization_id)
    engine = ReconciliationEngine(workspace, rename_delay=bot.settings.provisioning.channel_delay)
    result = await engine.organize([AgencySpec(name=a.name, emoji=a.emoji) for a in agencies])
    await send_chunked(interaction, result.render())


@app_commands.command(name="deploy-onboarding-portal", description="Post the agency selection buttons in this channel")
@app_commands.guild_only()
@admin_only
async def deploy_onboarding_portal(interaction: discord.Interaction):
    await _run_actions(interaction, ActionList(actions=[DeployOnboardingAction()]))


@app_commands.command(name="setup-server", description="Configure the unassigned role and the server owner")
@app_commands.rename(unassigned_role="unassigned-role")
@app_commands.describe(unassigned_role="Role for new members", owner="Server owner")
@app_commands.guild_only()
@admin_only
async def setup_server(
    interaction: discord.Interaction,
    unassigned_role: Optional[discord.Role] = None,
    owner: Optional[discord.User] = None,
):
    service = _bot(interaction).onboarding_for(interaction.guild)
    await service.setup_server(
        str(unassigned_role.id) if unassigned_role else None,
        str(owner.id) if owner else None,
    )
    await interaction.response.send_message("Server config updated.", ephemeral=True)


@app_commands.command(name="add-leader-code", description="Add a leader access code")
@app_commands.rename(leader_role="leader-role", agency_role="agency-role")
@app_commands.describe(
    code="The secret code",
    leader_role="Role to assign",
    agency_role="Agency role to also assign",
    description="Description of this code",
)
@app_commands.guild_only()
@admin_only
async def add_leader_code(
    interaction: discord.Interaction,
    code: str,
    leader_role: discord.Role,
    agency_role: Optional[discord.Role] = None,
    description: Optional[str] = None,
):
    service = _bot(interaction).onboarding_for(interaction.guild)
    await service.add_leader_code(
        code,
        str(leader_role.id),
        str(agency_role.id) if agency_role else None,
        description,
    )
    await interaction.response.send_message(f"✅ Leader code \"{code}\" added.", ephemeral=True)


@app_commands.command(name="list-leader-codes", description="View all configured leader codes")
@app_commands.guild_only()
@admin_only
async def list_leader_codes(interaction: discord.Interaction):
    service = _bot(interaction).onboarding_for(interaction.guild)
    await interaction.response.send_message(await service.list_leader_codes(), ephemeral=True)


@app_commands.command(name="remove-leader-code", description="Remove a leader code")
@app_commands.describe(code="The code to remove")
@app_commands.guild_only()
@admin_only
async def remove_leader_code(interaction: discord.Interaction, code: str):
    service = _bot(interaction).onboarding_for(interaction.guild)
    if await service.remove_leader_code(code):
        await interaction.response.send_message(f"✅ Leader code \"{code}\" removed.", ephemeral=True)
    else:
        await interaction.response.send_message(f"No leader code \"{code}\" found.", ephemeral=True)


@app_commands.command(name="register-agent", description="Register your agent name for badge sync")
@app_commands.guild_only()
async def register_agent(interaction: discord.Interaction):
    service = _bot(interaction).onboarding_for(interaction.guild)
    await interaction.response.send_modal(AgentRegistrationModal(service))


@app_commands.command(name="clear-channel", description="Delete recent messages in this channel")
@app_commands.describe(amount="Number of messages to delete (max 100)")
@app_commands.guild_only()
@admin_only
async def clear_channel(interaction: discord.Interaction, amount: Optional[app_commands.Range[int, 1, CLEAR_LIMIT]] = None):
    await interaction.response.defer(ephemeral=True, thinking=True)
    workspace = _bot(interaction).workspace_for(interaction.guild)
    deleted = await workspace.bulk_delete_messages(str(interaction.channel_id), min(amount or CLEAR_LIMIT, CLEAR_LIMIT))
    await interaction.edit_original_response(content=f"Cleared {deleted} messages.")


@app_commands.command(name="export-member-ids", description="Export the list of member IDs")
@app_commands.guild_only()
@admin_only
async def export_member_ids(interaction: discord.Interaction):
    await interaction.response.defer(ephemeral=True, thinking=True)
    members = await _bot(interaction).workspace_for(interaction.guild).list_members()
    lines: List[str] = ["### Discord Member IDs"] + [f"**{m.tag}**: {m.id}" for m in members]
    await send_chunked(interaction, "\n".join(lines))


@app_commands.command(name="list-webhooks", description="Show the webhook channels and their purposes")
@app_commands.guild_only()
async def list_webhooks(interaction: discord.Interaction):
    await interaction.response.send_message(embed=webhook_embed(), ephemeral=True)


COMMANDS = (
    war_room,
    wipe_structure,
    build_main_structure,
    initialize_agencies,
    add_agency_structure,
    map_hierarchy,
    show_uplines,
    organize_channels,
    deploy_onboarding_portal,
    setup_server,
    add_leader_code,
    list_leader_codes,
    remove_leader_code,
    register_agent,
    clear_channel,
    export_member_ids,
    list_webhooks,
)


def register_commands(tree: app_commands.CommandTree) -> None:
    for command in COMMANDS:
        tree.add_command(command)
