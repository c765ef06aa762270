"""
discord.py client for the agency builder.

Holds the shared services (store, extraction agent, wizard) and builds the
per-guild pieces (workspace, interpreter, onboarding) on demand.
"""

import asyncio
import logging
from typing import Dict, Optional

import discord
from discord import app_commands

from agency_builder.config import Settings
from agents.extraction import ExtractionAgent
from database.connection import PersistenceError
from database.store import AgencyStore
from orchestration.interpreter import ActionInterpreter
from orchestration.onboarding import LEADER_LOGIN_ID, OnboardingPortal, OnboardingService, role_id_from_custom_id
from orchestration.sessions import SessionExpired, SessionRegistry
from orchestration.wizard import START_PROMPT, RETRY_PROMPT, CollectionWizard, ParseFailure, WizardState
from workspace.base import WorkspaceError, WorkspacePlatform
from workspace.discord_workspace import DiscordWorkspace

from .commands import register_commands, send_chunked
from .views import AgentRegistrationModal, LeaderCodeModal, WizardConfirmView, portal_embed, portal_view, wizard_embed


logger = logging.getLogger(__name__)


class BuilderCommandTree(app_commands.CommandTree):
    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        original = getattr(error, "original", error)
        if isinstance(error, app_commands.CheckFailure):
            message = "Access Denied."
        elif isinstance(original, PersistenceError):
            logger.error(f"Database error in /{interaction.command.name if interaction.command else '?'}: {original}")
            message = f"❌ Database error: {original}"
        elif isinstance(original, WorkspaceError):
            logger.error(f"Platform error: {original}")
            message = f"❌ {original}"
        else:
            logger.exception("Unhandled command error", exc_info=original)
            message = f"❌ Error: {original}"

        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)


class AgencyBuilderBot(discord.Client):
    """
    Args:
        store: Agency store shared by every guild
        extractor: Extraction agent for direct builds and wizard turns
        settings: Loaded application settings
    """

    def __init__(self, store: AgencyStore, extractor: ExtractionAgent, settings: Settings):
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True
        super().__init__(intents=intents)

        self.tree = BuilderCommandTree(self)
        self.store = store
        self.extractor = extractor
        self.settings = settings
        self.wizard = CollectionWizard(extractor, SessionRegistry(timeout=settings.provisioning.wizard_timeout))

        self._wizard_interactions: Dict[str, discord.Interaction] = {}
        self._sweeper: Optional[asyncio.Task] = None
        register_commands(self.tree)

    async def setup_hook(self) -> None:
        self._sweeper = asyncio.create_task(self.wizard.registry.run_sweeper(self.settings.provisioning.sweep_interval))

        guild_id = self.settings.discord.command_guild_id
        if guild_id:
            guild = discord.Object(id=int(guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()
        logger.info(f"Synced {len(synced)} application commands")

    async def close(self) -> None:
        if self._sweeper:
            self._sweeper.cancel()
        await super().close()

    # Per-guild services

    def workspace_for(self, guild: discord.Guild) -> DiscordWorkspace:
        return DiscordWorkspace(guild)

    def onboarding_for(self, guild: discord.Guild) -> OnboardingService:
        return OnboardingService(self.workspace_for(guild), self.store)

    def interpreter_for(self, interaction: discord.Interaction) -> ActionInterpreter:
        channel = interaction.channel

        async def publish(portal: OnboardingPortal) -> None:
            await channel.send(embed=portal_embed(portal), view=portal_view(portal))

        return ActionInterpreter(
            self.workspace_for(interaction.guild),
            self.store,
            origin_channel_id=str(interaction.channel_id),
            portal_publisher=publish,
            channel_delay=self.settings.provisioning.channel_delay,
        )

    async def resolve_workspace(self, organization_id: str) -> Optional[WorkspacePlatform]:
        guild = self.get_guild(int(organization_id))
        if guild is None:
            try:
                guild = await self.fetch_guild(int(organization_id))
            except discord.HTTPException as e:
                logger.warning(f"Could not fetch guild {organization_id}: {e}")
                return None
        return self.workspace_for(guild)

    async def is_admin(self, user_id: str, guild_id: Optional[int]) -> bool:
        if self.settings.discord.admin_user_id and user_id == self.settings.discord.admin_user_id:
            return True
        if guild_id is None:
            return False
        config = await self.store.get_config(str(guild_id))
        return bool(config and config.owner_id == user_id)

    # Wizard

    async def start_wizard(self, interaction: discord.Interaction) -> None:
        user_id = str(interaction.user.id)
        _, replaced = await self.wizard.start(user_id, str(interaction.guild_id), str(interaction.channel_id))
        self._wizard_interactions[user_id] = interaction

        content = START_PROMPT
        if replaced:
            content = "ℹ️ Your previous wizard session was replaced.\n\n" + content
        await interaction.response.send_message(content, ephemeral=True)

    async def _wizard_turn(self, message: discord.Message) -> None:
        user_id = str(message.author.id)
        session = await self.wizard.active_session(user_id)
        if session is None:
            self._wizard_interactions.pop(user_id, None)
            return
        if session.channel_id != str(message.channel.id) or session.state == WizardState.READY:
            return

        interaction = self._wizard_interactions.get(user_id)
        try:
            await message.delete()
        except discord.HTTPException as e:
            logger.debug(f"Could not delete wizard answer from {user_id}: {e}")

        try:
            turn = await self.wizard.handle_turn(user_id, message.content)
        except ParseFailure as e:
            logger.info(f"Wizard turn from {user_id} not understood: {e}")
            if interaction:
                await interaction.followup.send(RETRY_PROMPT, ephemeral=True)
            return
        if turn is None or interaction is None:
            return

        if turn.ready:
            view = WizardConfirmView(self._wizard_build, self._wizard_cancel, timeout=self.wizard.registry.timeout)
            await interaction.followup.send(embed=wizard_embed(turn.session), view=view, ephemeral=True)
        else:
            await interaction.followup.send(turn.reply, ephemeral=True)

    async def _wizard_build(self, interaction: discord.Interaction) -> None:
        user_id = str(interaction.user.id)
        try:
            action_list = await self.wizard.confirm(user_id)
        except SessionExpired:
            await interaction.response.send_message("Session expired.", ephemeral=True)
            return
        finally:
            self._wizard_interactions.pop(user_id, None)

        await interaction.response.defer(ephemeral=True, thinking=True)
        report = await self.interpreter_for(interaction).execute(action_list)
        await send_chunked(interaction, report.render())

    async def _wizard_cancel(self, interaction: discord.Interaction) -> None:
        user_id = str(interaction.user.id)
        self._wizard_interactions.pop(user_id, None)
        try:
            await self.wizard.cancel(user_id)
        except SessionExpired:
            await interaction.response.send_message("Session expired.", ephemeral=True)
            return
        await interaction.response.send_message("Build cancelled.", ephemeral=True)

    # Events

    async def on_ready(self) -> None:
        logger.info(f"Agency Builder Bot active as {self.user}")

    async def on_member_join(self, member: discord.Member) -> None:
        await self.onboarding_for(member.guild).assign_unassigned_role(str(member.id))

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        await self._wizard_turn(message)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type != discord.InteractionType.component or interaction.guild is None:
            return
        custom_id = (interaction.data or {}).get("custom_id", "")
        service = self.onboarding_for(interaction.guild)

        role_id = role_id_from_custom_id(custom_id)
        if role_id:
            await interaction.response.send_modal(AgentRegistrationModal(service, role_id))
        elif custom_id == LEADER_LOGIN_ID:
            await interaction.response.send_modal(LeaderCodeModal(service))
