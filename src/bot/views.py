"""
discord.py views, modals and embeds for the bot.

Portal buttons carry stable custom ids and are routed by the client's
interaction handler, so portals posted before a restart keep working.
Modals and the wizard confirmation use component callbacks.
"""

import logging
from typing import Awaitable, Callable, Optional

import discord

from orchestration.onboarding import OnboardingPortal, OnboardingService
from orchestration.wizard import WizardSession


logger = logging.getLogger(__name__)

WEBHOOK_CHANNELS = (
    ("#live-wins", "Real-time deal notifications"),
    ("#daily-leaderboard", "Daily production updates"),
    ("#weekly-leaderboard", "Weekly production updates"),
    ("#monthly-leaderboard", "Monthly production updates"),
    ("#agent-spotlight", "Top 15 producers"),
    ("#hall-of-fame", "Weekly/monthly champions"),
    ("#[agency]-wins", "Agency-specific wins"),
    ("#[agency]-digest", "Private: Agency leader daily digest"),
)

_STYLES = {
    "primary": discord.ButtonStyle.primary,
    "success": discord.ButtonStyle.success,
    "danger": discord.ButtonStyle.danger,
}

Callback = Callable[[discord.Interaction], Awaitable[None]]


def portal_embed(portal: OnboardingPortal) -> discord.Embed:
    embed = discord.Embed(title=portal.title, description=portal.description, color=0x2F3136)
    if portal.omitted:
        embed.set_footer(text=f"{len(portal.omitted)} agencies not shown")
    return embed


def portal_view(portal: OnboardingPortal) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    for row_index, row in enumerate(portal.rows):
        for button in row:
            view.add_item(discord.ui.Button(
                label=button.label,
                custom_id=button.custom_id,
                style=_STYLES.get(button.style, discord.ButtonStyle.secondary),
                row=row_index,
            ))
    return view


def webhook_embed() -> discord.Embed:
    embed = discord.Embed(
        title="Webhook Channel Structure",
        description="Channels designed for App Script integration",
        color=0x3498DB,
    )
    for name, value in WEBHOOK_CHANNELS:
        embed.add_field(name=name, value=value, inline=False)
    return embed


def wizard_embed(session: WizardSession) -> discord.Embed:
    return discord.Embed(title="Build Confirmation", description=session.summary(), color=0xFFD700)


class AgentRegistrationModal(discord.ui.Modal, title="Agent Registration"):
    agent_name = discord.ui.TextInput(
        label="Enter your full legal name (for badges)",
        placeholder="John Smith",
        max_length=100,
    )

    def __init__(self, service: OnboardingService, role_id: Optional[str] = None):
        super().__init__()
        self.service = service
        self.role_id = role_id

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        message = await self.service.register_agent(str(interaction.user.id), self.agent_name.value, self.role_id)
        await interaction.followup.send(message, ephemeral=True)

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        logger.error(f"Registration failed for {interaction.user.id}: {error}")
        if interaction.response.is_done():
            await interaction.followup.send(f"❌ Registration failed: {error}", ephemeral=True)
        else:
            await interaction.response.send_message(f"❌ Registration failed: {error}", ephemeral=True)


class LeaderCodeModal(discord.ui.Modal, title="Leader Access"):
    code = discord.ui.TextInput(label="Enter Access Code", max_length=100)

    def __init__(self, service: OnboardingService):
        super().__init__()
        self.service = service

    async def on_submit(self, interaction: discord.Interaction) -> None:
        leader_code = await self.service.redeem_leader_code(str(interaction.user.id), self.code.value)
        if leader_code is None:
            await interaction.response.send_message("❌ Invalid Code.", ephemeral=True)
            return
        await interaction.response.send_message("✅ Leader Access Granted.", ephemeral=True)


class WizardConfirmView(discord.ui.View):
    """Build or Cancel buttons shown once the wizard has every answer."""

    def __init__(self, on_build: Callback, on_cancel: Callback, timeout: float):
        super().__init__(timeout=timeout)
        self._on_build = on_build
        self._on_cancel = on_cancel

    @discord.ui.button(label="Build Structure", style=discord.ButtonStyle.success, custom_id="wizard_build")
    async def build(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        self.stop()
        await self._on_build(interaction)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.danger, custom_id="wizard_cancel")
    async def cancel(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        self.stop()
        await self._on_cancel(interaction)
