"""Discord bot surface: slash commands, portal buttons, modals and the wizard channel."""

from .client import AgencyBuilderBot
from .commands import COMMANDS, register_commands

__all__ = ["AgencyBuilderBot", "COMMANDS", "register_commands"]
