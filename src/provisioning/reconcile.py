"""
Reconciliation pass that renames existing agency structure to canonical form.

Nothing is created or deleted. A rename is issued only when the computed
canonical name differs from the current one, so a second run over canonical
structure changes nothing.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from models import AgencySpec
from workspace.base import ChannelInfo, ChannelKind, WorkspacePlatform

from .templates import AGENCY_TEXT_KINDS, Sleep, category_title


logger = logging.getLogger(__name__)

_TRAILING_NUMBER = re.compile(r"(\d+)\D*$")


def short_slug(name: str) -> str:
    """Lowercased first word of the agency name."""
    words = name.split()
    return words[0].lower() if words else ""


def canonical_channel_name(channel: ChannelInfo, agency_name: str) -> Optional[str]:
    """Canonical name for a child channel, or None when it matches no known pattern."""
    current = channel.name.lower()

    if channel.kind == ChannelKind.TEXT:
        for kind in AGENCY_TEXT_KINDS:
            if kind in current:
                return f"{short_slug(agency_name)}-{kind}"
        return None

    if channel.kind == ChannelKind.VOICE:
        if "meeting" in current:
            return f"{agency_name} Meeting Room"
        if "dial" in current:
            match = _TRAILING_NUMBER.search(channel.name)
            number = match.group(1) if match else "1"
            return f"{agency_name} Dial Room {number}"
    return None


@dataclass
class ReconciliationResult:
    renames: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return len(self.renames)

    def lines(self) -> List[str]:
        return self.renames + [f"⚠️ Category not found for: {name}" for name in self.missing]

    def render(self) -> str:
        return "\n".join(self.lines()) or "No changes needed."


class ReconciliationEngine:
    """Re-canonicalizes category and channel names for a list of agencies."""

    def __init__(self, workspace: WorkspacePlatform, rename_delay: float = 0.0, sleep: Sleep = asyncio.sleep):
        self.workspace = workspace
        self.rename_delay = rename_delay
        self._sleep = sleep

    async def _rename(self, channel: ChannelInfo, new_name: str, result: ReconciliationResult, label: str) -> None:
        old_name = channel.name
        await self.workspace.rename_channel(channel.id, new_name)
        channel.name = new_name
        result.renames.append(f"Renamed {label}: {old_name} -> {new_name}")
        logger.info(f"Renamed {label} {old_name} -> {new_name}")
        await self._sleep(self.rename_delay)

    async def organize(self, agencies: Sequence[AgencySpec]) -> ReconciliationResult:
        result = ReconciliationResult()
        channels = await self.workspace.list_channels()
        categories = [c for c in channels if c.is_category]

        for agency in agencies:
            target = agency.name.lower()
            category = next((c for c in categories if target in c.name.lower()), None)
            if category is None:
                logger.warning(f"No category found for agency {agency.name}")
                result.missing.append(agency.name)
                continue

            wanted = category_title(agency.name, agency.emoji)
            if category.name != wanted:
                await self._rename(category, wanted, result, "category")

            for child in (c for c in channels if c.parent_id == category.id):
                new_name = canonical_channel_name(child, agency.name)
                if new_name and child.name != new_name:
                    await self._rename(child, new_name, result, "channel")

        return result
