"""
Provisioning templates for the main server skeleton and for single agencies.

Both recipes are deterministic. Neither checks for existing structure on its
own: calling them twice creates duplicates, so callers that need to avoid that
go through ``add_agency_structure(..., skip_existing=True)``.

Channel creation is strictly sequential with a fixed delay after every call to
stay under the platform's mutation rate limit.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, List, Optional, Sequence, Tuple

from database.store import AgencyStore
from models import Agency, AgencySpec, StepOutcome
from models.permissions import Permission, PermissionOverwrite, overwrite, replace_overwrite
from workspace.base import ChannelKind, WorkspaceError, WorkspacePlatform


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_CHANNEL_DELAY = 0.5


@dataclass(frozen=True)
class ChannelSpec:
    name: str
    kind: ChannelKind = ChannelKind.TEXT


@dataclass(frozen=True)
class SectionSpec:
    """One category of the main skeleton and the default role's overwrite on it."""
    category: str
    channels: Tuple[ChannelSpec, ...]
    everyone_allow: FrozenSet[Permission] = frozenset()
    everyone_deny: FrozenSet[Permission] = frozenset()


@dataclass(frozen=True)
class RoleProfile:
    suffix: str
    color: int
    permissions: FrozenSet[Permission] = field(default_factory=frozenset)


VIEW = Permission.VIEW_CHANNEL
SEND = Permission.SEND_MESSAGES

START_HERE_CATEGORY = "START HERE ✅"

MAIN_SECTIONS: Tuple[SectionSpec, ...] = (
    SectionSpec(
        category="ADMIN ⚔️",
        channels=(
            ChannelSpec("admin-chat ⚔️"),
            ChannelSpec("admin-logs"),
            ChannelSpec("internal"),
            ChannelSpec("Admins", ChannelKind.VOICE),
            ChannelSpec("Agency Admins", ChannelKind.VOICE),
        ),
        everyone_deny=frozenset({VIEW}),
    ),
    SectionSpec(
        category=START_HERE_CATEGORY,
        channels=(
            ChannelSpec("start-here ✅"),
            ChannelSpec("announcements 📣"),
        ),
        everyone_allow=frozenset({VIEW, Permission.ADD_REACTIONS}),
        everyone_deny=frozenset({SEND}),
    ),
    SectionSpec(
        category="LEADERBOARDS 🏆",
        channels=(
            ChannelSpec("daily-leaderboard"),
            ChannelSpec("weekly-leaderboard"),
            ChannelSpec("monthly-leaderboard"),
            ChannelSpec("agent-spotlight"),
            ChannelSpec("hall-of-fame"),
        ),
        everyone_allow=frozenset({VIEW}),
        everyone_deny=frozenset({SEND}),
    ),
    SectionSpec(
        category="LIVE 🔴",
        channels=(ChannelSpec("live-wins"),),
        everyone_allow=frozenset({VIEW}),
        everyone_deny=frozenset({SEND}),
    ),
    SectionSpec(
        category="CARRIER RESOURCE HUB 📄",
        channels=(
            ChannelSpec("carrier-resources 🟥"),
            ChannelSpec("carrier-contact ☎️"),
        ),
        everyone_allow=frozenset({VIEW}),
        everyone_deny=frozenset({SEND}),
    ),
    SectionSpec(
        category="SALES OPS 💎",
        channels=(
            ChannelSpec("comp 💵"),
            ChannelSpec("lead-vendors 💻"),
        ),
        everyone_allow=frozenset({VIEW}),
        everyone_deny=frozenset({SEND}),
    ),
    SectionSpec(
        category="SUPPORT & QUESTIONS ❓",
        channels=(
            ChannelSpec("help-chat ❓"),
            ChannelSpec("underwriting-questions 📝"),
        ),
        everyone_allow=frozenset({VIEW, SEND}),
    ),
)

# Roles carry no server-wide permissions; leaders get their elevated set on the agency category.
LEADER_ROLE = RoleProfile(suffix=" Leader", color=0xFFD700)
AGENT_ROLE = RoleProfile(suffix="", color=0x3498DB)

AGENT_CATEGORY_PERMISSIONS = frozenset({VIEW, SEND})
LEADER_CATEGORY_PERMISSIONS = frozenset({
    VIEW,
    Permission.MANAGE_CHANNELS,
    Permission.MANAGE_MESSAGES,
    Permission.MUTE_MEMBERS,
    Permission.MOVE_MEMBERS,
    Permission.DEAFEN_MEMBERS,
})

AGENCY_TEXT_KINDS = ("general", "wins", "digest", "resources")
LEADER_ONLY_TEXT_KINDS = frozenset({"digest"})
DIAL_ROOM_COUNT = 5


def channel_slug(name: str) -> str:
    """Lowercased agency name with whitespace runs replaced by dashes."""
    return re.sub(r"\s+", "-", name.strip().lower())


def category_title(name: str, emoji: Optional[str]) -> str:
    return f"{name} {emoji}" if emoji else name


def agency_text_channels(name: str) -> List[Tuple[str, bool]]:
    """(channel name, leader only) for the fixed text channels of an agency."""
    slug = channel_slug(name)
    return [(f"{slug}-{kind}", kind in LEADER_ONLY_TEXT_KINDS) for kind in AGENCY_TEXT_KINDS]


def agency_voice_channels(name: str) -> List[str]:
    rooms = [f"{name} Meeting Room"]
    rooms.extend(f"{name} Dial Room {n}" for n in range(1, DIAL_ROOM_COUNT + 1))
    return rooms


def agency_category_overwrites(default_role_id: str, agent_role_id: str, leader_role_id: str) -> List[PermissionOverwrite]:
    return [
        overwrite(default_role_id, deny=[VIEW]),
        overwrite(agent_role_id, allow=AGENT_CATEGORY_PERMISSIONS),
        overwrite(leader_role_id, allow=LEADER_CATEGORY_PERMISSIONS),
    ]


@dataclass
class _CreatedStructure:
    """What an agency build has created so far, for cleanup on failure."""
    role_ids: List[str] = field(default_factory=list)
    channel_ids: List[str] = field(default_factory=list)


class ProvisioningTemplates:
    """Applies the fixed recipes against one organization's workspace."""

    def __init__(
        self,
        workspace: WorkspacePlatform,
        store: AgencyStore,
        channel_delay: float = DEFAULT_CHANNEL_DELAY,
        sleep: Sleep = asyncio.sleep,
    ):
        self.workspace = workspace
        self.store = store
        self.channel_delay = channel_delay
        self._sleep = sleep

    @property
    def organization_id(self) -> str:
        return self.workspace.organization_id

    async def _pace(self) -> None:
        await self._sleep(self.channel_delay)

    # Main structure

    async def build_main_structure(self, sections: Sequence[SectionSpec] = MAIN_SECTIONS) -> List[str]:
        """
        Create the fixed category sections and their channels.

        Returns the created category ids in section order and records the
        "start here" category in the organization config.
        """
        logger.info(f"Creating main structure for {self.workspace.organization_name}")
        default_role = self.workspace.default_role_id
        category_ids = []
        start_here_id = None

        for section in sections:
            category = await self.workspace.create_category(
                section.category,
                overwrites=[overwrite(default_role, allow=section.everyone_allow, deny=section.everyone_deny)],
            )
            category_ids.append(category.id)
            if section.category == START_HERE_CATEGORY:
                start_here_id = category.id

            for channel in section.channels:
                await self.workspace.create_channel(channel.name, channel.kind, parent_id=category.id)
                await self._pace()

        if start_here_id:
            await self.store.update_config(
                self.organization_id,
                start_here_category_id=start_here_id,
                server_name=self.workspace.organization_name,
            )
        return category_ids

    # Agency structure

    async def initialize_agency(self, spec: AgencySpec) -> Agency:
        """
        Create roles, category and channels for one agency, then persist it.

        On failure, whatever was already created is removed on a best-effort
        basis and the original error is re-raised.
        """
        created = _CreatedStructure()
        try:
            return await self._build_agency(spec, created)
        except Exception:
            logger.error(f"Agency build for {spec.name} failed; cleaning up partial structure")
            await self._cleanup(created)
            raise

    async def _build_agency(self, spec: AgencySpec, created: _CreatedStructure) -> Agency:
        name = spec.name
        reason = f"Setup for {name}"

        leader_role = await self.workspace.create_role(
            f"{name}{LEADER_ROLE.suffix}", color=LEADER_ROLE.color, permissions=LEADER_ROLE.permissions, reason=reason
        )
        created.role_ids.append(leader_role.id)
        agent_role = await self.workspace.create_role(
            f"{name}{AGENT_ROLE.suffix}", color=AGENT_ROLE.color, permissions=AGENT_ROLE.permissions, reason=reason
        )
        created.role_ids.append(agent_role.id)

        category_overwrites = agency_category_overwrites(self.workspace.default_role_id, agent_role.id, leader_role.id)
        category = await self.workspace.create_category(category_title(name, spec.emoji), overwrites=category_overwrites)
        created.channel_ids.append(category.id)

        for channel_name, leader_only in agency_text_channels(name):
            channel_overwrites = category_overwrites
            if leader_only:
                channel_overwrites = replace_overwrite(category_overwrites, overwrite(agent_role.id, deny=[VIEW]))
            channel = await self.workspace.create_channel(
                channel_name, ChannelKind.TEXT, parent_id=category.id, overwrites=channel_overwrites
            )
            created.channel_ids.append(channel.id)
            await self._pace()

        for channel_name in agency_voice_channels(name):
            channel = await self.workspace.create_channel(
                channel_name, ChannelKind.VOICE, parent_id=category.id, overwrites=category_overwrites
            )
            created.channel_ids.append(channel.id)
            await self._pace()

        agency = await self.store.save_agency(
            self.organization_id,
            name=name,
            emoji=spec.emoji,
            agent_role_id=agent_role.id,
            leader_role_id=leader_role.id,
            category_id=category.id,
            is_main=spec.is_main,
        )
        if spec.is_main:
            await self.store.set_main_agency(self.organization_id, agency.id)

        logger.info(f"Initialized agency {name} (id={agency.id}, main={spec.is_main})")
        return agency

    async def _cleanup(self, created: _CreatedStructure) -> List[StepOutcome]:
        outcomes = []
        # Children first, then the category, then roles.
        for channel_id in reversed(created.channel_ids):
            outcomes.append(await self._best_effort(f"delete channel {channel_id}", self.workspace.delete_channel(channel_id)))
        for role_id in reversed(created.role_ids):
            outcomes.append(await self._best_effort(f"delete role {role_id}", self.workspace.delete_role(role_id)))
        return outcomes

    async def _best_effort(self, label: str, call: Awaitable[None]) -> StepOutcome:
        try:
            await call
            return StepOutcome.ok(label)
        except WorkspaceError as e:
            logger.warning(f"Best-effort {label} failed: {e}")
            return StepOutcome.failed(label, str(e))

    async def initialize_agencies(self, specs: Sequence[AgencySpec]) -> List[StepOutcome]:
        """Run the agency recipe once per spec; one agency's failure does not stop the rest."""
        logger.info(f"Initializing {len(specs)} agencies for {self.workspace.organization_name}")
        outcomes = []
        for spec in specs:
            label = f"Agency {spec.name}"
            try:
                agency = await self.initialize_agency(spec)
                outcomes.append(StepOutcome.ok(label, f"created (id={agency.id})"))
            except Exception as e:
                logger.error(f"Failed to initialize agency {spec.name}: {e}")
                outcomes.append(StepOutcome.failed(label, str(e)))
        return outcomes

    # Non-destructive addition

    async def find_existing(self, name: str) -> Optional[str]:
        """
        Best-effort existence check: a role with exactly this name, or a
        category whose name contains it. Returns a description of the match.
        """
        for role in await self.workspace.list_roles():
            if role.name == name:
                return f"role '{role.name}' already exists"
        for channel in await self.workspace.list_channels():
            if channel.is_category and name in channel.name:
                return f"category '{channel.name}' already exists"
        return None

    async def add_agency_structure(self, specs: Sequence[AgencySpec], skip_existing: bool = True) -> List[StepOutcome]:
        """Add agencies without touching existing structure."""
        logger.info(f"Adding {len(specs)} agencies to {self.workspace.organization_name} (non-destructive)")
        outcomes = []
        for spec in specs:
            if skip_existing:
                match = await self.find_existing(spec.name)
                if match:
                    logger.info(f"Skipping existing agency {spec.name}: {match}")
                    outcomes.append(StepOutcome.skipped(f"Agency {spec.name}", match))
                    continue
            outcomes.extend(await self.initialize_agencies([spec]))
        return outcomes
