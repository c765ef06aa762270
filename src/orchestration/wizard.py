"""
Conversational wizard that collects an agency hierarchy over three turns.

The user names the main agency, then the sub-agencies, then any further
downline/upline pairs. Each answer goes through the extraction agent. Once
all three are in, the session waits for the user to confirm or cancel; a
confirmed session becomes an ``ActionList`` for the interpreter.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Protocol, Tuple

from models import (
    ActionList,
    AgencySpec,
    BuildMainStructureAction,
    InitializeAgenciesAction,
    MapEdgeAction,
)

from .sessions import SessionExpired, SessionRegistry


logger = logging.getLogger(__name__)

MAIN_EMOJI = "🦁"
SUB_EMOJI = "💎"

START_PROMPT = (
    "🏗️ **Agency Builder Wizard**\n"
    "I'll help you build your server structure step by step.\n\n"
    "**Step 1: What is the MAIN agency name?**"
)
SUBS_PROMPT = (
    "**Step 2: List all SUB-AGENCIES**\n"
    "These report directly to {main}. Separate names with commas."
)
HIERARCHY_PROMPT = (
    "**Step 3: Any agencies under THOSE agencies?**\n"
    "For example: \"Alpha is under Beta\". Type \"none\" if finished."
)
RETRY_PROMPT = "I couldn't understand that. Please try again."


class WizardState(str, Enum):
    AWAITING_MAIN = "awaiting_main"
    AWAITING_SUBS = "awaiting_subs"
    AWAITING_HIERARCHY = "awaiting_hierarchy"
    READY = "ready"


class ParseFailure(Exception):
    """The extraction agent could not make sense of a wizard answer."""
    pass


class WizardNotReady(Exception):
    """Confirmation was requested before all three answers were collected."""
    pass


class StepExtractor(Protocol):
    async def extract_step(self, step: int, text: str) -> Any:
        ...


@dataclass
class HierarchyPair:
    downline: str
    upline: str


@dataclass
class WizardSession:
    user_id: str
    organization_id: str
    channel_id: Optional[str] = None
    state: WizardState = WizardState.AWAITING_MAIN
    main_agency_name: Optional[str] = None
    sub_agency_names: List[str] = field(default_factory=list)
    hierarchy_pairs: List[HierarchyPair] = field(default_factory=list)

    def to_action_list(self) -> ActionList:
        """Materialize the collected answers. Main agency first, then sub-agencies, then mappings."""
        if self.state != WizardState.READY or not self.main_agency_name:
            raise WizardNotReady("Wizard has not collected every answer yet")

        actions: List[Any] = [
            BuildMainStructureAction(),
            InitializeAgenciesAction(agencies=[AgencySpec(name=self.main_agency_name, emoji=MAIN_EMOJI, is_main=True)]),
        ]
        if self.sub_agency_names:
            actions.append(InitializeAgenciesAction(
                agencies=[AgencySpec(name=name, emoji=SUB_EMOJI) for name in self.sub_agency_names]
            ))
        actions.extend(MapEdgeAction(downline=p.downline, upline=p.upline) for p in self.hierarchy_pairs)
        return ActionList(actions=actions)

    def summary(self) -> str:
        lines = [
            "📋 **Build Plan**",
            f"**Main:** {self.main_agency_name}",
            f"**Sub-agencies:** {', '.join(self.sub_agency_names) or 'none'}",
        ]
        if self.hierarchy_pairs:
            lines.append("**Hierarchy:**")
            lines.extend(f"• {p.downline} ➜ {p.upline}" for p in self.hierarchy_pairs)
        else:
            lines.append("**Hierarchy:** none")
        return "\n".join(lines)


@dataclass
class WizardTurn:
    session: WizardSession
    reply: str

    @property
    def ready(self) -> bool:
        return self.session.state == WizardState.READY


def _clean_names(value: Any) -> List[str]:
    if not isinstance(value, list):
        value = [value]
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _clean_pairs(value: Any) -> List[HierarchyPair]:
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    pairs = []
    for item in value:
        if not isinstance(item, dict):
            continue
        downline = str(item.get("downline") or "").strip()
        upline = str(item.get("upline") or "").strip()
        if downline and upline:
            pairs.append(HierarchyPair(downline=downline, upline=upline))
    return pairs


class CollectionWizard:
    """Drives wizard sessions; one per user, last one started wins."""

    def __init__(self, extractor: StepExtractor, registry: Optional[SessionRegistry] = None):
        self.extractor = extractor
        self.registry: SessionRegistry = registry or SessionRegistry()

    async def start(self, user_id: str, organization_id: str, channel_id: Optional[str] = None) -> Tuple[WizardSession, bool]:
        """Open a session. Returns it with a flag telling whether an older session was replaced."""
        session = WizardSession(user_id=user_id, organization_id=organization_id, channel_id=channel_id)
        replaced = await self.registry.start(user_id, session)
        logger.info(f"Wizard started for {user_id} in {organization_id}")
        return session, replaced

    async def active_session(self, user_id: str) -> Optional[WizardSession]:
        return await self.registry.get(user_id)

    async def handle_turn(self, user_id: str, text: str) -> Optional[WizardTurn]:
        """
        Feed one user message into the session.

        Turns for the same user run one at a time, in arrival order. Returns
        None when the user has no session collecting answers, or when the
        session was replaced while the answer was being extracted. Raises
        ParseFailure, leaving the session untouched, when the answer cannot be parsed.
        """
        async with self.registry.key_lock(user_id):
            session = await self.registry.get(user_id)
            if session is None or session.state == WizardState.READY:
                return None

            state = session.state
            value = await self._extract(state, text)
            if not await self.registry.holds(user_id, session):
                logger.info(f"Dropped wizard answer from {user_id}; session was replaced")
                return None
            return await self._apply(user_id, session, state, value)

    async def _extract(self, state: WizardState, text: str) -> Any:
        if state == WizardState.AWAITING_MAIN:
            names = _clean_names(await self.extractor.extract_step(1, text))
            if not names:
                raise ParseFailure("Could not find a main agency name")
            return names[0]

        if state == WizardState.AWAITING_SUBS:
            value = await self.extractor.extract_step(2, text)
            if value is None:
                raise ParseFailure("Could not find sub-agency names")
            return _clean_names(value)

        if text.strip().lower() == "none":
            return []
        value = await self.extractor.extract_step(3, text)
        if value is None:
            raise ParseFailure("Could not find hierarchy pairs")
        return _clean_pairs(value)

    async def _apply(self, user_id: str, session: WizardSession, state: WizardState, value: Any) -> WizardTurn:
        if state == WizardState.AWAITING_MAIN:
            session.main_agency_name = value
            session.state = WizardState.AWAITING_SUBS
            return WizardTurn(session, f"✅ Main: **{value}**\n\n" + SUBS_PROMPT.format(main=value))

        if state == WizardState.AWAITING_SUBS:
            session.sub_agency_names = value
            session.state = WizardState.AWAITING_HIERARCHY
            return WizardTurn(session, f"✅ Subs: {', '.join(value) or 'none'}\n\n" + HIERARCHY_PROMPT)

        session.hierarchy_pairs = value
        session.state = WizardState.READY
        # The confirmation gets its own window.
        await self.registry.renew(user_id, session)
        return WizardTurn(session, session.summary())

    async def confirm(self, user_id: str) -> ActionList:
        """Close a ready session and return its build commands."""
        session = await self.registry.get(user_id)
        if session is None:
            raise SessionExpired("Session expired. Start again.")
        action_list = session.to_action_list()
        await self.registry.pop(user_id)
        logger.info(f"Wizard for {user_id} confirmed with {len(action_list)} actions")
        return action_list

    async def cancel(self, user_id: str) -> WizardSession:
        session = await self.registry.pop(user_id)
        if session is None:
            raise SessionExpired("Session expired. Start again.")
        logger.info(f"Wizard for {user_id} cancelled")
        return session
