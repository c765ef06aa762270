"""
Action interpreter for structured build commands.

Executes an ``ActionList`` strictly in the given order. Ordering contracts
(wipe before build, agencies before mappings) belong to whoever produced the
list. Every action is contained on its own: a failure is written to the
execution report and the next action still runs.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from database.store import AgencyStore
from models import (
    ACTION_TYPES,
    ActionList,
    BuildMainStructureAction,
    DeployOnboardingAction,
    ExecutionReport,
    InitializeAgenciesAction,
    MapEdgeAction,
    StepOutcome,
    WipeAction,
)
from provisioning.cascade import PermissionCascade, UnknownAgencyError
from provisioning.templates import DEFAULT_CHANNEL_DELAY, ProvisioningTemplates
from workspace.base import ChannelInfo, WorkspaceError, WorkspacePlatform

from .onboarding import OnboardingPortal, build_portal


logger = logging.getLogger(__name__)

PortalPublisher = Callable[[OnboardingPortal], Awaitable[None]]


class ActionInterpreter:
    """
    Applies build commands to one organization.

    Args:
        workspace: The organization's workspace
        store: Agency store for the organization
        origin_channel_id: Channel the command came from; a wipe leaves it alone
        portal_publisher: Receives the onboarding portal built by DEPLOY_ONBOARDING
        channel_delay: Pause after every channel creation
    """

    def __init__(
        self,
        workspace: WorkspacePlatform,
        store: AgencyStore,
        origin_channel_id: Optional[str] = None,
        portal_publisher: Optional[PortalPublisher] = None,
        channel_delay: float = DEFAULT_CHANNEL_DELAY,
        templates: Optional[ProvisioningTemplates] = None,
        cascade: Optional[PermissionCascade] = None,
    ):
        self.workspace = workspace
        self.store = store
        self.origin_channel_id = origin_channel_id
        self.portal_publisher = portal_publisher
        self.templates = templates or ProvisioningTemplates(workspace, store, channel_delay=channel_delay)
        self.cascade = cascade or PermissionCascade(workspace, store)
        self.last_portal: Optional[OnboardingPortal] = None

        self._handlers: Dict[type, Callable[..., Awaitable[StepOutcome]]] = {
            WipeAction: self._wipe,
            BuildMainStructureAction: self._build_main,
            InitializeAgenciesAction: self._initialize_agencies,
            MapEdgeAction: self._map_edge,
            DeployOnboardingAction: self._deploy_onboarding,
        }
        unhandled = set(ACTION_TYPES) - set(self._handlers)
        if unhandled:
            raise TypeError(f"No handler for action types: {sorted(t.__name__ for t in unhandled)}")

    async def execute(self, action_list: ActionList) -> ExecutionReport:
        report = ExecutionReport()
        logger.info(f"Executing {len(action_list)} actions for {self.workspace.organization_name}")

        for action in action_list.actions:
            handler = self._handlers[type(action)]
            try:
                outcome = await handler(action)
            except Exception as e:
                logger.error(f"Action '{action.describe()}' failed: {e}")
                outcome = StepOutcome.failed(action.describe(), str(e))
            report.add(outcome)

        logger.info(
            f"Execution finished: {len(report.succeeded)} ok, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    async def _wipe(self, action: WipeAction) -> StepOutcome:
        """Delete every container except the origin channel. Per-item failures are counted, not raised."""
        channels = [c for c in await self.workspace.list_channels() if c.id != self.origin_channel_id]
        # Channels before categories so nothing is left detached mid-wipe.
        channels.sort(key=lambda c: c.is_category)

        results = [await self._delete(c) for c in channels]
        failed = results.count(False)
        detail = f"{len(results) - failed} removed"
        if failed:
            detail += f", {failed} could not be deleted"
        return StepOutcome.ok("Wiped old structure", detail)

    async def _delete(self, channel: ChannelInfo) -> bool:
        try:
            await self.workspace.delete_channel(channel.id)
            return True
        except WorkspaceError as e:
            logger.warning(f"Wipe could not delete {channel.name}: {e}")
            return False

    async def _build_main(self, action: BuildMainStructureAction) -> StepOutcome:
        category_ids = await self.templates.build_main_structure()
        return StepOutcome.ok("Created main structure", f"{len(category_ids)} categories")

    async def _initialize_agencies(self, action: InitializeAgenciesAction) -> StepOutcome:
        outcomes = await self.templates.initialize_agencies(action.agencies)
        failures: List[StepOutcome] = [o for o in outcomes if not o.succeeded]
        created = len(outcomes) - len(failures)
        label = f"Initialized {created}/{len(outcomes)} agencies"
        if failures:
            return StepOutcome.failed(label, "; ".join(f"{o.label}: {o.detail}" for o in failures))
        return StepOutcome.ok(label)

    async def _map_edge(self, action: MapEdgeAction) -> StepOutcome:
        label = action.describe()
        try:
            result = await self.cascade.map_by_name(action.downline, action.upline)
        except UnknownAgencyError as e:
            logger.warning(f"Skipping mapping {action.downline} -> {action.upline}: {e}")
            return StepOutcome.skipped(label, str(e))
        return StepOutcome.ok(label, result.summary())

    async def _deploy_onboarding(self, action: DeployOnboardingAction) -> StepOutcome:
        portal = build_portal(await self.store.list_agencies(self.workspace.organization_id))
        self.last_portal = portal
        if self.portal_publisher:
            await self.portal_publisher(portal)
        detail = f"{len(portal.role_ids)} agencies"
        if portal.omitted:
            detail += f", {len(portal.omitted)} omitted"
        return StepOutcome.ok("Deployed onboarding portal", detail)
