"""
Core data models for the agency builder.

This package contains:
- Database models mapping to the agency tables
- The permission vocabulary used on workspace channels
- Structured build commands (the action list)
- Execution report values
"""

from .database import Agency, HierarchyEdge, OrganizationConfig, LeaderCode, AgentMapping
from .permissions import Permission, PermissionOverwrite, overwrite
from .actions import (
    AgencySpec,
    Action,
    ActionList,
    ACTION_TYPES,
    WipeAction,
    BuildMainStructureAction,
    InitializeAgenciesAction,
    MapEdgeAction,
    DeployOnboardingAction,
)
from .report import StepStatus, StepOutcome, ExecutionReport

__all__ = [
    # Database models
    "Agency",
    "HierarchyEdge",
    "OrganizationConfig",
    "LeaderCode",
    "AgentMapping",

    # Permissions
    "Permission",
    "PermissionOverwrite",
    "overwrite",

    # Actions
    "AgencySpec",
    "Action",
    "ActionList",
    "ACTION_TYPES",
    "WipeAction",
    "BuildMainStructureAction",
    "InitializeAgenciesAction",
    "MapEdgeAction",
    "DeployOnboardingAction",

    # Reports
    "StepStatus",
    "StepOutcome",
    "ExecutionReport",
]
