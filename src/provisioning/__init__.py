"""Structure recipes, the hierarchy permission cascade, and the rename pass."""

from .templates import (
    MAIN_SECTIONS,
    START_HERE_CATEGORY,
    ProvisioningTemplates,
    SectionSpec,
    ChannelSpec,
    agency_text_channels,
    agency_voice_channels,
    category_title,
    channel_slug,
)
from .cascade import CascadeResult, PermissionCascade, UnknownAgencyError
from .reconcile import ReconciliationEngine, ReconciliationResult, canonical_channel_name

__all__ = [
    "MAIN_SECTIONS",
    "START_HERE_CATEGORY",
    "ProvisioningTemplates",
    "SectionSpec",
    "ChannelSpec",
    "agency_text_channels",
    "agency_voice_channels",
    "category_title",
    "channel_slug",
    "CascadeResult",
    "PermissionCascade",
    "UnknownAgencyError",
    "ReconciliationEngine",
    "ReconciliationResult",
    "canonical_channel_name",
]
