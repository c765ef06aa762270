"""
Orchestration package for running build commands and member flows.

This package provides:
- ActionInterpreter for executing structured build commands
- CollectionWizard and its session registry for the guided build
- OnboardingService for the portal, registration and leader codes
- BadgeSyncService for nickname badge updates
"""

from .interpreter import ActionInterpreter
from .sessions import SessionExpired, SessionRegistry
from .wizard import CollectionWizard, ParseFailure, WizardNotReady, WizardSession, WizardState, WizardTurn
from .onboarding import OnboardingPortal, OnboardingService, build_portal
from .badges import AgentNotFound, BadgeSyncError, BadgeSyncService, badge_nickname

__all__ = [
    "ActionInterpreter",
    "SessionExpired",
    "SessionRegistry",
    "CollectionWizard",
    "ParseFailure",
    "WizardNotReady",
    "WizardSession",
    "WizardState",
    "WizardTurn",
    "OnboardingPortal",
    "OnboardingService",
    "build_portal",
    "AgentNotFound",
    "BadgeSyncError",
    "BadgeSyncService",
    "badge_nickname",
]
