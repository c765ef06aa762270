"""
Agency Builder

Provisions insurance agency hierarchies on a chat workspace: roles, categories
and channels per agency, upline visibility, member onboarding and badge sync.
"""

__version__ = "0.1.0"
