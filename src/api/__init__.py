"""HTTP surface for badge sync."""

from .server import BadgeUpdate, create_app

__all__ = ["BadgeUpdate", "create_app"]
