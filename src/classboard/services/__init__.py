# src/classboard/services/__init__.py
"""Business logic services for the Classboard application."""

from .announcements import AnnouncementService
from .broadcaster import Broadcaster, get_broadcaster
from .engagement import (
    AnnouncementNotFoundError,
    EngagementError,
    EngagementService,
    ReactionsDisabledError,
)
from .identity import IdentityResolver, IdentityType, ResolvedIdentity, get_identity_resolver

__all__ = [
    "AnnouncementService",
    "Broadcaster", "get_broadcaster",
    "AnnouncementNotFoundError", "EngagementError", "EngagementService",
    "ReactionsDisabledError",
    "IdentityResolver", "IdentityType", "ResolvedIdentity", "get_identity_resolver",
]
