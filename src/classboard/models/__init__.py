# src/classboard/models/__init__.py
"""SQLAlchemy models for the Classboard application."""

from .announcement import (
    Announcement,
    AnnouncementPriority,
    AnnouncementReaction,
    AnnouncementView,
    ReactionType,
)
from .user import RegistrationStatus, User, UserRole

__all__ = [
    "Announcement", "AnnouncementPriority",
    "AnnouncementReaction", "AnnouncementView", "ReactionType",
    "RegistrationStatus", "User", "UserRole",
]
