# src/classboard/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .announcement import AnnouncementCreate, AnnouncementOut, AnnouncementUpdate, StatsOut
from .engagement import (
    ReactionCreate,
    ReactionRemovalResponse,
    ReactionResponse,
    ViewerOut,
    ViewResponse,
)

__all__ = [
    "AnnouncementCreate", "AnnouncementOut", "AnnouncementUpdate", "StatsOut",
    "ReactionCreate", "ReactionRemovalResponse", "ReactionResponse",
    "ViewerOut", "ViewResponse",
]
