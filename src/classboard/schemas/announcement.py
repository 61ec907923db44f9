"""Announcement-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from classboard.models import AnnouncementPriority, ReactionType

from .common import CamelModel


class AnnouncementCreate(CamelModel):
    """Schema for creating a new announcement."""

    title: str = Field(..., min_length=1, max_length=250)
    content: str = Field(..., min_length=1)
    priority: AnnouncementPriority = AnnouncementPriority.MEDIUM
    is_active: bool = True
    is_pinned: bool = False
    enable_views: bool = True
    enable_reactions: bool = True
    expires_at: datetime | None = None


class AnnouncementUpdate(CamelModel):
    """Partial update; only fields present in the request are applied."""

    title: str | None = Field(None, min_length=1, max_length=250)
    content: str | None = Field(None, min_length=1)
    priority: AnnouncementPriority | None = None
    is_active: bool | None = None
    is_pinned: bool | None = None
    enable_views: bool | None = None
    enable_reactions: bool | None = None
    expires_at: datetime | None = None

    @field_validator(
        "title",
        "content",
        "priority",
        "is_active",
        "is_pinned",
        "enable_views",
        "enable_reactions",
    )
    @classmethod
    def _reject_null(cls, value):
        # Only expiresAt may be cleared with an explicit null.
        if value is None:
            raise ValueError("must not be null")
        return value


class AuthorOut(CamelModel):
    id: int
    name: str


class ReactionCountOut(CamelModel):
    type: ReactionType
    count: int


class AnnouncementOut(CamelModel):
    """Announcement with aggregated reactions and the reader's own reaction."""

    id: str
    title: str
    content: str
    priority: AnnouncementPriority
    is_active: bool
    is_pinned: bool
    pinned_at: datetime | None
    enable_views: bool
    enable_reactions: bool
    view_count: int
    expires_at: datetime | None
    author: AuthorOut
    reactions: list[ReactionCountOut]
    total_reactions: int
    user_reaction: ReactionType | None = None
    created_at: datetime
    updated_at: datetime


class StatsOut(CamelModel):
    """Site-wide counters shown on the landing page."""

    announcements: int
