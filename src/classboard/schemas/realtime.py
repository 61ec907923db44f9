"""Frames exchanged over the announcements WebSocket."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from classboard.models import ReactionType

from .announcement import ReactionCountOut
from .common import CamelModel


class ClientFrame(BaseModel):
    """Envelope of every client-to-server frame."""

    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    id: int | str | None = None


class AnnouncementRef(CamelModel):
    """Payload of ``join``, ``leave``, ``view`` and ``removeReaction``."""

    announcement_id: str = Field(..., min_length=1)


class AddReactionPayload(AnnouncementRef):
    reaction_type: ReactionType


class ReactionUpdate(CamelModel):
    announcement_id: str
    reactions: list[ReactionCountOut]
    total_reactions: int
    user_id: int | None
    reaction_type: ReactionType | None
    action: Literal["add", "remove"]


class ViewerSummary(CamelModel):
    id: int
    name: str
    viewed_at: datetime


class ViewUpdate(CamelModel):
    announcement_id: str
    view_count: int
    viewer: ViewerSummary | None = None


class PinUpdate(CamelModel):
    id: str
    is_pinned: bool


class DeletedAnnouncement(CamelModel):
    id: str
