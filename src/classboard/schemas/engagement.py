"""Reaction and view schemas shared by the REST and WebSocket transports."""
from __future__ import annotations

from datetime import datetime

from classboard.models import ReactionType

from .announcement import ReactionCountOut
from .common import CamelModel


class ReactionCreate(CamelModel):
    """Body of ``POST /announcements/{id}/reactions``."""

    reaction_type: ReactionType


class ReactionOut(CamelModel):
    id: int
    announcement_id: str
    reaction_type: ReactionType
    user_id: int | None
    reacted_at: datetime


class ReactionResponse(CamelModel):
    reaction: ReactionOut
    counts: list[ReactionCountOut]
    total_reactions: int


class ReactionRemovalResponse(CamelModel):
    counts: list[ReactionCountOut]
    total_reactions: int


class ViewResponse(CamelModel):
    is_new_view: bool
    view_count: int


class ViewerOut(CamelModel):
    id: int | None
    name: str | None
    viewed_at: datetime
