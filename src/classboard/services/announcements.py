"""Announcement lifecycle operations and the "with stats" read model."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from classboard.db.time import utcnow
from classboard.models import Announcement, AnnouncementPriority, ReactionType
from classboard.services.engagement import (
    AnnouncementNotFoundError,
    EngagementService,
    ReactionCount,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorInfo:
    id: int
    name: str


@dataclass(frozen=True)
class AnnouncementStats:
    """Announcement fields plus aggregated engagement for one reader."""

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
    author: AuthorInfo
    reactions: list[ReactionCount]
    total_reactions: int
    user_reaction: ReactionType | None
    created_at: datetime
    updated_at: datetime


def _visible_now() -> tuple:
    now = utcnow()
    return (
        Announcement.is_active.is_(True),
        or_(Announcement.expires_at.is_(None), Announcement.expires_at > now),
    )


class AnnouncementService:
    """Create, read, update, delete and pin announcements."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.engagement = EngagementService(db)

    def create(self, data: dict[str, Any], author_id: int | None) -> AnnouncementStats:
        announcement = Announcement(author_id=author_id, **data)
        if announcement.is_pinned:
            announcement.pinned_at = utcnow()
        self.db.add(announcement)
        self.db.commit()
        logger.info("Announcement %s created by user %s", announcement.id, author_id)
        return self.get(announcement.id)

    def get(self, announcement_id: str, user_id: int | None = None) -> AnnouncementStats:
        return self.with_stats(self._get_or_raise(announcement_id), user_id)

    def list_active(self, user_id: int | None = None) -> list[AnnouncementStats]:
        """Return active, unexpired announcements, pinned first and newest next."""
        announcements = self.db.scalars(
            select(Announcement)
            .where(*_visible_now())
            .order_by(Announcement.is_pinned.desc(), Announcement.created_at.desc())
        ).all()
        return [self.with_stats(item, user_id) for item in announcements]

    def count_active(self) -> int:
        """Count the announcements ``list_active`` would return."""
        return self.db.scalar(
            select(func.count()).select_from(Announcement).where(*_visible_now())
        ) or 0

    def list_all(self, user_id: int | None = None) -> list[AnnouncementStats]:
        announcements = self.db.scalars(
            select(Announcement).order_by(
                Announcement.is_pinned.desc(), Announcement.created_at.desc()
            )
        ).all()
        return [self.with_stats(item, user_id) for item in announcements]

    def update(self, announcement_id: str, data: dict[str, Any]) -> AnnouncementStats:
        """Apply a partial update; changing ``is_pinned`` stamps or clears ``pinned_at``."""
        announcement = self._get_or_raise(announcement_id)
        pinned = data.get("is_pinned")
        if pinned is not None and pinned != announcement.is_pinned:
            announcement.pinned_at = utcnow() if pinned else None
        for field, value in data.items():
            setattr(announcement, field, value)
        self.db.commit()
        logger.info("Announcement %s updated", announcement_id)
        return self.get(announcement_id)

    def remove(self, announcement_id: str) -> None:
        announcement = self._get_or_raise(announcement_id)
        self.db.delete(announcement)
        self.db.commit()
        logger.info("Announcement %s removed", announcement_id)

    def toggle_pin(self, announcement_id: str) -> AnnouncementStats:
        announcement = self._get_or_raise(announcement_id)
        announcement.is_pinned = not announcement.is_pinned
        announcement.pinned_at = utcnow() if announcement.is_pinned else None
        self.db.commit()
        logger.info(
            "Announcement %s %s",
            announcement_id,
            "pinned" if announcement.is_pinned else "unpinned",
        )
        return self.get(announcement_id)

    def with_stats(
        self, announcement: Announcement, user_id: int | None = None
    ) -> AnnouncementStats:
        counts = self.engagement.reaction_counts(announcement.id)
        user_reaction = None
        if user_id is not None:
            user_reaction = self.engagement.user_reaction(announcement.id, user_id)

        author = announcement.author
        return AnnouncementStats(
            id=announcement.id,
            title=announcement.title,
            content=announcement.content,
            priority=announcement.priority,
            is_active=announcement.is_active,
            is_pinned=announcement.is_pinned,
            pinned_at=announcement.pinned_at,
            enable_views=announcement.enable_views,
            enable_reactions=announcement.enable_reactions,
            view_count=announcement.view_count,
            expires_at=announcement.expires_at,
            author=AuthorInfo(id=author.id, name=author.name) if author else AuthorInfo(0, "Unknown"),
            reactions=counts,
            total_reactions=sum(entry.count for entry in counts),
            user_reaction=user_reaction,
            created_at=announcement.created_at,
            updated_at=announcement.updated_at,
        )

    def _get_or_raise(self, announcement_id: str) -> Announcement:
        announcement = self.db.get(Announcement, announcement_id)
        if announcement is None:
            raise AnnouncementNotFoundError(announcement_id)
        return announcement
