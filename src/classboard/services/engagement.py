"""Reaction and view bookkeeping with at-most-one record per actor.

Every record is looked up by the identity's keys in priority order
(user id, visitor id, fingerprint) because an actor's identity can upgrade
over time while its older records keep the weaker key. The lookup and the
insert that may follow run inside a per-announcement critical section, and
the storage layer's uniqueness constraints turn any insert race that slips
past it (another process, another worker) into "found existing".
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from classboard.models import (
    Announcement,
    AnnouncementReaction,
    AnnouncementView,
    ReactionType,
    User,
)
from classboard.services.identity import ResolvedIdentity

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", AnnouncementReaction, AnnouncementView)


class EngagementError(Exception):
    """Base class for engagement failures surfaced to callers."""


class AnnouncementNotFoundError(EngagementError):
    """The target announcement does not exist."""

    def __init__(self, announcement_id: str) -> None:
        super().__init__("Announcement not found")
        self.announcement_id = announcement_id


class ReactionsDisabledError(EngagementError):
    """Reactions are switched off for the target announcement."""

    def __init__(self, announcement_id: str) -> None:
        super().__init__("Reactions are disabled for this announcement")
        self.announcement_id = announcement_id


@dataclass(frozen=True)
class ReactionCount:
    type: ReactionType
    count: int


@dataclass(frozen=True)
class ReactionResult:
    reaction: AnnouncementReaction
    counts: list[ReactionCount]

    @property
    def total(self) -> int:
        return sum(entry.count for entry in self.counts)


@dataclass(frozen=True)
class RemovalResult:
    counts: list[ReactionCount]
    removed: bool

    @property
    def total(self) -> int:
        return sum(entry.count for entry in self.counts)


@dataclass(frozen=True)
class ViewResult:
    is_new_view: bool
    view_count: int


@dataclass(frozen=True)
class ViewerInfo:
    id: int | None
    name: str | None
    viewed_at: datetime


class _KeyedLocks:
    """Reference-counted locks keyed by arbitrary hashable values."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[object, list] = {}

    @contextmanager
    def hold(self, key: object) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        lock: threading.Lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)


_RECORD_LOCKS = _KeyedLocks()


class EngagementService:
    """Deduplicating reaction and view operations for announcements."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # --- Reactions ------------------------------------------------------------------
    def add_reaction(
        self,
        announcement_id: str,
        reaction_type: ReactionType,
        identity: ResolvedIdentity,
    ) -> ReactionResult:
        """Set the actor's reaction, replacing any earlier one.

        Raises:
            AnnouncementNotFoundError: If the announcement does not exist.
            ReactionsDisabledError: If reactions are disabled for it.
        """
        announcement = self._get_announcement(announcement_id)
        if not announcement.enable_reactions:
            raise ReactionsDisabledError(announcement_id)

        with _RECORD_LOCKS.hold((AnnouncementReaction.__tablename__, announcement_id)):
            reaction = self._find_existing(AnnouncementReaction, announcement_id, identity)
            if reaction is None:
                reaction, _ = self._insert(
                    AnnouncementReaction(
                        announcement_id=announcement_id,
                        reaction_type=reaction_type,
                        user_id=identity.user_id,
                        visitor_id=identity.visitor_id,
                        fingerprint_hash=identity.fingerprint_hash,
                        ip_address=identity.ip_address,
                        user_agent=identity.user_agent,
                    ),
                    identity,
                )
            reaction.reaction_type = reaction_type
            self._backfill(reaction, identity, ("user_id", "visitor_id"))
            self.db.commit()

        logger.info(
            "%s %s... reacted with %s to announcement %s",
            identity.type.value,
            identity.identifier[:8],
            reaction_type.value,
            announcement_id,
        )
        return ReactionResult(reaction=reaction, counts=self.reaction_counts(announcement_id))

    def remove_reaction(self, announcement_id: str, user_id: int) -> RemovalResult:
        """Remove an authenticated user's reaction; a missing reaction is a no-op.

        Raises:
            AnnouncementNotFoundError: If the announcement does not exist.
        """
        self._get_announcement(announcement_id)
        reaction = self.db.scalars(
            select(AnnouncementReaction).where(
                AnnouncementReaction.announcement_id == announcement_id,
                AnnouncementReaction.user_id == user_id,
            )
        ).first()

        if reaction is not None:
            self.db.delete(reaction)
            self.db.commit()
            logger.info("User %s removed reaction from announcement %s", user_id, announcement_id)

        return RemovalResult(
            counts=self.reaction_counts(announcement_id),
            removed=reaction is not None,
        )

    def reaction_counts(self, announcement_id: str) -> list[ReactionCount]:
        """Return per-type reaction counts, recomputed from storage."""
        rows = self.db.execute(
            select(AnnouncementReaction.reaction_type, func.count())
            .where(AnnouncementReaction.announcement_id == announcement_id)
            .group_by(AnnouncementReaction.reaction_type)
            .order_by(AnnouncementReaction.reaction_type)
        ).all()
        return [ReactionCount(type=ReactionType(row[0]), count=int(row[1])) for row in rows]

    def user_reaction(self, announcement_id: str, user_id: int) -> ReactionType | None:
        """Return the reaction a user currently holds on an announcement."""
        return self.db.scalars(
            select(AnnouncementReaction.reaction_type).where(
                AnnouncementReaction.announcement_id == announcement_id,
                AnnouncementReaction.user_id == user_id,
            )
        ).first()

    # --- Views ----------------------------------------------------------------------
    def record_view(self, announcement_id: str, identity: ResolvedIdentity) -> ViewResult:
        """Count the actor's first view of an announcement.

        Raises:
            AnnouncementNotFoundError: If the announcement does not exist.
        """
        announcement = self._get_announcement(announcement_id)
        if not announcement.enable_views:
            return ViewResult(is_new_view=False, view_count=announcement.view_count)

        with _RECORD_LOCKS.hold((AnnouncementView.__tablename__, announcement_id)):
            view = self._find_existing(AnnouncementView, announcement_id, identity)
            created = False
            if view is None:
                view, created = self._insert(
                    AnnouncementView(
                        announcement_id=announcement_id,
                        user_id=identity.user_id,
                        visitor_id=identity.visitor_id,
                        fingerprint_hash=identity.fingerprint_hash,
                        ip_address=identity.ip_address,
                        user_agent=identity.user_agent,
                    ),
                    identity,
                )

            if created:
                self.db.execute(
                    update(Announcement)
                    .where(Announcement.id == announcement_id)
                    .values(view_count=Announcement.view_count + 1)
                )
            elif self._backfill(view, identity, ("user_id",)):
                logger.info(
                    "Attributed earlier view of announcement %s to user %s",
                    announcement_id,
                    identity.user_id,
                )
            self.db.commit()

        view_count = self.db.scalar(
            select(Announcement.view_count).where(Announcement.id == announcement_id)
        )
        if created:
            logger.debug(
                "View recorded for %s via %s (%s...)",
                announcement_id,
                identity.type.value,
                identity.identifier[:8],
            )
        return ViewResult(is_new_view=created, view_count=int(view_count or 0))

    def viewers(self, announcement_id: str) -> list[ViewerInfo]:
        """Return viewers newest first; unattributed views carry no id or name.

        Raises:
            AnnouncementNotFoundError: If the announcement does not exist.
        """
        self._get_announcement(announcement_id)
        rows = self.db.execute(
            select(AnnouncementView.viewed_at, User.id, User.name)
            .outerjoin(User, User.id == AnnouncementView.user_id)
            .where(AnnouncementView.announcement_id == announcement_id)
            .order_by(AnnouncementView.viewed_at.desc(), AnnouncementView.id.desc())
        ).all()
        return [ViewerInfo(id=row[1], name=row[2], viewed_at=row[0]) for row in rows]

    # --- Helpers --------------------------------------------------------------------
    def _get_announcement(self, announcement_id: str) -> Announcement:
        announcement = self.db.get(Announcement, announcement_id)
        if announcement is None:
            raise AnnouncementNotFoundError(announcement_id)
        return announcement

    def _find_existing(
        self,
        model: type[RecordT],
        announcement_id: str,
        identity: ResolvedIdentity,
    ) -> RecordT | None:
        for column, value in identity.lookup_keys():
            found = self.db.scalars(
                select(model).where(
                    model.announcement_id == announcement_id,
                    getattr(model, column) == value,
                )
            ).first()
            if found is not None:
                return found
        return None

    def _insert(self, record: RecordT, identity: ResolvedIdentity) -> tuple[RecordT, bool]:
        """Insert ``record``; a uniqueness conflict resolves to the stored row."""
        model = type(record)
        try:
            with self.db.begin_nested():
                self.db.add(record)
        except IntegrityError:
            existing = self._find_existing(model, record.announcement_id, identity)
            if existing is None:
                raise
            logger.info(
                "Concurrent %s insert for announcement %s resolved to existing row",
                model.__tablename__,
                record.announcement_id,
            )
            return existing, False
        return record, True

    def _backfill(
        self,
        record: AnnouncementReaction | AnnouncementView,
        identity: ResolvedIdentity,
        fields: tuple[str, ...],
    ) -> bool:
        """Copy stronger identity keys onto ``record`` without overwriting any.

        A key is skipped when another row for the same announcement already
        holds it, which keeps the uniqueness constraints intact.
        """
        model = type(record)
        changed = False
        for field in fields:
            value = getattr(identity, field)
            if value is None or getattr(record, field) is not None:
                continue
            taken = self.db.scalar(
                select(model.id).where(
                    model.announcement_id == record.announcement_id,
                    getattr(model, field) == value,
                    model.id != record.id,
                )
            )
            if taken is not None:
                continue
            setattr(record, field, value)
            changed = True
        return changed
