"""Models for announcements and the reactions and views attached to them."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from classboard.db.session import Base
from classboard.db.time import utcnow

from .user import User


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class AnnouncementPriority(str, enum.Enum):
    """Display priority of an announcement."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReactionType(str, enum.Enum):
    """The single reaction an actor holds on an announcement."""

    LIKE = "like"
    LOVE = "love"
    HAHA = "haha"
    WOW = "wow"
    SAD = "sad"
    ANGRY = "angry"


class Announcement(Base):
    """Announcement posted by an administrator to the class board."""

    __tablename__ = "announcements"
    __table_args__ = (
        Index("ix_announcements_active_expires", "is_active", "expires_at"),
        Index("ix_announcements_priority", "priority"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(250), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[AnnouncementPriority] = mapped_column(
        Enum(AnnouncementPriority, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=AnnouncementPriority.MEDIUM,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pinned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    enable_views: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_reactions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Denormalised; only ever changed through a single UPDATE ... SET view_count = view_count + 1.
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    author_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    author: Mapped[User | None] = relationship("User", lazy="joined")
    reactions: Mapped[list[AnnouncementReaction]] = relationship(
        "AnnouncementReaction",
        back_populates="announcement",
        cascade="all, delete-orphan",
    )
    views: Mapped[list[AnnouncementView]] = relationship(
        "AnnouncementView",
        back_populates="announcement",
        cascade="all, delete-orphan",
    )


class AnnouncementReaction(Base):
    """One actor's current reaction to an announcement.

    Exactly one of the correlation columns is authoritative for the actor that
    created the row, but all of them are recorded so a later, stronger identity
    (visitor -> authenticated) can find and adopt it.
    """

    __tablename__ = "announcement_reactions"
    __table_args__ = (
        UniqueConstraint("announcement_id", "user_id", name="uq_reaction_announcement_user"),
        UniqueConstraint(
            "announcement_id", "visitor_id", name="uq_reaction_announcement_visitor"
        ),
        UniqueConstraint(
            "announcement_id", "fingerprint_hash", name="uq_reaction_announcement_fingerprint"
        ),
        Index("ix_reaction_announcement_type", "announcement_id", "reaction_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    announcement_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("announcements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reaction_type: Mapped[ReactionType] = mapped_column(
        Enum(ReactionType, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    visitor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    fingerprint_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Audit only; never used as a lookup key.
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    reacted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    announcement: Mapped[Announcement] = relationship("Announcement", back_populates="reactions")


class AnnouncementView(Base):
    """First view of an announcement by one actor; never replaced or removed."""

    __tablename__ = "announcement_views"
    __table_args__ = (
        UniqueConstraint("announcement_id", "user_id", name="uq_view_announcement_user"),
        UniqueConstraint("announcement_id", "visitor_id", name="uq_view_announcement_visitor"),
        UniqueConstraint(
            "announcement_id", "fingerprint_hash", name="uq_view_announcement_fingerprint"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    announcement_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("announcements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    visitor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    fingerprint_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    announcement: Mapped[Announcement] = relationship("Announcement", back_populates="views")
    user: Mapped[User | None] = relationship("User")
