"""Unit tests for the ORM models defined in classboard.models.

These tests verify mapping details the engagement logic relies on: table
names, the per-key uniqueness constraints that back deduplication, and the
cascade from announcements to their reactions and views.
"""

from sqlalchemy import UniqueConstraint, select
from sqlalchemy.orm import attributes

from classboard.models import (
    Announcement,
    AnnouncementPriority,
    AnnouncementReaction,
    AnnouncementView,
    ReactionType,
    User,
    UserRole,
)


def _unique_sets(model) -> dict[str, tuple[str, ...]]:
    return {
        constraint.name: tuple(column.name for column in constraint.columns)
        for constraint in model.__table__.constraints
        if isinstance(constraint, UniqueConstraint)
    }


def test_table_names():
    assert User.__tablename__ == "users"
    assert Announcement.__tablename__ == "announcements"
    assert AnnouncementReaction.__tablename__ == "announcement_reactions"
    assert AnnouncementView.__tablename__ == "announcement_views"


def test_reaction_uniqueness_per_identity_key():
    assert _unique_sets(AnnouncementReaction) == {
        "uq_reaction_announcement_user": ("announcement_id", "user_id"),
        "uq_reaction_announcement_visitor": ("announcement_id", "visitor_id"),
        "uq_reaction_announcement_fingerprint": ("announcement_id", "fingerprint_hash"),
    }


def test_view_uniqueness_per_identity_key():
    assert _unique_sets(AnnouncementView) == {
        "uq_view_announcement_user": ("announcement_id", "user_id"),
        "uq_view_announcement_visitor": ("announcement_id", "visitor_id"),
        "uq_view_announcement_fingerprint": ("announcement_id", "fingerprint_hash"),
    }


def test_relationships_are_instrumented_attributes():
    for attr in (
        Announcement.author,
        Announcement.reactions,
        Announcement.views,
        AnnouncementReaction.announcement,
        AnnouncementView.announcement,
        AnnouncementView.user,
    ):
        assert isinstance(attr, attributes.InstrumentedAttribute)


def test_defaults_are_applied(db_session, admin_user):
    announcement = Announcement(title="Hello", content="World", author_id=admin_user.id)
    db_session.add(announcement)
    db_session.flush()

    assert len(announcement.id) == 36
    assert announcement.priority is AnnouncementPriority.MEDIUM
    assert announcement.is_active is True
    assert announcement.is_pinned is False
    assert announcement.enable_views is True
    assert announcement.enable_reactions is True
    assert announcement.view_count == 0
    assert announcement.created_at is not None


def test_is_admin_property(admin_user, member_user):
    assert admin_user.role is UserRole.ADMIN
    assert admin_user.is_admin
    assert not member_user.is_admin


def test_deleting_announcement_removes_children(db_session, announcement):
    db_session.add(
        AnnouncementReaction(
            announcement_id=announcement.id,
            reaction_type=ReactionType.LIKE,
            fingerprint_hash="f" * 32,
        )
    )
    db_session.add(AnnouncementView(announcement_id=announcement.id, fingerprint_hash="f" * 32))
    db_session.flush()

    db_session.delete(announcement)
    db_session.flush()

    assert db_session.scalars(select(AnnouncementReaction)).all() == []
    assert db_session.scalars(select(AnnouncementView)).all() == []
