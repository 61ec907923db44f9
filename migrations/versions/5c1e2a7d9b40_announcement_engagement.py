"""announcement engagement schema

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-19 09:12:41.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e2a7d9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _correlation_columns() -> list[sa.Column]:
    return [
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("visitor_id", sa.String(length=64), nullable=True),
        sa.Column("fingerprint_hash", sa.String(length=64), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    """Create users, announcements and the reaction/view tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=250), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("registration_status", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(
        "ix_users_registration_status", "users", ["registration_status"], unique=False
    )

    op.create_table(
        "announcements",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=250), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_pinned", sa.Boolean(), nullable=False),
        sa.Column("pinned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enable_views", sa.Boolean(), nullable=False),
        sa.Column("enable_reactions", sa.Boolean(), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("author_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_announcements_active_expires", "announcements", ["is_active", "expires_at"]
    )
    op.create_index("ix_announcements_priority", "announcements", ["priority"])

    op.create_table(
        "announcement_reactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("announcement_id", sa.String(length=36), nullable=False),
        sa.Column("reaction_type", sa.String(length=16), nullable=False),
        *_correlation_columns(),
        sa.Column("reacted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["announcement_id"], ["announcements.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("announcement_id", "user_id", name="uq_reaction_announcement_user"),
        sa.UniqueConstraint(
            "announcement_id", "visitor_id", name="uq_reaction_announcement_visitor"
        ),
        sa.UniqueConstraint(
            "announcement_id", "fingerprint_hash", name="uq_reaction_announcement_fingerprint"
        ),
    )
    op.create_index(
        "ix_announcement_reactions_announcement_id",
        "announcement_reactions",
        ["announcement_id"],
    )
    op.create_index(
        "ix_reaction_announcement_type",
        "announcement_reactions",
        ["announcement_id", "reaction_type"],
    )

    op.create_table(
        "announcement_views",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("announcement_id", sa.String(length=36), nullable=False),
        *_correlation_columns(),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["announcement_id"], ["announcements.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("announcement_id", "user_id", name="uq_view_announcement_user"),
        sa.UniqueConstraint("announcement_id", "visitor_id", name="uq_view_announcement_visitor"),
        sa.UniqueConstraint(
            "announcement_id", "fingerprint_hash", name="uq_view_announcement_fingerprint"
        ),
    )
    op.create_index(
        "ix_announcement_views_announcement_id", "announcement_views", ["announcement_id"]
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_index("ix_announcement_views_announcement_id", table_name="announcement_views")
    op.drop_table("announcement_views")
    op.drop_index("ix_reaction_announcement_type", table_name="announcement_reactions")
    op.drop_index(
        "ix_announcement_reactions_announcement_id", table_name="announcement_reactions"
    )
    op.drop_table("announcement_reactions")
    op.drop_index("ix_announcements_priority", table_name="announcements")
    op.drop_index("ix_announcements_active_expires", table_name="announcements")
    op.drop_table("announcements")
    op.drop_index("ix_users_registration_status", table_name="users")
    op.drop_table("users")
