"""action plan entries with one pending entry per user

Revision ID: 0002_action_plan_entries
Revises: 0001_create_users_and_videos
Create Date: 2026-09-01 10:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_action_plan_entries"
down_revision = "0001_create_users_and_videos"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "action_plan_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("video_id", sa.Integer(), sa.ForeignKey("videos.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("achieved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reflection", sa.Text(), nullable=True),
        sa.Column("result_image", sa.String(length=512), nullable=True),
        sa.Column("thumbnail_key", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_action_plan_entries_video_id", "action_plan_entries", ["video_id"])
    op.create_index("ix_action_plan_entries_user_id", "action_plan_entries", ["user_id"])
    op.create_index("ix_action_plan_entries_deadline", "action_plan_entries", ["deadline"])
    op.create_index("ix_action_plan_entries_achieved_at", "action_plan_entries", ["achieved_at"])
    op.create_index("ix_entries_video_id_created_at", "action_plan_entries", ["video_id", "created_at"])
    # at most one pending (achieved_at IS NULL) entry per user
    op.create_index(
        "uq_entries_one_pending_per_user",
        "action_plan_entries",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("achieved_at IS NULL"),
        sqlite_where=sa.text("achieved_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_entries_one_pending_per_user", table_name="action_plan_entries")
    op.drop_index("ix_entries_video_id_created_at", table_name="action_plan_entries")
    op.drop_index("ix_action_plan_entries_achieved_at", table_name="action_plan_entries")
    op.drop_index("ix_action_plan_entries_deadline", table_name="action_plan_entries")
    op.drop_index("ix_action_plan_entries_user_id", table_name="action_plan_entries")
    op.drop_index("ix_action_plan_entries_video_id", table_name="action_plan_entries")
    op.drop_table("action_plan_entries")
