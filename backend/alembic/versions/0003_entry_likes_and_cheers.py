"""entry likes and video cheers

Revision ID: 0003_entry_likes_and_cheers
Revises: 0002_action_plan_entries
Create Date: 2026-09-03 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_entry_likes_and_cheers"
down_revision = "0002_action_plan_entries"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entry_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "entry_id",
            sa.Integer(),
            sa.ForeignKey("action_plan_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "entry_id", name="uq_entry_likes_user_entry"),
    )
    op.create_index("ix_entry_likes_user_id", "entry_likes", ["user_id"])
    op.create_index("ix_entry_likes_entry_id", "entry_likes", ["entry_id"])

    op.create_table(
        "cheers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_id", sa.Integer(), sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "video_id", name="uq_cheers_user_video"),
    )
    op.create_index("ix_cheers_user_id", "cheers", ["user_id"])
    op.create_index("ix_cheers_video_id", "cheers", ["video_id"])


def downgrade() -> None:
    op.drop_index("ix_cheers_video_id", table_name="cheers")
    op.drop_index("ix_cheers_user_id", table_name="cheers")
    op.drop_table("cheers")
    op.drop_index("ix_entry_likes_entry_id", table_name="entry_likes")
    op.drop_index("ix_entry_likes_user_id", table_name="entry_likes")
    op.drop_table("entry_likes")
