from __future__ import annotations

from datetime import date, datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


PENDING_ENTRY_CLAUSE = sa.text("achieved_at IS NULL")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    entries: Mapped[list["ActionPlanEntry"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Video(Base):
    """Canonical record of one YouTube video, unique by its external video ID."""
    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    youtube_video_id: Mapped[str] = mapped_column(sa.String(32), unique=True, nullable=False)
    youtube_url: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    title: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    channel_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, index=True)
    channel_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    channel_thumbnail_url: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    # AI-suggested plans; first successful suggestion wins
    suggested_action_plans: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    entries: Mapped[list["ActionPlanEntry"]] = relationship(back_populates="video")
    cheers: Mapped[list["Cheer"]] = relationship(
        back_populates="video", cascade="all, delete-orphan", passive_deletes=True
    )


class ActionPlanEntry(Base):
    """A user's commitment inspired by one video.

    Pending while achieved_at is NULL. The partial unique index keeps at
    most one pending entry per user.
    """
    __tablename__ = "action_plan_entries"
    __table_args__ = (
        sa.Index(
            "uq_entries_one_pending_per_user",
            "user_id",
            unique=True,
            postgresql_where=PENDING_ENTRY_CLAUSE,
            sqlite_where=PENDING_ENTRY_CLAUSE,
        ),
        sa.Index("ix_entries_video_id_created_at", "video_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    video_id: Mapped[int] = mapped_column(
        sa.ForeignKey("videos.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    deadline: Mapped[date | None] = mapped_column(sa.Date(), nullable=True, index=True)
    achieved_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True, index=True)
    reflection: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    result_image: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    thumbnail_key: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    video: Mapped[Video] = relationship(back_populates="entries")
    user: Mapped[User] = relationship(back_populates="entries")
    likes: Mapped[list["EntryLike"]] = relationship(
        back_populates="entry", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def achieved(self) -> bool:
        return self.achieved_at is not None


class EntryLike(Base):
    __tablename__ = "entry_likes"
    __table_args__ = (sa.UniqueConstraint("user_id", "entry_id", name="uq_entry_likes_user_entry"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_id: Mapped[int] = mapped_column(
        sa.ForeignKey("action_plan_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    entry: Mapped[ActionPlanEntry] = relationship(back_populates="likes")


class Cheer(Base):
    __tablename__ = "cheers"
    __table_args__ = (sa.UniqueConstraint("user_id", "video_id", name="uq_cheers_user_video"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id: Mapped[int] = mapped_column(sa.ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    video: Mapped[Video] = relationship(back_populates="cheers")
