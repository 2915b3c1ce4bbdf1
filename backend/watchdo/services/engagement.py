"""Likes on entries and cheers on videos. Each user holds at most one of each per target."""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from watchdo.models import ActionPlanEntry, Cheer, EntryLike, User, Video
from watchdo.services.notify import CheerCreated, LikeCreated, NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)


async def toggle_like(
    session: AsyncSession,
    entry: ActionPlanEntry,
    user: User,
    dispatcher: NotificationDispatcher | None = None,
) -> bool:
    """Flip the user's like on entry. Returns True if the entry is now liked."""
    existing = await session.scalar(
        select(EntryLike).where(EntryLike.entry_id == entry.id, EntryLike.user_id == user.id)
    )
    if existing is not None:
        await session.delete(existing)
        await session.commit()
        return False

    session.add(EntryLike(entry_id=entry.id, user_id=user.id))
    try:
        await session.commit()
    except IntegrityError:
        # double submit, the other request created it
        await session.rollback()
        logger.debug(f"[engagement] duplicate like user={user.id} entry={entry.id}")
        return True

    if entry.user_id != user.id:
        await (dispatcher or get_dispatcher()).dispatch(
            LikeCreated(target_owner_id=entry.user_id, actor_id=user.id, entry_id=entry.id)
        )
    return True


async def toggle_cheer(
    session: AsyncSession,
    video: Video,
    user: User,
    dispatcher: NotificationDispatcher | None = None,
) -> bool:
    existing = await session.scalar(select(Cheer).where(Cheer.video_id == video.id, Cheer.user_id == user.id))
    if existing is not None:
        await session.delete(existing)
        await session.commit()
        return False

    session.add(Cheer(video_id=video.id, user_id=user.id))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.debug(f"[engagement] duplicate cheer user={user.id} video={video.id}")
        return True

    await (dispatcher or get_dispatcher()).dispatch(CheerCreated(video_id=video.id, actor_id=user.id))
    return True


async def like_count(session: AsyncSession, entry_id: int) -> int:
    return int(await session.scalar(select(func.count(EntryLike.id)).where(EntryLike.entry_id == entry_id)) or 0)


async def cheer_count(session: AsyncSession, video_id: int) -> int:
    return int(await session.scalar(select(func.count(Cheer.id)).where(Cheer.video_id == video_id)) or 0)
