"""
Video catalog: one canonical Video row per YouTube video ID.

Entry services resolve raw URLs through find_or_create_by_video and call
delete_if_orphaned after any change that may leave a video without entries.
"""
from __future__ import annotations

import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from watchdo.integrations.suggestions import SuggestionProvider, get_suggestion_provider
from watchdo.integrations.youtube_api import MetadataLookup, VideoMetadata, get_metadata_lookup
from watchdo.models import ActionPlanEntry, Video
from watchdo.services.errors import ExternalCollaboratorError, ValidationError
from watchdo.services.youtube_urls import (  # noqa: F401  re-exported helpers
    build_channel_url,
    default_thumbnail_url,
    embed_url,
    extract_video_id,
    is_youtube_url,
    thumbnail_url,
)

logger = logging.getLogger(__name__)

RANK_LIMIT = 10
RECENT_PER_PAGE = 20
SEARCH_LIMIT = 10
MIN_QUERY_LENGTH = 2


async def _fetch_metadata(lookup: MetadataLookup | None, raw_url: str) -> VideoMetadata | None:
    lookup = lookup or get_metadata_lookup()
    try:
        return await lookup.fetch(raw_url)
    except Exception as exc:
        # metadata is advisory, the video is still created
        logger.warning(f"[catalog] metadata lookup raised for {raw_url}: {exc}")
        return None


def _metadata_values(meta: VideoMetadata | None) -> dict[str, Any]:
    if meta is None:
        return {}
    return {
        "title": meta.title,
        "channel_name": meta.channel_name,
        "channel_id": meta.channel_id,
        "channel_thumbnail_url": meta.channel_thumbnail_url,
    }


async def get_by_youtube_id(session: AsyncSession, youtube_video_id: str) -> Video | None:
    result = await session.execute(select(Video).where(Video.youtube_video_id == youtube_video_id))
    return result.scalar_one_or_none()


async def find_or_create_by_video(
    session: AsyncSession, raw_url: str | None, lookup: MetadataLookup | None = None
) -> Video | None:
    """Return the Video for raw_url, creating it if needed.

    Concurrent callers with the same video ID converge on one row: the
    insert is ON CONFLICT DO NOTHING followed by a re-select. Flushes but
    never commits.
    """
    video_id = extract_video_id(raw_url)
    if not video_id:
        return None

    existing = await get_by_youtube_id(session, video_id)
    if existing is not None:
        return existing

    meta = await _fetch_metadata(lookup, raw_url)
    values = {"youtube_video_id": video_id, "youtube_url": raw_url.strip(), **_metadata_values(meta)}

    dialect = session.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert(Video).values(**values).on_conflict_do_nothing(index_elements=["youtube_video_id"])
    await session.execute(stmt)

    video = await get_by_youtube_id(session, video_id)
    if video is not None:
        logger.info(f"[catalog] resolved video {video_id} -> id={video.id}")
    return video


async def change_video_url(
    session: AsyncSession, video: Video, raw_url: str | None, lookup: MetadataLookup | None = None
) -> Video:
    """Point an existing video at a new URL, refreshing the ID and metadata."""
    video_id = extract_video_id(raw_url)
    if not video_id:
        raise ValidationError("Enter a valid YouTube URL", field="youtube_url")
    if video_id != video.youtube_video_id:
        clash = await get_by_youtube_id(session, video_id)
        if clash is not None and clash.id != video.id:
            raise ValidationError("This video is already registered", field="youtube_url")

    video.youtube_url = raw_url.strip()
    video.youtube_video_id = video_id
    meta = await _fetch_metadata(lookup, raw_url)
    for key, value in _metadata_values(meta).items():
        setattr(video, key, value)
    session.add(video)
    await session.flush()
    return video


async def delete_if_orphaned(session: AsyncSession, video_id: int | None) -> bool:
    """Delete the video if no entry references it. Returns True if deleted.

    Runs in its own transaction and must be called after the caller has
    committed. Failures are logged and swallowed.
    """
    if video_id is None:
        return False
    stmt = (
        sa.delete(Video)
        .where(
            Video.id == video_id,
            ~sa.exists().where(ActionPlanEntry.video_id == video_id),
        )
        .execution_options(synchronize_session=False)
    )
    try:
        result = await session.execute(stmt)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.info(f"[catalog] video {video_id} gained an entry during cleanup, kept: {exc.orig}")
        return False
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error(f"[catalog] orphan cleanup failed for video {video_id}: {exc}")
        return False

    deleted = (result.rowcount or 0) > 0
    if deleted:
        stale = await session.get(Video, video_id)
        if stale is not None:
            session.expunge(stale)
        logger.info(f"[catalog] deleted orphaned video id={video_id}")
    return deleted


async def popular_channels(session: AsyncSession, limit: int = 20) -> list[dict[str, Any]]:
    action_count = func.count(ActionPlanEntry.id)
    stmt = (
        select(
            Video.channel_name,
            func.min(Video.channel_id),
            func.min(Video.channel_thumbnail_url),
            func.count(sa.distinct(Video.id)),
            action_count,
        )
        .join(ActionPlanEntry, ActionPlanEntry.video_id == Video.id)
        .where(
            ActionPlanEntry.achieved_at.is_not(None),
            Video.channel_name.is_not(None),
            Video.channel_name != "",
        )
        .group_by(Video.channel_name)
        .order_by(action_count.desc())
        .limit(limit)
    )
    rows = (await session.execute(stmt)).all()
    return [
        {
            "channel_name": name,
            "channel_id": channel_id,
            "thumbnail_url": thumb,
            "post_count": post_count,
            "action_count": actions,
            "youtube_url": build_channel_url(channel_id, name),
        }
        for name, channel_id, thumb, post_count, actions in rows
    ]


async def by_action_count(session: AsyncSession, limit: int | None = 20) -> list[tuple[Video, int]]:
    """Videos ordered by number of achieved entries, most first."""
    action_count = func.count(ActionPlanEntry.id).label("action_count")
    stmt = (
        select(Video, action_count)
        .join(ActionPlanEntry, ActionPlanEntry.video_id == Video.id)
        .where(ActionPlanEntry.achieved_at.is_not(None))
        .group_by(Video.id)
        .order_by(action_count.desc(), Video.id)
    )
    if limit:
        stmt = stmt.limit(limit)
    return [(video, count) for video, count in (await session.execute(stmt)).all()]


async def action_count_rank(session: AsyncSession, video: Video) -> int | None:
    """1-based rank among videos by entry count, None outside the top 10."""
    my_count = await session.scalar(
        select(func.count(ActionPlanEntry.id)).where(ActionPlanEntry.video_id == video.id)
    )
    if not my_count:
        return None
    per_video = (
        select(ActionPlanEntry.video_id)
        .group_by(ActionPlanEntry.video_id)
        .having(func.count(ActionPlanEntry.id) > my_count)
        .subquery()
    )
    ahead = await session.scalar(select(func.count()).select_from(per_video))
    rank = (ahead or 0) + 1
    return rank if rank <= RANK_LIMIT else None


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _matches_title_or_channel(query: str):
    pattern = _like_pattern(query)
    return sa.or_(Video.title.ilike(pattern, escape="\\"), Video.channel_name.ilike(pattern, escape="\\"))


async def recent_videos(session: AsyncSession, page: int = 1, per_page: int = RECENT_PER_PAGE) -> list[Video]:
    """Videos with at least one achieved entry, newest first."""
    achieved = sa.exists().where(
        ActionPlanEntry.video_id == Video.id, ActionPlanEntry.achieved_at.is_not(None)
    )
    stmt = (
        select(Video)
        .where(achieved)
        .order_by(Video.created_at.desc(), Video.id.desc())
        .offset((max(page, 1) - 1) * per_page)
        .limit(per_page)
    )
    return list((await session.execute(stmt)).scalars().all())


async def search_catalog(session: AsyncSession, query: str | None, limit: int = SEARCH_LIMIT) -> list[tuple[Video, int]]:
    """Registered videos with entries whose title or channel matches query, with their entry count."""
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    entry_count = func.count(ActionPlanEntry.id).label("entry_count")
    stmt = (
        select(Video, entry_count)
        .join(ActionPlanEntry, ActionPlanEntry.video_id == Video.id)
        .where(_matches_title_or_channel(query))
        .group_by(Video.id)
        .order_by(Video.created_at.desc(), Video.id.desc())
        .limit(limit)
    )
    return [(video, count) for video, count in (await session.execute(stmt)).all()]


async def autocomplete(session: AsyncSession, query: str | None, limit: int = SEARCH_LIMIT) -> list[str]:
    """Distinct titles and channel names containing query, for search-as-you-type."""
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    rows = (
        await session.execute(
            select(Video.title, Video.channel_name).where(_matches_title_or_channel(query)).limit(limit)
        )
    ).all()
    needle = query.lower()
    suggestions: list[str] = []
    for title, channel_name in rows:
        for value in (title, channel_name):
            if value and needle in value.lower() and value not in suggestions:
                suggestions.append(value)
    return suggestions[:limit]


async def entries_for_video(
    session: AsyncSession, video: Video, user_id: int | None = None
) -> list[ActionPlanEntry]:
    """Entries on a video, newest first; restricted to one user when user_id is given."""
    stmt = (
        select(ActionPlanEntry)
        .where(ActionPlanEntry.video_id == video.id)
        .options(selectinload(ActionPlanEntry.video), selectinload(ActionPlanEntry.user))
        .order_by(ActionPlanEntry.created_at.desc(), ActionPlanEntry.id.desc())
    )
    if user_id is not None:
        stmt = stmt.where(ActionPlanEntry.user_id == user_id)
    return list((await session.execute(stmt)).scalars().all())


async def suggested_action_plans(
    session: AsyncSession,
    youtube_video_id: str,
    title: str | None,
    provider: SuggestionProvider | None = None,
) -> list[str]:
    """Cached plan suggestions for a video; the first successful result is stored."""
    video = await get_by_youtube_id(session, youtube_video_id) if youtube_video_id else None
    if video is not None and video.suggested_action_plans:
        return list(video.suggested_action_plans)

    provider = provider or get_suggestion_provider()
    result = await provider.suggest_plans(youtube_video_id, title or (video.title if video else None))
    if not result.success:
        raise ExternalCollaboratorError(result.error or "Failed to generate action plans", retryable=result.retryable)

    if video is not None:
        video.suggested_action_plans = result.action_plans
        session.add(video)
        await session.commit()
        logger.info(f"[catalog] cached {len(result.action_plans)} suggestions for {youtube_video_id}")
    return result.action_plans
