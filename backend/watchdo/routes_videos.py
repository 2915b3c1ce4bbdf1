from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from watchdo.db import get_session
from watchdo.integrations.suggestions import get_suggestion_provider
from watchdo.integrations.youtube_api import search_videos
from watchdo.models import User, Video
from watchdo.routes_auth import get_optional_user, require_user
from watchdo.routes_entries import entry_to_read
from watchdo.schemas import (
    AutocompleteResponse,
    CatalogSearchResult,
    ChannelRead,
    ConvertTitleRequest,
    ConvertTitleResponse,
    EntryRead,
    RankedVideo,
    SearchResult,
    SuggestRequest,
    SuggestResponse,
    ToggleResponse,
    VideoDetail,
    VideoRead,
    VideoSummary,
    VideoUrlBody,
)
from watchdo.services import engagement, video_catalog
from watchdo.services.action_plans import ActionPlanService
from watchdo.services.errors import AuthenticationRequired, ExternalCollaboratorError, NotFoundError, ValidationError

router = APIRouter(prefix="/api/videos", tags=["videos"])

SessionDep = Depends(get_session)


async def _get_video(session: AsyncSession, video_id: int) -> Video:
    video = await session.get(Video, video_id)
    if video is None:
        raise NotFoundError(f"Video {video_id} not found")
    return video


async def _detail(session: AsyncSession, video: Video) -> VideoDetail:
    return VideoDetail(
        **VideoRead.model_validate(video).model_dump(),
        thumbnail_url=video_catalog.thumbnail_url(video.youtube_video_id),
        embed_url=video_catalog.embed_url(video.youtube_video_id),
        channel_url=video_catalog.build_channel_url(video.channel_id, video.channel_name) if video.channel_name or video.channel_id else None,
        action_count_rank=await video_catalog.action_count_rank(session, video),
        cheer_count=await engagement.cheer_count(session, video.id),
    )


@router.post("/find_or_create", response_model=VideoRead)
async def find_or_create(body: VideoUrlBody, session: AsyncSession = SessionDep, _user: User = Depends(require_user)):
    video = await video_catalog.find_or_create_by_video(session, body.youtube_url)
    if video is None:
        raise ValidationError("Enter a valid YouTube URL", field="youtube_url")
    await session.commit()
    return video


@router.get("/popular_channels", response_model=list[ChannelRead])
async def popular_channels(limit: int = Query(20, ge=1, le=100), session: AsyncSession = SessionDep):
    return await video_catalog.popular_channels(session, limit=limit)


@router.get("/ranking", response_model=list[RankedVideo])
async def ranking(limit: int = Query(20, ge=1, le=100), session: AsyncSession = SessionDep):
    rows = await video_catalog.by_action_count(session, limit=limit)
    return [
        RankedVideo(
            video=VideoRead.model_validate(video),
            action_count=count,
            thumbnail_url=video_catalog.thumbnail_url(video.youtube_video_id),
        )
        for video, count in rows
    ]


@router.get("/recent", response_model=list[VideoSummary])
async def recent(page: int = Query(1, ge=1), session: AsyncSession = SessionDep):
    """Videos that have at least one achieved action plan, newest first."""
    videos = await video_catalog.recent_videos(session, page=page)
    return [
        VideoSummary(
            **VideoRead.model_validate(video).model_dump(),
            thumbnail_url=video_catalog.thumbnail_url(video.youtube_video_id),
        )
        for video in videos
    ]


@router.get("/search", response_model=list[CatalogSearchResult])
async def search_catalog(q: str = Query(""), session: AsyncSession = SessionDep):
    rows = await video_catalog.search_catalog(session, q)
    return [
        CatalogSearchResult(
            id=video.id,
            title=video.title,
            channel_name=video.channel_name,
            thumbnail_url=video_catalog.thumbnail_url(video.youtube_video_id),
            entry_count=count,
        )
        for video, count in rows
    ]


@router.get("/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(q: str = Query(""), session: AsyncSession = SessionDep):
    return AutocompleteResponse(suggestions=await video_catalog.autocomplete(session, q))


@router.get("/youtube_search", response_model=list[SearchResult])
async def youtube_search(q: str = Query(..., min_length=1), max_results: int = Query(8, ge=1, le=25)):
    return await search_videos(q, max_results=max_results)


@router.post("/suggest_action_plans", response_model=SuggestResponse)
async def suggest_action_plans(body: SuggestRequest, session: AsyncSession = SessionDep):
    plans = await video_catalog.suggested_action_plans(session, body.video_id, body.title)
    return SuggestResponse(action_plans=plans)


@router.post("/convert_to_title", response_model=ConvertTitleResponse)
async def convert_to_title(body: ConvertTitleRequest):
    result = await get_suggestion_provider().convert_to_title(body.action_plan)
    if not result.success:
        raise ExternalCollaboratorError(result.error or "Conversion failed", retryable=result.retryable)
    return ConvertTitleResponse(title=result.title)


@router.get("/{video_id}", response_model=VideoDetail)
async def get_video(video_id: int, session: AsyncSession = SessionDep):
    video = await _get_video(session, video_id)
    return await _detail(session, video)


@router.patch("/{video_id}", response_model=VideoDetail)
async def change_video_url(
    video_id: int, body: VideoUrlBody, session: AsyncSession = SessionDep, _user: User = Depends(require_user)
):
    video = await _get_video(session, video_id)
    await video_catalog.change_video_url(session, video, body.youtube_url)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError("This video is already registered", field="youtube_url") from exc
    return await _detail(session, video)


@router.get("/{video_id}/entries", response_model=list[EntryRead])
async def list_entries(
    video_id: int,
    mine: bool = Query(False),
    session: AsyncSession = SessionDep,
    user: Optional[User] = Depends(get_optional_user),
):
    """Action plans on a video; mine=true keeps only the caller's own."""
    if mine and user is None:
        raise AuthenticationRequired("Sign in to see your action plans")
    video = await _get_video(session, video_id)
    entries = await video_catalog.entries_for_video(session, video, user_id=user.id if mine else None)
    service = ActionPlanService(session)
    return [await entry_to_read(service, entry, user) for entry in entries]


@router.post("/{video_id}/cheer", response_model=ToggleResponse)
async def toggle_cheer(video_id: int, session: AsyncSession = SessionDep, user: User = Depends(require_user)):
    video = await _get_video(session, video_id)
    active = await engagement.toggle_cheer(session, video, user)
    return ToggleResponse(active=active, count=await engagement.cheer_count(session, video.id))

