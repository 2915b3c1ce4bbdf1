from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from watchdo.db import get_session
from watchdo.models import ActionPlanEntry, User, Video
from watchdo.routes_auth import get_optional_user, require_user
from watchdo.schemas import (
    AchieveRequest,
    AchievementRead,
    EntryCreate,
    EntryRead,
    EntryUpdate,
    ReflectionUpdate,
    ToggleResponse,
    UserRead,
    VideoRead,
)
from watchdo.services import engagement
from watchdo.services.action_plans import ActionPlanService, days_remaining, deadline_status
from watchdo.services.errors import ValidationError
from watchdo.services.youtube_urls import default_thumbnail_url
from watchdo.worker.tasks import enqueue_thumbnail

router = APIRouter(prefix="/api/entries", tags=["entries"])

SessionDep = Depends(get_session)


def get_service(session: AsyncSession = SessionDep) -> ActionPlanService:
    return ActionPlanService(session)


async def entry_to_read(
    service: ActionPlanService, entry: ActionPlanEntry, viewer: User | None = None, today: date | None = None
) -> EntryRead:
    return EntryRead(
        id=entry.id,
        video_id=entry.video_id,
        user_id=entry.user_id,
        content=entry.content,
        deadline=entry.deadline,
        achieved=entry.achieved,
        achieved_at=entry.achieved_at,
        reflection=entry.reflection,
        days_remaining=days_remaining(entry, today),
        deadline_status=deadline_status(entry, today).value,
        thumbnail_url=service.signed_thumbnail_url(entry),
        result_image_url=service.signed_result_image_url(entry),
        display_thumbnail_url=service.display_result_thumbnail_url(entry),
        liked=await service.liked_by(entry, viewer),
        like_count=await engagement.like_count(service.session, entry.id),
        created_at=entry.created_at,
    )


@router.post("", response_model=EntryRead, status_code=status.HTTP_201_CREATED)
async def create_entry(
    body: EntryCreate,
    service: ActionPlanService = Depends(get_service),
    user: User = Depends(require_user),
):
    video_ref = body.youtube_url
    if body.video_id is not None:
        video_ref = await service.session.get(Video, body.video_id)
        if video_ref is None:
            raise ValidationError("Video not found", field="video_id")
    entry = await service.create(video_ref, user, body.content, deadline=body.deadline, thumbnail_key=body.thumbnail_key)
    if not entry.thumbnail_key:
        enqueue_thumbnail(entry.id)
    return await entry_to_read(service, entry, user)


@router.post("/{entry_id}/toggle_achieve", response_model=EntryRead)
async def toggle_achieve(
    entry_id: int, service: ActionPlanService = Depends(get_service), user: Optional[User] = Depends(get_optional_user)
):
    entry = await service.get_owned_entry(entry_id, user)
    await service.toggle_achieve(entry)
    return await entry_to_read(service, entry, user)


@router.post("/{entry_id}/achieve", response_model=EntryRead)
async def achieve(
    entry_id: int,
    body: AchieveRequest,
    service: ActionPlanService = Depends(get_service),
    user: Optional[User] = Depends(get_optional_user),
):
    """Achieve a pending entry with a reflection and a result photo."""
    entry = await service.get_owned_entry(entry_id, user)
    if entry.achieved_at is None and not body.result_image_key:
        raise ValidationError("A result photo is required", field="result_image_key")
    await service.achieve_with_reflection(entry, body.reflection, image_key=body.result_image_key)
    return await entry_to_read(service, entry, user)


@router.patch("/{entry_id}/reflection", response_model=EntryRead)
async def update_reflection(
    entry_id: int,
    body: ReflectionUpdate,
    service: ActionPlanService = Depends(get_service),
    user: Optional[User] = Depends(get_optional_user),
):
    entry = await service.get_owned_entry(entry_id, user)
    await service.update_reflection(entry, body.reflection, image_key=body.result_image_key)
    return await entry_to_read(service, entry, user)


@router.patch("/{entry_id}", response_model=EntryRead)
async def update_entry(
    entry_id: int,
    body: EntryUpdate,
    service: ActionPlanService = Depends(get_service),
    user: Optional[User] = Depends(get_optional_user),
):
    entry = await service.get_owned_entry(entry_id, user)
    await service.retarget_and_update(
        entry,
        new_video_ref=body.new_video_url or None,
        content=body.content,
        deadline=body.deadline,
        thumbnail_key=body.thumbnail_key,
    )
    return await entry_to_read(service, entry, user)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: int, service: ActionPlanService = Depends(get_service), user: Optional[User] = Depends(get_optional_user)
):
    entry = await service.get_owned_entry(entry_id, user)
    await service.destroy(entry)


@router.post("/{entry_id}/like", response_model=ToggleResponse)
async def toggle_like(
    entry_id: int, service: ActionPlanService = Depends(get_service), user: User = Depends(require_user)
):
    entry = await service.get_entry(entry_id)
    active = await engagement.toggle_like(service.session, entry, user)
    return ToggleResponse(active=active, count=await engagement.like_count(service.session, entry.id))


@router.get("/{entry_id}/achievement", response_model=AchievementRead)
async def show_achievement(
    entry_id: int, service: ActionPlanService = Depends(get_service), user: Optional[User] = Depends(get_optional_user)
):
    entry = await service.get_entry(entry_id)
    return AchievementRead(
        id=entry.id,
        content=entry.content,
        reflection=entry.reflection,
        achieved_at=entry.achieved_at,
        result_image_url=service.signed_result_image_url(entry),
        fallback_thumbnail_url=service.signed_thumbnail_url(entry) or default_thumbnail_url(entry.video.youtube_video_id),
        video=VideoRead.model_validate(entry.video),
        user=UserRead.model_validate(entry.user),
        can_edit=user is not None and entry.user_id == user.id,
    )
