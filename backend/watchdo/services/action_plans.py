"""
Action plan entry lifecycle.

An entry is Pending while achieved_at is NULL and Achieved otherwise. A user
holds at most one Pending entry; the service checks this up front and the
partial unique index uq_entries_one_pending_per_user enforces it under
concurrency.

Every mutation commits on its own. Operations that may leave a video
without entries run orphan cleanup after their commit.
"""
from __future__ import annotations

import enum
import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from watchdo.integrations.storage import BlobStorage, get_storage
from watchdo.integrations.youtube_api import MetadataLookup
from watchdo.models import ActionPlanEntry, EntryLike, User, Video
from watchdo.services.errors import (
    AuthenticationRequired,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from watchdo.services.video_catalog import delete_if_orphaned, find_or_create_by_video
from watchdo.services.youtube_urls import default_thumbnail_url
from watchdo.settings import get_settings

logger = logging.getLogger(__name__)

CONTENT_MAX_LENGTH = 200
REFLECTION_MAX_LENGTH = 500
CLEAR_THUMBNAIL = "CLEAR"
ONE_PENDING_MESSAGE = "You already have an action plan in progress. Achieve it before starting a new one."


class DeadlineStatus(str, enum.Enum):
    ACHIEVED = "achieved"
    EXPIRED = "expired"
    TODAY = "today"
    URGENT = "urgent"
    WARNING = "warning"
    NORMAL = "normal"


def days_remaining(entry: ActionPlanEntry, today: date | None = None) -> int | None:
    if entry.achieved_at is not None or entry.deadline is None:
        return None
    return (entry.deadline - (today or date.today())).days


def deadline_status(entry: ActionPlanEntry, today: date | None = None) -> DeadlineStatus:
    if entry.achieved_at is not None:
        return DeadlineStatus.ACHIEVED
    days = days_remaining(entry, today)
    if days is None or days < 0:
        return DeadlineStatus.EXPIRED
    if days == 0:
        return DeadlineStatus.TODAY
    if days == 1:
        return DeadlineStatus.URGENT
    if days <= 3:
        return DeadlineStatus.WARNING
    return DeadlineStatus.NORMAL


def _clean_content(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Action plan content is required", field="content")
    if len(text) > CONTENT_MAX_LENGTH:
        raise ValidationError(f"Action plan must be at most {CONTENT_MAX_LENGTH} characters", field="content")
    return text


def _clean_reflection(reflection: str | None) -> str | None:
    text = (reflection or "").strip()
    if len(text) > REFLECTION_MAX_LENGTH:
        raise ValidationError(f"Reflection must be at most {REFLECTION_MAX_LENGTH} characters", field="reflection")
    return text or None


class ActionPlanService:
    def __init__(
        self,
        session: AsyncSession,
        lookup: MetadataLookup | None = None,
        storage: BlobStorage | None = None,
    ):
        self.session = session
        self.lookup = lookup
        self._storage = storage

    @property
    def storage(self) -> BlobStorage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    # -- loading -----------------------------------------------------------

    async def get_entry(self, entry_id: int) -> ActionPlanEntry:
        result = await self.session.execute(
            select(ActionPlanEntry)
            .where(ActionPlanEntry.id == entry_id)
            .options(selectinload(ActionPlanEntry.video), selectinload(ActionPlanEntry.user))
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError(f"Action plan {entry_id} not found")
        return entry

    async def get_owned_entry(self, entry_id: int, user: User | None) -> ActionPlanEntry:
        if user is None:
            raise AuthenticationRequired("Sign in to change action plans")
        entry = await self.get_entry(entry_id)
        if entry.user_id != user.id:
            raise PermissionDenied("You cannot change another user's action plan")
        return entry

    async def has_pending(self, user_id: int, exclude_id: int | None = None) -> bool:
        stmt = select(ActionPlanEntry.id).where(
            ActionPlanEntry.user_id == user_id, ActionPlanEntry.achieved_at.is_(None)
        )
        if exclude_id is not None:
            stmt = stmt.where(ActionPlanEntry.id != exclude_id)
        return bool(await self.session.scalar(select(exists(stmt))))

    async def _resolve_video(self, video_ref: Video | str | None) -> Video:
        if isinstance(video_ref, Video):
            return video_ref
        video = await find_or_create_by_video(self.session, video_ref, lookup=self.lookup)
        if video is None:
            raise ValidationError("Enter a valid YouTube URL", field="youtube_url")
        return video

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            if "uq_entries_one_pending_per_user" in str(exc.orig) or "action_plan_entries.user_id" in str(exc.orig):
                raise ValidationError(ONE_PENDING_MESSAGE, field="base") from exc
            raise

    async def _reload_video(self, entry: ActionPlanEntry) -> None:
        await self.session.refresh(entry, ["video"])

    # -- transitions -------------------------------------------------------

    async def create(
        self,
        video_ref: Video | str | None,
        user: User,
        content: str | None,
        deadline: date | None = None,
        thumbnail_key: str | None = None,
    ) -> ActionPlanEntry:
        text = _clean_content(content)
        if await self.has_pending(user.id):
            raise ValidationError(ONE_PENDING_MESSAGE, field="base")
        video = await self._resolve_video(video_ref)

        if deadline is None:
            deadline = date.today() + timedelta(days=get_settings().entry_default_deadline_days)
        entry = ActionPlanEntry(
            video_id=video.id,
            user_id=user.id,
            content=text,
            deadline=deadline,
            thumbnail_key=(thumbnail_key or None),
        )
        self.session.add(entry)
        await self._commit()
        await self.session.refresh(entry)
        await self._reload_video(entry)
        logger.info(f"[entries] user={user.id} created entry={entry.id} video={video.id}")
        return entry

    async def toggle_achieve(self, entry: ActionPlanEntry) -> ActionPlanEntry:
        """Pending -> Achieved, or Achieved -> Pending with reflection and photo cleared."""
        if entry.achieved_at is None:
            entry.achieved_at = datetime.now(timezone.utc)
        else:
            if await self.has_pending(entry.user_id, exclude_id=entry.id):
                raise ValidationError(ONE_PENDING_MESSAGE, field="base")
            entry.achieved_at = None
            entry.reflection = None
            entry.result_image = None
        self.session.add(entry)
        await self._commit()
        logger.info(f"[entries] entry={entry.id} achieved={entry.achieved}")
        return entry

    async def achieve_with_reflection(
        self, entry: ActionPlanEntry, reflection: str | None, image_key: str | None = None
    ) -> ActionPlanEntry:
        if entry.achieved_at is not None:
            raise ValidationError("This action plan is already achieved", field="base")
        text = _clean_reflection(reflection)
        if text:
            entry.reflection = text
        if image_key:
            entry.result_image = image_key
        entry.achieved_at = datetime.now(timezone.utc)
        self.session.add(entry)
        await self._commit()
        logger.info(f"[entries] entry={entry.id} achieved with reflection")
        return entry

    async def update_reflection(
        self, entry: ActionPlanEntry, reflection: str | None, image_key: str | None = None
    ) -> ActionPlanEntry:
        if entry.achieved_at is None:
            raise ValidationError("Reflections can only be written for achieved action plans", field="reflection")
        entry.reflection = _clean_reflection(reflection)
        if image_key:
            entry.result_image = image_key
        self.session.add(entry)
        await self._commit()
        return entry

    def _apply_edits(
        self,
        entry: ActionPlanEntry,
        content: str | None,
        deadline: date | None,
        thumbnail_key: str | None,
    ) -> None:
        if content is not None:
            entry.content = _clean_content(content)
        if deadline is not None:
            entry.deadline = deadline
        if thumbnail_key:
            entry.thumbnail_key = None if thumbnail_key == CLEAR_THUMBNAIL else thumbnail_key

    async def update_content(
        self,
        entry: ActionPlanEntry,
        content: str | None = None,
        deadline: date | None = None,
        thumbnail_key: str | None = None,
    ) -> ActionPlanEntry:
        self._apply_edits(entry, content, deadline, thumbnail_key)
        self.session.add(entry)
        await self._commit()
        return entry

    async def retarget(self, entry: ActionPlanEntry, new_video_ref: Video | str) -> ActionPlanEntry:
        return await self.retarget_and_update(entry, new_video_ref=new_video_ref)

    async def retarget_and_update(
        self,
        entry: ActionPlanEntry,
        new_video_ref: Video | str | None = None,
        content: str | None = None,
        deadline: date | None = None,
        thumbnail_key: str | None = None,
    ) -> ActionPlanEntry:
        """Apply edits and an optional video change in one commit.

        The previous video is cleaned up after the commit if nothing else
        references it.
        """
        previous_video_id = entry.video_id
        # validate everything before touching the entry
        if content is not None:
            content = _clean_content(content)
        video = None
        if new_video_ref is not None and new_video_ref != "":
            video = await self._resolve_video(new_video_ref)

        self._apply_edits(entry, content, deadline, thumbnail_key)
        if video is not None and video.id != previous_video_id:
            entry.video_id = video.id
        self.session.add(entry)
        await self._commit()

        if entry.video_id != previous_video_id:
            await self._reload_video(entry)
            logger.info(f"[entries] entry={entry.id} moved video {previous_video_id} -> {entry.video_id}")
            await delete_if_orphaned(self.session, previous_video_id)
        return entry

    async def destroy(self, entry: ActionPlanEntry) -> None:
        video_id = entry.video_id
        entry_id = entry.id
        await self.session.delete(entry)
        await self.session.commit()
        logger.info(f"[entries] deleted entry={entry_id}")
        await delete_if_orphaned(self.session, video_id)

    async def cleanup_expired(self, today: date | None = None) -> int:
        """Delete pending entries whose deadline has passed. Returns the count."""
        today = today or date.today()
        rows = (
            await self.session.execute(
                select(ActionPlanEntry.id, ActionPlanEntry.video_id).where(
                    ActionPlanEntry.achieved_at.is_(None),
                    ActionPlanEntry.deadline < today,
                )
            )
        ).all()
        if not rows:
            logger.info("[entries] no expired entries to delete")
            return 0

        ids = [row.id for row in rows]
        await self.session.execute(
            delete(ActionPlanEntry)
            .where(ActionPlanEntry.id.in_(ids), ActionPlanEntry.achieved_at.is_(None))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        logger.info(f"[entries] deleted {len(ids)} expired entries")

        for video_id in sorted({row.video_id for row in rows}):
            await delete_if_orphaned(self.session, video_id)
        return len(ids)

    # -- reads -------------------------------------------------------------

    async def liked_by(self, entry: ActionPlanEntry, user: User | None) -> bool:
        if user is None:
            return False
        stmt = select(EntryLike.id).where(EntryLike.entry_id == entry.id, EntryLike.user_id == user.id)
        return bool(await self.session.scalar(select(exists(stmt))))

    def signed_thumbnail_url(self, entry: ActionPlanEntry) -> str | None:
        return self.storage.presign(entry.thumbnail_key) if entry.thumbnail_key else None

    def signed_result_image_url(self, entry: ActionPlanEntry) -> str | None:
        return self.storage.presign(entry.result_image) if entry.result_image else None

    def display_result_thumbnail_url(self, entry: ActionPlanEntry) -> str:
        """Result photo, then custom thumbnail, then the video's frame."""
        return (
            self.signed_result_image_url(entry)
            or self.signed_thumbnail_url(entry)
            or default_thumbnail_url(entry.video.youtube_video_id)
        )
