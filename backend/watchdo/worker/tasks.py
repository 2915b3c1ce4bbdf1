"""
Celery tasks.

Main task: thumbnails.generate_for_entry, which asks the image model for a
thumbnail of an entry's plan text and stores it in S3. Runs the async code
in a fresh event loop via asyncio.run().
"""
from __future__ import annotations

import asyncio
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from watchdo.integrations.storage import UPLOAD_CONTENT_TYPES, BlobStorage, get_storage
from watchdo.integrations.thumbnails import HuggingFaceThumbnailGenerator
from watchdo.models import ActionPlanEntry
from watchdo.settings import get_settings
from watchdo.worker.celery_app import celery_app

logger = logging.getLogger(__name__)

RETRY_COUNTDOWN_SEC = 30
MAX_RETRIES = 3


class ModelLoading(Exception):
    """The image model is warming up; the task should be retried."""

    def __init__(self, retry_after: float):
        super().__init__(f"Model loading, retry after {retry_after}s")
        self.retry_after = retry_after


def _image_type(mime_type: str | None) -> tuple[str, str]:
    """(content_type, extension) for a generated image; unknown types are stored as PNG."""
    content_type = (mime_type or "").split(";", 1)[0].strip().lower()
    if content_type in UPLOAD_CONTENT_TYPES:
        return content_type, UPLOAD_CONTENT_TYPES[content_type]
    return "image/png", "png"


async def generate_thumbnail_for_entry(
    session: AsyncSession,
    entry_id: int,
    generator: HuggingFaceThumbnailGenerator | None = None,
    storage: BlobStorage | None = None,
) -> str | None:
    """Generate and store a thumbnail. Returns the stored key, or None if skipped/failed.

    Raises ModelLoading when the model asks the caller to come back later.
    """
    entry = await session.get(ActionPlanEntry, entry_id)
    if entry is None:
        logger.info(f"[worker] entry {entry_id} no longer exists, skipping")
        return None
    if entry.thumbnail_key:
        logger.info(f"[worker] entry {entry_id} already has a thumbnail, skipping")
        return None

    generator = generator or HuggingFaceThumbnailGenerator()
    result = await generator.generate(entry.content)
    if not result.success:
        logger.error(f"[worker] generation failed for entry {entry_id}: {result.error}")
        if result.retry_after is not None:
            raise ModelLoading(result.retry_after)
        return None

    content_type, ext = _image_type(result.mime_type)
    key = f"thumbnails/{entry_id}/{uuid.uuid4()}.{ext}"
    storage = storage or get_storage()
    uploaded = await asyncio.to_thread(storage.put_object, key, result.image_bytes, content_type)
    if not uploaded:
        logger.error(f"[worker] upload failed for entry {entry_id}")
        return None

    # the entry may have been edited while the image was generating
    await session.refresh(entry)
    if entry.thumbnail_key:
        logger.info(f"[worker] entry {entry_id} got a thumbnail meanwhile, keeping it")
        return None
    entry.thumbnail_key = key
    session.add(entry)
    await session.commit()
    logger.info(f"[worker] stored thumbnail for entry {entry_id}: {key}")
    return key


async def _generate_for_entry_async(entry_id: int) -> str | None:
    engine = create_async_engine(get_settings().async_database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            return await generate_thumbnail_for_entry(session, entry_id)
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="thumbnails.generate_for_entry",
    autoretry_for=(ModelLoading,),
    retry_backoff=False,
    retry_kwargs={"max_retries": MAX_RETRIES, "countdown": RETRY_COUNTDOWN_SEC},
    queue="thumbnails",
)
def generate_for_entry(self, entry_id: int) -> str | None:
    logger.info(f"[worker] thumbnail for entry {entry_id} (celery_id={self.request.id}, attempt={self.request.retries + 1})")
    return asyncio.run(_generate_for_entry_async(entry_id))


def enqueue_thumbnail(entry_id: int) -> str | None:
    """Queue thumbnail generation when Celery is enabled. Returns the Celery task id."""
    if not get_settings().celery_enabled:
        return None
    try:
        result = generate_for_entry.apply_async(args=[entry_id], queue="thumbnails")
    except Exception as exc:
        # broker outage must not fail entry creation
        logger.error(f"[worker] could not enqueue thumbnail for entry {entry_id}: {exc}")
        return None
    return result.id
