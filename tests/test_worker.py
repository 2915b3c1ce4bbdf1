from datetime import date

import pytest

from watchdo.integrations.thumbnails import ThumbnailResult
from watchdo.models import ActionPlanEntry, Video
from watchdo.worker import tasks
from watchdo.worker.tasks import ModelLoading, enqueue_thumbnail, generate_thumbnail_for_entry


class FakeGenerator:
    def __init__(self, result: ThumbnailResult):
        self.result = result
        self.prompts: list[str] = []

    async def generate(self, plan_text: str) -> ThumbnailResult:
        self.prompts.append(plan_text)
        return self.result


@pytest.fixture
async def entry(session, make_user):
    user = await make_user()
    video = Video(youtube_video_id="AAAAAAAAAAA", youtube_url="https://youtu.be/AAAAAAAAAAA")
    session.add(video)
    await session.flush()
    e = ActionPlanEntry(video_id=video.id, user_id=user.id, content="毎日読書する", deadline=date(2026, 3, 17))
    session.add(e)
    await session.commit()
    return e


async def test_stores_generated_image(session, entry, fake_storage):
    generator = FakeGenerator(ThumbnailResult(image_bytes=b"png-bytes"))

    key = await generate_thumbnail_for_entry(session, entry.id, generator=generator, storage=fake_storage)

    assert key.startswith(f"thumbnails/{entry.id}/") and key.endswith(".png")
    assert fake_storage.objects[key] == b"png-bytes"
    assert generator.prompts == ["毎日読書する"]
    await session.refresh(entry)
    assert entry.thumbnail_key == key


async def test_keeps_the_returned_image_type(session, entry, fake_storage):
    generator = FakeGenerator(ThumbnailResult(image_bytes=b"jpeg-bytes", mime_type="image/jpeg; charset=binary"))

    key = await generate_thumbnail_for_entry(session, entry.id, generator=generator, storage=fake_storage)

    assert key.endswith(".jpg")
    assert fake_storage.content_types[key] == "image/jpeg"


async def test_unknown_image_type_is_stored_as_png(session, entry, fake_storage):
    generator = FakeGenerator(ThumbnailResult(image_bytes=b"?", mime_type="application/octet-stream"))

    key = await generate_thumbnail_for_entry(session, entry.id, generator=generator, storage=fake_storage)

    assert key.endswith(".png")
    assert fake_storage.content_types[key] == "image/png"


async def test_model_loading_asks_for_retry(session, entry, fake_storage):
    generator = FakeGenerator(ThumbnailResult(error="loading", retry_after=12.0))
    with pytest.raises(ModelLoading) as exc:
        await generate_thumbnail_for_entry(session, entry.id, generator=generator, storage=fake_storage)
    assert exc.value.retry_after == 12.0
    assert fake_storage.objects == {}


async def test_hard_failure_leaves_entry_untouched(session, entry, fake_storage):
    generator = FakeGenerator(ThumbnailResult(error="bad request"))
    assert await generate_thumbnail_for_entry(session, entry.id, generator=generator, storage=fake_storage) is None
    assert entry.thumbnail_key is None


async def test_existing_thumbnail_is_kept(session, entry, fake_storage):
    entry.thumbnail_key = "user_thumbnails/1/mine.png"
    await session.commit()
    generator = FakeGenerator(ThumbnailResult(image_bytes=b"x"))

    assert await generate_thumbnail_for_entry(session, entry.id, generator=generator, storage=fake_storage) is None
    assert generator.prompts == []


async def test_missing_entry_is_skipped(session, fake_storage):
    generator = FakeGenerator(ThumbnailResult(image_bytes=b"x"))
    assert await generate_thumbnail_for_entry(session, 404, generator=generator, storage=fake_storage) is None


def test_enqueue_is_noop_when_celery_disabled():
    assert enqueue_thumbnail(1) is None


def test_task_registration():
    assert tasks.generate_for_entry.name == "thumbnails.generate_for_entry"
