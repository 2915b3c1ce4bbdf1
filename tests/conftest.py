"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database with foreign keys
enforced, plus fake collaborators in place of YouTube, S3 and Gemini.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["CELERY_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest  # noqa: E402
import httpx  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from watchdo.db import Base, get_session  # noqa: E402
from watchdo.integrations import storage as storage_module  # noqa: E402
from watchdo.integrations import suggestions as suggestions_module  # noqa: E402
from watchdo.integrations import youtube_api  # noqa: E402
from watchdo.integrations.storage import BlobStorage, PresignedUpload, extract_storage_key  # noqa: E402
from watchdo.integrations.suggestions import SuggestionProvider, SuggestionResult, TitleResult  # noqa: E402
from watchdo.integrations.youtube_api import MetadataLookup, VideoMetadata  # noqa: E402
from watchdo.models import User  # noqa: E402
from watchdo.services import notify  # noqa: E402


class FakeLookup(MetadataLookup):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[str] = []

    async def fetch(self, video_url: str):
        self.calls.append(video_url)
        if self.fail:
            raise RuntimeError("youtube down")
        return VideoMetadata(
            title="How I wake up at 5am",
            channel_name="Morning Channel",
            channel_id="UC123",
            channel_thumbnail_url="https://yt3.example/avatar.jpg",
        )


class FakeStorage(BlobStorage):
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}

    def presign(self, key, expires_in=None):
        key = extract_storage_key(key)
        return f"https://signed.example/{key}" if key else None

    def presign_upload(self, user_id, content_type):
        ext = storage_module.UPLOAD_CONTENT_TYPES[content_type]
        key = f"user_thumbnails/{user_id}/fixed.{ext}"
        return PresignedUpload(upload_url=f"https://upload.example/{key}", key=key, content_type=content_type, expires_in=300)

    def put_object(self, key, data, content_type):
        self.objects[key] = data
        self.content_types[key] = content_type
        return True


class FakeSuggestions(SuggestionProvider):
    def __init__(self, plans=None, error=None, retryable=False):
        self.plans = plans if plans is not None else ["Tried waking at 5am", "Read for 10 minutes", "Cleaned my desk"]
        self.error = error
        self.retryable = retryable
        self.calls = 0

    async def suggest_plans(self, video_id, title):
        self.calls += 1
        if self.error:
            return SuggestionResult(success=False, error=self.error, retryable=self.retryable)
        return SuggestionResult(success=True, action_plans=list(self.plans))

    async def convert_to_title(self, plan_text):
        if self.error:
            return TitleResult(success=False, error=self.error, retryable=self.retryable)
        return TitleResult(success=True, title=f"[Tried it] {plan_text}")


class RecordingDispatcher(notify.NotificationDispatcher):
    def __init__(self):
        super().__init__(throttle_sec=0)
        self.events = []

    async def deliver(self, event):
        self.events.append(event)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    async def _make(name: str | None = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(email=f"user{n}@example.com", name=name or f"user{n}")
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return _make


@pytest.fixture
def lookup():
    return FakeLookup()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def suggestions():
    return FakeSuggestions()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(autouse=True)
def collaborators(lookup, fake_storage, suggestions, dispatcher):
    youtube_api.set_metadata_lookup(lookup)
    storage_module.set_storage(fake_storage)
    suggestions_module.set_suggestion_provider(suggestions)
    notify.set_dispatcher(dispatcher)
    yield
    youtube_api.set_metadata_lookup(None)
    storage_module.set_storage(None)
    suggestions_module.set_suggestion_provider(None)
    notify.set_dispatcher(None)


@pytest.fixture
async def client(session_factory):
    from watchdo.main import app

    async def _override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    async def _login(email: str = "alice@example.com", name: str | None = None) -> dict:
        resp = await client.post("/api/auth/login", json={"email": email, "name": name})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
