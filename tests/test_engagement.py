import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from watchdo.models import Cheer, EntryLike, User
from watchdo.services import engagement
from watchdo.services.action_plans import ActionPlanService
from watchdo.services.notify import CheerCreated, LikeCreated, NotificationDispatcher

URL = "https://www.youtube.com/watch?v=AAAAAAAAAAA"


@pytest.fixture
async def entry(session, lookup, fake_storage, make_user):
    owner = await make_user("owner")
    return await ActionPlanService(session, lookup=lookup, storage=fake_storage).create(URL, owner, "Plan")


class TestToggleLike:
    async def test_like_then_unlike(self, session, entry, make_user, dispatcher):
        fan = await make_user("fan")
        assert await engagement.toggle_like(session, entry, fan, dispatcher) is True
        assert await engagement.like_count(session, entry.id) == 1
        assert await engagement.toggle_like(session, entry, fan, dispatcher) is False
        assert await engagement.like_count(session, entry.id) == 0

    async def test_like_emits_event_for_owner(self, session, entry, make_user, dispatcher):
        fan = await make_user("fan")
        await engagement.toggle_like(session, entry, fan, dispatcher)
        assert dispatcher.events == [LikeCreated(target_owner_id=entry.user_id, actor_id=fan.id, entry_id=entry.id)]

    async def test_self_like_is_silent(self, session, entry, dispatcher):
        owner = await session.get(User, entry.user_id)
        assert await engagement.toggle_like(session, entry, owner, dispatcher) is True
        assert dispatcher.events == []

    async def test_unlike_does_not_emit(self, session, entry, make_user, dispatcher):
        fan = await make_user("fan")
        await engagement.toggle_like(session, entry, fan, dispatcher)
        await engagement.toggle_like(session, entry, fan, dispatcher)
        assert len(dispatcher.events) == 1


class TestToggleCheer:
    async def test_cheer_round_trip(self, session, entry, make_user, dispatcher):
        fan = await make_user("fan")
        video = entry.video
        assert await engagement.toggle_cheer(session, video, fan, dispatcher) is True
        assert dispatcher.events == [CheerCreated(video_id=video.id, actor_id=fan.id)]
        assert await engagement.cheer_count(session, video.id) == 1
        assert await engagement.toggle_cheer(session, video, fan, dispatcher) is False
        assert await session.scalar(select(func.count(Cheer.id))) == 0


class TestDispatcherThrottle:
    async def test_repeat_events_are_throttled(self):
        delivered = []

        class Recording(NotificationDispatcher):
            async def deliver(self, event):
                delivered.append(event)

        d = Recording()
        event = LikeCreated(target_owner_id=1, actor_id=2, entry_id=3)
        assert await d.dispatch(event) is True
        assert await d.dispatch(event) is False
        assert await d.dispatch(LikeCreated(target_owner_id=1, actor_id=2, entry_id=4)) is True
        assert len(delivered) == 2


async def test_duplicate_like_row_is_rejected_by_constraint(session, entry, make_user):
    fan = await make_user("fan")
    session.add(EntryLike(entry_id=entry.id, user_id=fan.id))
    await session.commit()
    session.add(EntryLike(entry_id=entry.id, user_id=fan.id))
    with pytest.raises(IntegrityError):
        await session.commit()
    await session.rollback()
