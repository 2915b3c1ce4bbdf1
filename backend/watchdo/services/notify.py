"""
Engagement notifications.

Events are handed to a dispatcher; delivery channels are out of scope, so
the default dispatcher only logs them.

Throttle: the same (event, actor, target) is not dispatched more than once
per 15 minutes, so toggling a like on and off does not spam the owner.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

THROTTLE_SEC = 15 * 60


@dataclass(frozen=True)
class LikeCreated:
    target_owner_id: int
    actor_id: int
    entry_id: int

    @property
    def throttle_key(self) -> str:
        return f"like:{self.actor_id}:{self.entry_id}"


@dataclass(frozen=True)
class CheerCreated:
    video_id: int
    actor_id: int

    @property
    def throttle_key(self) -> str:
        return f"cheer:{self.actor_id}:{self.video_id}"


class NotificationDispatcher:
    """Logs engagement events. Subclass and override deliver() to send them elsewhere."""

    def __init__(self, throttle_sec: float = THROTTLE_SEC):
        self.throttle_sec = throttle_sec
        self._sent: dict[str, float] = {}

    def _should_send(self, key: str) -> bool:
        now = time.monotonic()
        last = self._sent.get(key)
        if last is not None and now - last < self.throttle_sec:
            return False
        self._sent[key] = now
        return True

    async def dispatch(self, event: LikeCreated | CheerCreated) -> bool:
        if not self._should_send(event.throttle_key):
            logger.debug(f"[notify] throttled {event.throttle_key}")
            return False
        await self.deliver(event)
        return True

    async def deliver(self, event: LikeCreated | CheerCreated) -> None:
        logger.info(f"[notify] {type(event).__name__} {event}")


_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    global _dispatcher
    _dispatcher = dispatcher
