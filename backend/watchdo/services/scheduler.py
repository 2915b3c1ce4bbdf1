"""
Scheduler Service

Runs periodic maintenance jobs:
- Daily removal of pending entries whose deadline has passed (03:00 UTC)

Single-leader election via Postgres advisory locks:
- Only the instance that acquires the lock executes the tick
- Other instances silently skip
- Controlled by SCHEDULER_ENABLED env (default: true)
"""
from __future__ import annotations

import logging
from datetime import date

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from watchdo.services.action_plans import ActionPlanService
from watchdo.settings import get_settings

logger = logging.getLogger(__name__)

# Advisory lock keys (arbitrary int64, unique per job type)
LOCK_CLEANUP_EXPIRED = 910_001


class SchedulerService:
    """Owns the AsyncIOScheduler and the session factory its jobs use."""

    _instance: "SchedulerService | None" = None

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._session_factory: async_sessionmaker | None = None
        self._running = False

    @classmethod
    def get_instance(cls) -> "SchedulerService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure(self, database_url: str):
        engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    def configure_session_factory(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    def _get_session(self) -> AsyncSession:
        if not self._session_factory:
            self.configure(get_settings().async_database_url)
        return self._session_factory()

    async def _try_advisory_lock(self, session: AsyncSession, lock_key: int) -> bool:
        """Non-blocking Postgres advisory lock. Always granted on other backends."""
        if session.get_bind().dialect.name != "postgresql":
            return True
        result = await session.execute(text(f"SELECT pg_try_advisory_lock({lock_key})"))
        return bool(result.scalar())

    async def _release_advisory_lock(self, session: AsyncSession, lock_key: int):
        if session.get_bind().dialect.name != "postgresql":
            return
        await session.execute(text(f"SELECT pg_advisory_unlock({lock_key})"))

    def start(self):
        """Start the scheduler (respects SCHEDULER_ENABLED env)."""
        if not get_settings().scheduler_enabled:
            logger.info("[scheduler] disabled by SCHEDULER_ENABLED=false, skipping start")
            return
        if self._running:
            return

        self.scheduler.add_job(
            self.run_cleanup_expired,
            CronTrigger(hour=3, minute=0, timezone="UTC"),
            id="cleanup_expired_entries",
            name="Delete expired pending entries",
            replace_existing=True,
        )
        self.scheduler.start()
        self._running = True
        logger.info("[scheduler] started (single-leader mode via advisory locks)")

    def stop(self):
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("[scheduler] stopped")

    def is_running(self) -> bool:
        return self._running

    async def run_cleanup_expired(self, today: date | None = None) -> int | None:
        """Delete expired pending entries. Returns None when another instance is leader."""
        async with self._get_session() as session:
            if not await self._try_advisory_lock(session, LOCK_CLEANUP_EXPIRED):
                logger.debug("[scheduler] cleanup lock not acquired, another instance is leader")
                return None
            try:
                deleted = await ActionPlanService(session).cleanup_expired(today)
                logger.info(f"[scheduler] cleanup_expired removed {deleted} entries")
                return deleted
            finally:
                await self._release_advisory_lock(session, LOCK_CLEANUP_EXPIRED)


scheduler_service = SchedulerService.get_instance()
