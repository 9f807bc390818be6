# chatpulse/services/retention.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from croniter import croniter

from chatpulse.core.config import settings
from chatpulse.core.errors import SweepFailed
from chatpulse.models.models import SweepResult
from chatpulse.services.message_store import MessageStore, utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# INACTIVE ROOM SWEEP
# ============================================================================

async def sweep_inactive_rooms(
    store: MessageStore,
    now: datetime,
    retention_days: int = settings.RETENTION_DAYS,
) -> SweepResult:
    """
    Delete every room whose last activity is older than ``now - retention_days``.

    Messages are deleted before their rooms, as two bulk operations, so a
    concurrent reader never sees a message whose room is already gone.
    Running it again without new activity is a no-op.

    Raises:
        SweepFailed: any store error; ``run_retention_sweep`` logs and swallows it
    """
    cutoff = now - timedelta(days=retention_days)
    try:
        return await _sweep(store, cutoff, retention_days)
    except Exception as e:
        raise SweepFailed(f"Sweep with cutoff {cutoff.isoformat()} failed: {e}") from e


async def _sweep(store: MessageStore, cutoff: datetime, retention_days: int) -> SweepResult:
    room_ids = await store.list_groups_with_activity_older_than(cutoff)

    if not room_ids:
        logger.info("No old chat groups to delete")
        return SweepResult(cutoff=cutoff)

    logger.info("Found %d chat groups older than %d days", len(room_ids), retention_days)

    deleted_messages = await store.delete_messages(room_ids)
    deleted_rooms = await store.delete_groups(room_ids)

    logger.info("Deleted %d messages and %d chat groups", deleted_messages, deleted_rooms)
    return SweepResult(
        cutoff=cutoff,
        room_ids=list(room_ids),
        deleted_messages=deleted_messages,
        deleted_rooms=deleted_rooms,
    )


async def run_retention_sweep(
    store: MessageStore,
    now: Optional[datetime] = None,
    retention_days: int = settings.RETENTION_DAYS,
) -> Optional[SweepResult]:
    """Scheduled entry point. Failures are logged and swallowed; the next run is the retry."""
    try:
        return await sweep_inactive_rooms(store, now or utcnow(), retention_days)
    except SweepFailed:
        logger.exception("Error cleaning up old chat groups")
        return None


# ============================================================================
# SCHEDULE
# ============================================================================

def next_sweep_time(after: datetime, cron: str = settings.RETENTION_CRON) -> datetime:
    """
    Next instant strictly after ``after`` matching the ``cron`` expression, in UTC.

    With the default ``0 2 1 */2 *`` that is 02:00 on the 1st of January,
    March, May, July, September and November.
    """
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    after = after.astimezone(timezone.utc)
    return croniter(cron, after).get_next(datetime)


class RetentionScheduler:
    """
    Owns the timer that triggers ``run_retention_sweep`` on the fixed cadence.

    Usage:
        scheduler = RetentionScheduler(store)
        scheduler.start()      # on app startup
        await scheduler.stop() # on app shutdown
    """

    def __init__(
        self,
        store: MessageStore,
        clock: Callable[[], datetime] = utcnow,
        retention_days: int = settings.RETENTION_DAYS,
        cron: str = settings.RETENTION_CRON,
    ) -> None:
        self.store = store
        self.clock = clock
        self.retention_days = retention_days
        self.cron = cron
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="chatpulse-retention")
        logger.info("Chat group cleanup job scheduled: %s", self.cron)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            now = self.clock()
            due = next_sweep_time(now, self.cron)
            logger.info("Next chat group cleanup at %s", due.isoformat())
            await asyncio.sleep((due - now).total_seconds())

            logger.info("Running chat group cleanup job")
            await run_retention_sweep(self.store, self.clock(), self.retention_days)
