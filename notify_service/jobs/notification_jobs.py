"""
Notification delivery ticks

5 periodic jobs:
1. Due scheduled notifications - every DUE_TICK_SECONDS
2. Backoff-eligible retries - every RETRY_TICK_SECONDS
3. Dead letter sweep (retries exhausted) - every DEAD_LETTER_SWEEP_MINUTES
4. Dead letter cleanup - daily at DEAD_LETTER_CLEANUP_HOUR
5. Dead letter stats - every DEAD_LETTER_STATS_HOURS

Every tick is fault-isolated: an exception is logged and swallowed so the
next run (and every other job) is unaffected.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notify_service.core.config import settings
from notify_service.core.timeutils import utcnow
from notify_service.models.notification import NotificationStatus
from notify_service.services.dead_letter_service import DeadLetterService, MAX_RETRIES_EXCEEDED
from notify_service.services.delivery_service import ChannelSenders, DeliveryService
from notify_service.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class NotificationJobs:
    """Tick implementations bound to a session factory and the channel senders."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        senders: ChannelSenders,
        concurrency: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.senders = senders
        self._semaphore = asyncio.Semaphore(concurrency or settings.DELIVERY_CONCURRENCY)
        self._in_flight: set[asyncio.Task] = set()
        self._closing = False

    # ------------------------------------------------------------------
    # ticks
    # ------------------------------------------------------------------
    async def process_scheduled_notifications(self) -> Optional[dict]:
        """Job 1: deliver PENDING notifications whose scheduled time has passed."""
        async with self._tracked():
            if self._closing:
                return None
            try:
                start_time = time.monotonic()
                now = utcnow()
                async with self.session_factory() as session:
                    due = await NotificationService(session).due_scheduled(now)
                    ids = [n.id for n in due]

                if not ids:
                    logger.debug("No scheduled notifications due")
                    return {"processed": 0, "sent": 0, "failed": 0, "skipped": 0}

                logger.info(f"Processing {len(ids)} scheduled notifications")
                stats = await self._deliver_batch(ids, NotificationStatus.PENDING.value, now)
                elapsed = time.monotonic() - start_time
                logger.info(
                    f"Scheduled notifications processed: "
                    f"{stats['sent']} sent, {stats['failed']} failed, {stats['skipped']} skipped, "
                    f"took {elapsed:.2f}s"
                )
                return stats
            except Exception as e:
                logger.error(f"Error processing scheduled notifications: {str(e)}", exc_info=True)
                return None

    async def retry_failed_notifications(self) -> Optional[dict]:
        """Job 2: re-attempt FAILED notifications whose backoff window has elapsed."""
        async with self._tracked():
            if self._closing:
                return None
            try:
                start_time = time.monotonic()
                now = utcnow()
                async with self.session_factory() as session:
                    eligible = await NotificationService(session).eligible_for_retry(now)
                    ids = [n.id for n in eligible]

                if not ids:
                    logger.debug("No failed notifications eligible for retry")
                    return {"processed": 0, "sent": 0, "failed": 0, "skipped": 0}

                logger.info(f"Retrying {len(ids)} failed notifications")
                stats = await self._deliver_batch(ids, NotificationStatus.FAILED.value, now)
                elapsed = time.monotonic() - start_time
                logger.info(
                    f"Failed notifications retried: "
                    f"{stats['sent']} sent, {stats['failed']} failed again, {stats['skipped']} skipped, "
                    f"took {elapsed:.2f}s"
                )
                return stats
            except Exception as e:
                logger.error(f"Error retrying failed notifications: {str(e)}", exc_info=True)
                return None

    async def sweep_dead_letters(self) -> Optional[int]:
        """Job 3: move notifications that exhausted their retries into the dead letter queue.

        A failed move aborts the sweep; the source row stays in place and the
        next sweep tries again.
        """
        async with self._tracked():
            if self._closing:
                return None
            try:
                now = utcnow()
                async with self.session_factory() as session:
                    exhausted = await NotificationService(session).permanently_failed(now)
                    ids = [n.id for n in exhausted]

                if not ids:
                    return 0

                logger.warning(f"Found {len(ids)} notifications that exceeded max retries")
                moved = 0
                for notification_id in ids:
                    if await self._move_one(notification_id, now):
                        moved += 1
                logger.info(f"Moved {moved} notifications to dead letter queue")
                return moved
            except Exception as e:
                logger.error(f"Dead letter sweep aborted: {str(e)}", exc_info=True)
                return None

    async def cleanup_dead_letters(self, retention_days: Optional[int] = None) -> Optional[int]:
        """Job 4: drop dead letters older than the retention window."""
        async with self._tracked():
            try:
                async with self.session_factory() as session:
                    return await DeadLetterService(session).cleanup(retention_days)
            except Exception as e:
                logger.error(f"Error cleaning up dead letters: {str(e)}", exc_info=True)
                return None

    async def log_dead_letter_stats(self) -> Optional[dict]:
        """Job 5: observability only."""
        async with self._tracked():
            try:
                async with self.session_factory() as session:
                    stats = await DeadLetterService(session).get_stats()
                logger.info(
                    f"Dead letter stats: total={stats['total']}, "
                    f"last_day={stats['last_day']}, last_week={stats['last_week']}"
                )
                if stats["by_reason"]:
                    top = ", ".join(f"{reason}={count}" for reason, count in stats["by_reason"].items())
                    logger.info(f"Dead letter top failure reasons: {top}")
                return stats
            except Exception as e:
                logger.error(f"Error collecting dead letter stats: {str(e)}", exc_info=True)
                return None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Stop accepting new ticks and wait for running ones to finish.

        Returns False if some ticks were still running when the timeout hit.
        """
        self._closing = True
        current = asyncio.current_task()
        running = {t for t in self._in_flight if t is not current and not t.done()}
        if not running:
            return True
        logger.info(f"Waiting for {len(running)} running ticks to finish")
        _, pending = await asyncio.wait(running, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} ticks still running after {timeout}s, giving up")
            return False
        return True

    @asynccontextmanager
    async def _tracked(self):
        task = asyncio.current_task()
        self._in_flight.add(task)
        try:
            yield
        finally:
            self._in_flight.discard(task)

    # ------------------------------------------------------------------
    # per-item work
    # ------------------------------------------------------------------
    async def _deliver_batch(self, ids: list[int], expected_status: str, now) -> dict:
        results = await asyncio.gather(
            *(self._deliver_one(notification_id, expected_status, now) for notification_id in ids),
            return_exceptions=True,
        )
        stats = {"processed": len(ids), "sent": 0, "failed": 0, "skipped": 0}
        for notification_id, result in zip(ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Notification {notification_id} could not be processed: {result}")
                stats["skipped"] += 1
            elif result is None:
                stats["skipped"] += 1
            elif result:
                stats["sent"] += 1
            else:
                stats["failed"] += 1
        return stats

    async def _deliver_one(self, notification_id: int, expected_status: str, now) -> Optional[bool]:
        """Claim then deliver; None when another worker holds the row."""
        async with self._semaphore:
            async with self.session_factory() as session:
                if not await NotificationService(session).claim(notification_id, expected_status, now=now):
                    logger.debug(f"Notification {notification_id} claimed elsewhere, skipped")
                    return None
                return await DeliveryService(session, self.senders).deliver_by_id(notification_id)

    async def _move_one(self, notification_id: int, now) -> bool:
        async with self.session_factory() as session:
            notifications = NotificationService(session)
            if not await notifications.claim(notification_id, NotificationStatus.FAILED.value, now=now):
                return False
            notification = await notifications.get_by_id(notification_id)
            if notification is None or notification.retry_count < notification.max_retries:
                return False
            return await DeadLetterService(session).move_to_dead_letter(notification, MAX_RETRIES_EXCEEDED)


def register_notification_jobs(scheduler, jobs: NotificationJobs) -> None:
    """Register all delivery ticks on a NotificationScheduler."""
    scheduler.add_job(
        func=jobs.process_scheduled_notifications,
        trigger="interval",
        id="process_scheduled_notifications",
        name="Process scheduled notifications",
        seconds=settings.DUE_TICK_SECONDS,
    )
    scheduler.add_job(
        func=jobs.retry_failed_notifications,
        trigger="interval",
        id="retry_failed_notifications",
        name="Retry failed notifications",
        seconds=settings.RETRY_TICK_SECONDS,
    )
    scheduler.add_job(
        func=jobs.sweep_dead_letters,
        trigger="interval",
        id="sweep_dead_letters",
        name="Move exhausted notifications to dead letter",
        minutes=settings.DEAD_LETTER_SWEEP_MINUTES,
    )
    scheduler.add_job(
        func=jobs.cleanup_dead_letters,
        trigger="cron",
        id="cleanup_dead_letters",
        name="Clean up old dead letters",
        hour=settings.DEAD_LETTER_CLEANUP_HOUR,
        minute=0,
    )
    scheduler.add_job(
        func=jobs.log_dead_letter_stats,
        trigger="interval",
        id="log_dead_letter_stats",
        name="Log dead letter stats",
        hours=settings.DEAD_LETTER_STATS_HOURS,
    )
    logger.info("All notification jobs registered")
