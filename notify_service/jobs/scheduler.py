"""
APScheduler wrapper for the notification ticks

Owns one AsyncIOScheduler for the process lifetime:
- MemoryJobStore (jobs are re-registered on every start)
- AsyncIOExecutor (ticks are coroutines on the app's event loop)
- one running instance per job; missed runs are coalesced
"""

import asyncio
import logging
from typing import Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from notify_service.core.config import settings
from notify_service.jobs.notification_jobs import NotificationJobs, register_notification_jobs

logger = logging.getLogger(__name__)


class JobNotFound(LookupError):
    pass


class NotificationScheduler:
    def __init__(self, jobs: NotificationJobs, timezone: Optional[str] = None):
        self.jobs = jobs

        jobstores = {
            'default': MemoryJobStore()
        }

        executors = {
            'default': AsyncIOExecutor()
        }

        job_defaults = {
            'coalesce': True,  # collapse a backlog of missed runs into one
            'max_instances': 1,
            'misfire_grace_time': 30
        }

        self._scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone=timezone or settings.SCHEDULER_TIMEZONE
        )
        logger.info("Scheduler initialized successfully")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def add_job(
        self,
        func,
        trigger,
        id: str,
        name: str,
        replace_existing: bool = True,
        **trigger_args
    ):
        """Add a periodic job.

        Args:
            func: coroutine function to run
            trigger: 'interval' or 'cron'
            id: unique job id
            name: human readable name
            replace_existing: replace a job with the same id
            **trigger_args: trigger parameters
        """
        try:
            self._scheduler.add_job(
                func,
                trigger=trigger,
                id=id,
                name=name,
                replace_existing=replace_existing,
                **trigger_args
            )
            logger.info(f"Job added: {name} (ID: {id})")
        except Exception as e:
            logger.error(f"Failed to add job {name}: {str(e)}")
            raise

    def register_jobs(self):
        register_notification_jobs(self, self.jobs)

    def start(self):
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started")
        else:
            logger.warning("Scheduler already running")

    async def stop(self, wait: bool = True, timeout: float = 30.0):
        """Stop firing new ticks, then let the running ones finish.

        Args:
            wait: wait for in-flight ticks (bounded by ``timeout`` seconds)
        """
        if not self._scheduler.running:
            return
        # the asyncio executor cancels running jobs on shutdown, so drain first
        self._scheduler.pause()
        if wait:
            await self.jobs.drain(timeout=timeout)
        self._scheduler.shutdown(wait=False)
        # AsyncIOScheduler applies the shutdown on the next loop iteration
        await asyncio.sleep(0)
        logger.info("Scheduler shut down")

    def get_jobs(self) -> list[dict]:
        return [
            {
                'id': job.id,
                'name': job.name,
                'next_run_time': getattr(job, 'next_run_time', None),  # unset until the scheduler starts
                'trigger': str(job.trigger)
            }
            for job in self._scheduler.get_jobs()
        ]

    async def run_job_now(self, job_id: str):
        """Run a registered tick immediately and return its result."""
        job = self._scheduler.get_job(job_id)
        if not job:
            raise JobNotFound(job_id)
        logger.info(f"Running job now: {job.name} (ID: {job_id})")
        return await job.func()
