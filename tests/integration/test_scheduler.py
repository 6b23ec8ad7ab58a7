import pytest

from notify_service.jobs.notification_jobs import NotificationJobs
from notify_service.jobs.scheduler import JobNotFound, NotificationScheduler

JOB_IDS = {
    "process_scheduled_notifications",
    "retry_failed_notifications",
    "sweep_dead_letters",
    "cleanup_dead_letters",
    "log_dead_letter_stats",
}


@pytest.mark.asyncio
async def test_all_ticks_registered(session_factory, senders):
    scheduler = NotificationScheduler(NotificationJobs(session_factory, senders), timezone="UTC")
    scheduler.register_jobs()

    jobs = {job["id"]: job for job in scheduler.get_jobs()}
    assert set(jobs) == JOB_IDS
    assert "cron" in jobs["cleanup_dead_letters"]["trigger"]
    assert "interval" in jobs["process_scheduled_notifications"]["trigger"]


@pytest.mark.asyncio
async def test_start_and_stop(session_factory, senders):
    scheduler = NotificationScheduler(NotificationJobs(session_factory, senders), timezone="UTC")
    scheduler.register_jobs()
    scheduler.start()
    try:
        assert scheduler.running
        assert all(job["next_run_time"] is not None for job in scheduler.get_jobs())
    finally:
        await scheduler.stop(wait=True, timeout=5)
    assert not scheduler.running


@pytest.mark.asyncio
async def test_run_job_now(session_factory, senders):
    scheduler = NotificationScheduler(NotificationJobs(session_factory, senders), timezone="UTC")
    scheduler.register_jobs()

    stats = await scheduler.run_job_now("process_scheduled_notifications")
    assert stats["processed"] == 0
    assert await scheduler.run_job_now("cleanup_dead_letters") == 0

    with pytest.raises(JobNotFound):
        await scheduler.run_job_now("no_such_job")
