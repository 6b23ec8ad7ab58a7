"""Admin: scheduler job inspection and manual trigger"""
from fastapi import APIRouter, Depends, HTTPException

from notify_service.jobs.scheduler import JobNotFound, NotificationScheduler
from notify_service.routers.deps import get_scheduler
from notify_service.schemas.scheduler import JobRunResponse, JobView

router = APIRouter(prefix="/admin/scheduler", tags=["Admin-Scheduler"])


@router.get("/jobs", response_model=list[JobView])
async def list_jobs(scheduler: NotificationScheduler = Depends(get_scheduler)):
    return [JobView(**job) for job in scheduler.get_jobs()]


@router.post("/jobs/{job_id}/run", response_model=JobRunResponse)
async def run_job(job_id: str, scheduler: NotificationScheduler = Depends(get_scheduler)):
    """Run a tick now, outside its schedule."""
    try:
        result = await scheduler.run_job_now(job_id)
    except JobNotFound:
        raise HTTPException(status_code=404, detail=f"job not found: {job_id}")
    return JobRunResponse(id=job_id, result=result)
