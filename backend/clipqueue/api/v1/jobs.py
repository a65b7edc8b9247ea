import hmac
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from clipqueue.core.config import settings
from clipqueue.models import Job, JobPriority
from clipqueue.services.dispatcher import DispatchOutcome, Dispatcher, get_dispatcher

router = APIRouter()


class EnqueueRequest(BaseModel):
    job_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    priority: JobPriority = JobPriority.NORMAL
    max_attempts: Optional[int] = Field(default=None, ge=1)


def require_processor_token(authorization: Optional[str] = Header(default=None)):
    """shared bearer token for job operations, only enforced when configured"""
    token = settings.JOB_PROCESSOR_TOKEN
    if not token:
        return
    if not authorization or not hmac.compare_digest(authorization, f"Bearer {token}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


def job_dict(job: Job) -> dict:
    return {
        "id": str(job.id),
        "job_type": job.job_type,
        "payload": job.payload,
        "priority": job.priority,
        "status": job.status,
        "attempts": job.attempts,
        "max_attempts": job.max_attempts,
        "result": job.result,
        "error_message": job.error_message,
        "run_after": job.run_after.isoformat() if job.run_after else None,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "started_at": job.started_at.isoformat() if job.started_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        "failed_at": job.failed_at.isoformat() if job.failed_at else None,
    }


@router.get("/")
def list_jobs(
    dispatcher: Dispatcher = Depends(get_dispatcher),
    status: Optional[str] = None,
    limit: int = Query(default=50, le=200),
):
    """recent jobs plus per-status totals"""
    queue = dispatcher.queue
    jobs = queue.list_jobs(status=status, limit=limit)
    counts = queue.counts()
    return {
        "jobs": [job_dict(job) for job in jobs],
        "summary": {f"{name}_count": count for name, count in counts.items()},
    }


@router.post("/", status_code=201, dependencies=[Depends(require_processor_token)])
def enqueue_job(request: EnqueueRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    job = dispatcher.queue.enqueue(
        request.job_type,
        request.payload,
        priority=request.priority,
        max_attempts=request.max_attempts,
    )
    return job_dict(job)


@router.post("/process", response_model=DispatchOutcome, dependencies=[Depends(require_processor_token)])
def process_next_job(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """claim and run at most one job; called by cron or an external scheduler"""
    return dispatcher.process_one()


@router.post("/purge", dependencies=[Depends(require_processor_token)])
def purge_completed_jobs(
    older_than_days: int = Query(default=settings.JOB_RETENTION_DAYS, ge=0),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    removed = dispatcher.queue.purge_completed(timedelta(days=older_than_days))
    return {"removed": removed, "older_than_days": older_than_days}


@router.post("/reclaim", dependencies=[Depends(require_processor_token)])
def reclaim_stale_jobs(
    older_than_minutes: int = Query(default=settings.JOB_STALE_MINUTES, ge=1),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """put jobs stuck in processing back to pending (operator action)"""
    reclaimed = dispatcher.queue.reclaim_stale(timedelta(minutes=older_than_minutes))
    return {"reclaimed": reclaimed}


@router.get("/{job_id}")
def get_job(job_id: UUID, dispatcher: Dispatcher = Depends(get_dispatcher)):
    job = dispatcher.queue.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job_dict(job)


@router.post("/{job_id}/retry", dependencies=[Depends(require_processor_token)])
def retry_job(job_id: UUID, dispatcher: Dispatcher = Depends(get_dispatcher)):
    queue = dispatcher.queue
    job = queue.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    if not queue.retry(job_id):
        raise HTTPException(status_code=409, detail=f"Job is {job.status}, only failed jobs can be retried")
    return job_dict(queue.get(job_id))
