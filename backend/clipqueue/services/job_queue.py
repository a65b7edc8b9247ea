"""
priority / retry policy on top of the job store

jobs are claimed in (priority, created_at) order. attempts is a lifetime
counter: retry() puts a failed job back to pending without resetting it, so
max_attempts bounds the total number of runs of a job.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel

from clipqueue.core.config import settings
from clipqueue.models import Job, JobPriority, JobStatus, JobType
from clipqueue.models.payloads import dump_payload
from clipqueue.services.job_store import JobStore
from clipqueue.services.log_publisher import job_fields, publish_log

logger = logging.getLogger(__name__)


class JobQueue:

    def __init__(self, store: Optional[JobStore] = None, default_max_attempts: Optional[int] = None):
        self.store = store or JobStore()
        self.default_max_attempts = default_max_attempts or settings.JOB_MAX_ATTEMPTS

    def enqueue(
        self,
        job_type: str,
        payload: Union[BaseModel, Dict[str, Any], None] = None,
        priority: Union[JobPriority, str] = JobPriority.NORMAL,
        max_attempts: Optional[int] = None,
        run_after: Optional[datetime] = None,
    ) -> Job:
        """add a pending job; the payload shape is the handler's concern, not the queue's"""
        if isinstance(payload, BaseModel):
            payload = dump_payload(payload)
        job = Job(
            job_type=str(getattr(job_type, "value", job_type)),
            payload=payload or {},
            priority=JobPriority(priority).value,
            status=JobStatus.PENDING.value,
            attempts=0,
            max_attempts=max_attempts or self.default_max_attempts,
            run_after=run_after,
        )
        job = self.store.insert(job)
        logger.info(f"job {job.id} added to queue: type={job.job_type} priority={job.priority}")
        publish_log('queue', 'INFO', f'job queued: {job.job_type}', job_fields(job))
        return job

    def claim_next(self) -> Optional[Job]:
        job = self.store.claim_next()
        if job:
            logger.info(f"claimed job {job.id} ({job.job_type}), attempt {job.attempts}/{job.max_attempts}")
            publish_log('queue', 'INFO', f'job claimed: {job.job_type}', job_fields(job))
        return job

    def complete(self, job_id: UUID, result: Optional[Dict[str, Any]] = None) -> bool:
        """processing -> completed; a second call is a silent no-op"""
        now = datetime.utcnow()
        done = self.store.transition(
            job_id,
            JobStatus.PROCESSING.value,
            status=JobStatus.COMPLETED.value,
            result=result,
            completed_at=now,
            updated_at=now,
        )
        if done:
            logger.info(f"job {job_id} completed successfully")
            publish_log('queue', 'SUCCESS', 'job completed', {'job_id': str(job_id)})
        else:
            logger.debug(f"complete ignored for job {job_id}: not processing")
        return done

    def fail(self, job_id: UUID, error_message: str, permanent: bool = False) -> bool:
        """processing -> failed; never re-enqueues. permanent also burns the remaining attempts"""
        now = datetime.utcnow()
        values = dict(
            status=JobStatus.FAILED.value,
            error_message=error_message,
            failed_at=now,
            updated_at=now,
        )
        if permanent:
            values["attempts"] = Job.max_attempts
        done = self.store.transition(job_id, JobStatus.PROCESSING.value, **values)
        if done:
            logger.warning(f"job {job_id} marked as failed: {error_message}")
            publish_log('queue', 'ERROR', 'job failed', {'job_id': str(job_id), 'error': error_message})
        else:
            logger.debug(f"fail ignored for job {job_id}: not processing")
        return done

    def retry(self, job_id: UUID) -> bool:
        """failed -> pending; attempts is kept so the lifetime cap still applies"""
        done = self.store.transition(
            job_id,
            JobStatus.FAILED.value,
            status=JobStatus.PENDING.value,
            started_at=None,
            failed_at=None,
            error_message=None,
        )
        if done:
            logger.info(f"job {job_id} queued for retry")
        return done

    def purge_completed(self, older_than: Optional[timedelta] = None) -> int:
        older_than = older_than if older_than is not None else timedelta(days=settings.JOB_RETENTION_DAYS)
        removed = self.store.delete_completed_before(datetime.utcnow() - older_than)
        logger.info(f"purged {removed} completed jobs older than {older_than}")
        return removed

    def reclaim_stale(self, older_than: Optional[timedelta] = None) -> int:
        """operator tool: processing jobs stuck past older_than go back to pending"""
        older_than = older_than if older_than is not None else timedelta(minutes=settings.JOB_STALE_MINUTES)
        reclaimed = self.store.revert_stale_processing(datetime.utcnow() - older_than)
        if reclaimed:
            logger.warning(f"reclaimed {reclaimed} stale processing jobs")
            publish_log('queue', 'WARNING', f'reclaimed {reclaimed} stale jobs')
        return reclaimed

    def get(self, job_id: UUID) -> Optional[Job]:
        return self.store.get(job_id)

    def list_jobs(self, status: Optional[str] = None, limit: int = 50) -> List[Job]:
        return self.store.list(status=status, limit=limit)

    def counts(self) -> Dict[str, int]:
        return self.store.counts()

    def has_open_job(self, job_type: Union[JobType, str], **payload_match) -> bool:
        """true when a pending or processing job of job_type has a payload matching every given key"""
        job_type = str(getattr(job_type, "value", job_type))
        for job in self.store.open_jobs(job_type):
            payload = job.payload or {}
            if all(payload.get(key) == value for key, value in payload_match.items()):
                return True
        return False
