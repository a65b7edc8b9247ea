"""
durable job table access

every state change is a single conditional UPDATE so that concurrent
dispatchers can only move a row out of the state they observed. claim is the
only mutual-exclusion point in the system.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from clipqueue.models import Job, JobStatus, PRIORITY_RANK

logger = logging.getLogger(__name__)

# candidates fetched per claim round; losing every race in a round triggers another
CLAIM_BATCH_SIZE = 5

_priority_order = case(PRIORITY_RANK, value=Job.priority, else_=len(PRIORITY_RANK))


class JobStore:
    """row-level access to the jobs table"""

    def __init__(self, engine: Optional[Engine] = None):
        if engine is None:
            from clipqueue.core.db import engine as default_engine
            engine = default_engine
        self.engine = engine

    def insert(self, job: Job) -> Job:
        with Session(self.engine) as session:
            session.add(job)
            session.commit()
            session.refresh(job)
            return job

    def get(self, job_id: UUID) -> Optional[Job]:
        with Session(self.engine) as session:
            return session.get(Job, job_id)

    def list(self, status: Optional[str] = None, limit: int = 50) -> List[Job]:
        with Session(self.engine) as session:
            query = select(Job).order_by(Job.created_at.desc()).limit(limit)
            if status:
                query = query.where(Job.status == status)
            return list(session.exec(query).all())

    def open_jobs(self, job_type: str) -> List[Job]:
        """pending or processing jobs of one type"""
        with Session(self.engine) as session:
            query = select(Job).where(
                Job.job_type == job_type,
                Job.status.in_([JobStatus.PENDING.value, JobStatus.PROCESSING.value]),
            )
            return list(session.exec(query).all())

    def counts(self) -> Dict[str, int]:
        with Session(self.engine) as session:
            rows = session.exec(select(Job.status, func.count()).group_by(Job.status)).all()
        totals = {s.value: 0 for s in JobStatus}
        for status, count in rows:
            totals[status] = count
        return totals

    def eligible_ids(self, now: datetime, limit: int = CLAIM_BATCH_SIZE) -> List[UUID]:
        """ids of claimable jobs in claim order: priority rank, then oldest first"""
        with Session(self.engine) as session:
            query = (
                select(Job.id)
                .where(
                    Job.status == JobStatus.PENDING.value,
                    Job.attempts < Job.max_attempts,
                    or_(Job.run_after.is_(None), Job.run_after <= now),
                )
                .order_by(_priority_order, Job.created_at)
                .limit(limit)
            )
            return list(session.exec(query).all())

    def try_claim(self, job_id: UUID, now: datetime) -> Optional[Job]:
        """
        compare-and-swap pending -> processing for one row

        returns the claimed job, or None when another claimer got there first
        or the job stopped being eligible in between.
        """
        stmt = (
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobStatus.PENDING.value,
                Job.attempts < Job.max_attempts,
            )
            .values(
                status=JobStatus.PROCESSING.value,
                attempts=Job.attempts + 1,
                started_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        with Session(self.engine) as session:
            result = session.execute(stmt)
            if result.rowcount != 1:
                session.rollback()
                return None
            session.commit()
            return session.get(Job, job_id)

    def claim_next(self, now: Optional[datetime] = None) -> Optional[Job]:
        now = now or datetime.utcnow()
        while True:
            candidates = self.eligible_ids(now)
            if not candidates:
                return None
            for job_id in candidates:
                job = self.try_claim(job_id, now)
                if job is not None:
                    return job
                logger.debug(f"lost claim race for job {job_id}, trying next candidate")

    def transition(self, job_id: UUID, from_status: str, **values) -> bool:
        """conditional single-row update; False if the row is not in from_status"""
        values.setdefault("updated_at", datetime.utcnow())
        stmt = (
            update(Job)
            .where(Job.id == job_id, Job.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with Session(self.engine) as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount == 1

    def delete_completed_before(self, cutoff: datetime) -> int:
        stmt = (
            delete(Job)
            .where(Job.status == JobStatus.COMPLETED.value, Job.completed_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        with Session(self.engine) as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount

    def revert_stale_processing(self, cutoff: datetime) -> int:
        """processing jobs started before cutoff go back to pending, attempts untouched"""
        now = datetime.utcnow()
        stmt = (
            update(Job)
            .where(Job.status == JobStatus.PROCESSING.value, Job.started_at < cutoff)
            .values(status=JobStatus.PENDING.value, started_at=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with Session(self.engine) as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount
