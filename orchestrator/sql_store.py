"""SQLAlchemy-backed job store."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import select, update

from core import Job, JobStatus
from storage.db_engine import get_session
from storage.orm_models import JobORM, job_model_to_orm, job_orm_to_model

from .store import JobStore

logger = logging.getLogger(__name__)

# selection is retried when another claimer wins the conditional update
CLAIM_ATTEMPTS = 5


class SqlJobStore(JobStore):
    """Durable job store.

    Claiming selects the most urgent eligible row, then flips it with
    ``UPDATE ... WHERE id = :id AND status = 'pending'``. A zero rowcount
    means someone else claimed it first and the selection is repeated.
    """

    def add(self, job: Job) -> str:
        with get_session() as session:
            session.add(job_model_to_orm(job))
        return job.id

    def get(self, job_id: str) -> Optional[Job]:
        with get_session() as session:
            orm = session.get(JobORM, job_id)
            return job_orm_to_model(orm) if orm else None

    def claim_next(self, now: datetime) -> Optional[Job]:
        for _ in range(CLAIM_ATTEMPTS):
            with get_session() as session:
                candidate_id = session.scalars(
                    select(JobORM.id)
                    .where(JobORM.status == JobStatus.PENDING.value)
                    .where(JobORM.next_run_at <= now)
                    .order_by(JobORM.priority.asc(), JobORM.next_run_at.asc(), JobORM.created_at.asc())
                    .limit(1)
                ).first()
                if candidate_id is None:
                    return None

                result = session.execute(
                    update(JobORM)
                    .where(JobORM.id == candidate_id)
                    .where(JobORM.status == JobStatus.PENDING.value)
                    .values(
                        status=JobStatus.PROCESSING.value,
                        processing_started_at=now,
                        updated_at=now,
                    )
                )
                if result.rowcount == 1:
                    session.flush()
                    orm = session.get(JobORM, candidate_id, populate_existing=True)
                    return job_orm_to_model(orm)
            logger.debug("Lost claim race for job %s, retrying selection", candidate_id)
        return None

    def _transition(self, job_id: str, **values) -> Optional[Job]:
        with get_session() as session:
            result = session.execute(
                update(JobORM)
                .where(JobORM.id == job_id)
                .where(JobORM.status == JobStatus.PROCESSING.value)
                .values(**values)
            )
            if result.rowcount == 0:
                logger.debug("Transition of job %s lost: not processing", job_id)
                return None
            orm = session.get(JobORM, job_id, populate_existing=True)
            return job_orm_to_model(orm)

    def complete(self, job_id: str, now: datetime) -> Optional[Job]:
        return self._transition(
            job_id,
            status=JobStatus.COMPLETED.value,
            completed_at=now,
            updated_at=now,
        )

    def reschedule(self, job_id: str, *, retries: int, next_run_at: datetime, error: str, now: datetime) -> Optional[Job]:
        return self._transition(
            job_id,
            status=JobStatus.PENDING.value,
            retries=int(retries),
            next_run_at=next_run_at,
            last_error=error,
            processing_started_at=None,
            updated_at=now,
        )

    def dead_letter(self, job_id: str, *, retries: int, error: str, now: datetime) -> Optional[Job]:
        return self._transition(
            job_id,
            status=JobStatus.DEAD_LETTER.value,
            retries=int(retries),
            last_error=error,
            processing_started_at=None,
            updated_at=now,
        )

    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
        with get_session() as session:
            query = select(JobORM)
            if status is not None:
                query = query.where(JobORM.status == JobStatus(status).value)
            query = query.order_by(JobORM.created_at.desc()).limit(max(1, int(limit)))
            return [job_orm_to_model(row) for row in session.scalars(query).all()]

    def list_stale(self, started_before: datetime) -> List[Job]:
        with get_session() as session:
            rows = session.scalars(
                select(JobORM)
                .where(JobORM.status == JobStatus.PROCESSING.value)
                .where(JobORM.processing_started_at.is_not(None))
                .where(JobORM.processing_started_at < started_before)
            ).all()
            return [job_orm_to_model(row) for row in rows]
