"""Job store interface and the in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from core import Job, JobStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore(ABC):
    """Durable queue of deferred work.

    Every status transition is a single atomic store operation. ``claim_next``
    must never hand the same pending job to two callers, and complete,
    reschedule and dead-letter only apply to jobs still in ``processing``
    (``None`` means the update was lost).
    """

    @abstractmethod
    def add(self, job: Job) -> str:
        pass

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        pass

    @abstractmethod
    def claim_next(self, now: datetime) -> Optional[Job]:
        """Atomically move the most urgent eligible pending job to ``processing``."""
        pass

    @abstractmethod
    def complete(self, job_id: str, now: datetime) -> Optional[Job]:
        pass

    @abstractmethod
    def reschedule(self, job_id: str, *, retries: int, next_run_at: datetime, error: str, now: datetime) -> Optional[Job]:
        """Return a failed job to ``pending`` with a new eligibility time."""
        pass

    @abstractmethod
    def dead_letter(self, job_id: str, *, retries: int, error: str, now: datetime) -> Optional[Job]:
        pass

    @abstractmethod
    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
        pass

    @abstractmethod
    def list_stale(self, started_before: datetime) -> List[Job]:
        """Jobs still ``processing`` that were claimed before ``started_before``."""
        pass


def _claim_order(job: Job):
    return (job.priority, job.next_run_at, job.created_at)


class InMemoryJobStore(JobStore):
    """Thread-safe dict-backed job store."""

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = Lock()

    def add(self, job: Job) -> str:
        with self._lock:
            self._jobs[job.id] = job.model_copy(deep=True)
        return job.id

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def claim_next(self, now: datetime) -> Optional[Job]:
        with self._lock:
            eligible = [
                job
                for job in self._jobs.values()
                if job.status == JobStatus.PENDING and job.next_run_at <= now
            ]
            if not eligible:
                return None
            job = min(eligible, key=_claim_order)
            job.status = JobStatus.PROCESSING
            job.processing_started_at = now
            job.updated_at = now
            return job.model_copy(deep=True)

    def _processing(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job if job and job.status == JobStatus.PROCESSING else None

    def complete(self, job_id: str, now: datetime) -> Optional[Job]:
        with self._lock:
            job = self._processing(job_id)
            if not job:
                return None
            job.status = JobStatus.COMPLETED
            job.completed_at = now
            job.updated_at = now
            return job.model_copy(deep=True)

    def reschedule(self, job_id: str, *, retries: int, next_run_at: datetime, error: str, now: datetime) -> Optional[Job]:
        with self._lock:
            job = self._processing(job_id)
            if not job:
                return None
            job.status = JobStatus.PENDING
            job.retries = int(retries)
            job.next_run_at = next_run_at
            job.last_error = error
            job.processing_started_at = None
            job.updated_at = now
            return job.model_copy(deep=True)

    def dead_letter(self, job_id: str, *, retries: int, error: str, now: datetime) -> Optional[Job]:
        with self._lock:
            job = self._processing(job_id)
            if not job:
                return None
            job.status = JobStatus.DEAD_LETTER
            job.retries = int(retries)
            job.last_error = error
            job.processing_started_at = None
            job.updated_at = now
            return job.model_copy(deep=True)

    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
        with self._lock:
            jobs = [job for job in self._jobs.values() if status is None or job.status == status]
            jobs.sort(key=lambda item: item.created_at, reverse=True)
            return [job.model_copy(deep=True) for job in jobs[: max(1, int(limit))]]

    def list_stale(self, started_before: datetime) -> List[Job]:
        with self._lock:
            return [
                job.model_copy(deep=True)
                for job in self._jobs.values()
                if job.status == JobStatus.PROCESSING
                and job.processing_started_at is not None
                and job.processing_started_at < started_before
            ]
