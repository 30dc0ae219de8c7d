"""Enqueue / status facade over a job store."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from threading import Lock
from typing import Any, Dict, List, Optional

from config import WorkerSettings, get_settings
from core import Job, JobStatus
from utils.exceptions import JobNotFoundError

from .store import JobStore

logger = logging.getLogger(__name__)


class JobQueue:
    """Producer-side API: enqueue returns immediately with the job id."""

    def __init__(self, store: JobStore, settings: Optional[WorkerSettings] = None) -> None:
        self.store = store
        self.settings = settings or WorkerSettings()

    def enqueue(
        self,
        job_type: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        priority: Optional[int] = None,
        max_retries: Optional[int] = None,
        run_at: Optional[datetime] = None,
    ) -> str:
        job = Job(
            type=job_type,
            payload=dict(payload or {}),
            priority=self.settings.default_priority if priority is None else int(priority),
            max_retries=self.settings.max_retries if max_retries is None else int(max_retries),
        )
        if run_at is not None:
            job.next_run_at = run_at if run_at.tzinfo else run_at.replace(tzinfo=timezone.utc)
        job_id = self.store.add(job)
        logger.info("Enqueued job %s (%s, priority=%d)", job_id, job.type, job.priority)
        return job_id

    def get_status(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def require(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}", {"id": job_id})
        return job

    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
        return self.store.list_jobs(status=status, limit=limit)


_DEFAULT_QUEUE: Optional[JobQueue] = None
_DEFAULT_LOCK = Lock()


def get_default_queue() -> JobQueue:
    """Process-wide queue backed by the configured database."""
    global _DEFAULT_QUEUE
    with _DEFAULT_LOCK:
        if _DEFAULT_QUEUE is None:
            from storage import init_db
            from .sql_store import SqlJobStore

            init_db()
            _DEFAULT_QUEUE = JobQueue(SqlJobStore(), get_settings().worker)
        return _DEFAULT_QUEUE


def set_default_queue(queue: Optional[JobQueue]) -> None:
    global _DEFAULT_QUEUE
    with _DEFAULT_LOCK:
        _DEFAULT_QUEUE = queue


def enqueue(
    job_type: str,
    payload: Optional[Dict[str, Any]] = None,
    *,
    priority: Optional[int] = None,
    max_retries: Optional[int] = None,
    run_at: Optional[datetime] = None,
) -> str:
    return get_default_queue().enqueue(
        job_type,
        payload,
        priority=priority,
        max_retries=max_retries,
        run_at=run_at,
    )


def get_status(job_id: str) -> Optional[Job]:
    return get_default_queue().get_status(job_id)


def list_jobs(status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
    return get_default_queue().list_jobs(status=status, limit=limit)
