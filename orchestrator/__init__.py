"""Job queue primitives: stores, worker, facade and scheduling."""

from .store import InMemoryJobStore, JobStore
from .sql_store import SqlJobStore
from .worker import JobWorker, compute_retry_delay
from .service import (
    JobQueue,
    enqueue,
    get_default_queue,
    get_status,
    list_jobs,
    set_default_queue,
)
from .scheduler import (
    DISCOVER_JOB,
    IMPORT_JOB,
    INGEST_JOB,
    schedule_discovery,
    schedule_ingestion,
)

__all__ = [
    "InMemoryJobStore",
    "JobStore",
    "SqlJobStore",
    "JobWorker",
    "compute_retry_delay",
    "JobQueue",
    "enqueue",
    "get_default_queue",
    "get_status",
    "list_jobs",
    "set_default_queue",
    "DISCOVER_JOB",
    "IMPORT_JOB",
    "INGEST_JOB",
    "schedule_discovery",
    "schedule_ingestion",
]
