"""Maintenance cadence: enqueue ingestion for healthy feeds and discovery for degraded ones."""

from __future__ import annotations

import logging
from typing import Callable, List

from storage.catalog import CatalogStore

logger = logging.getLogger(__name__)

INGEST_JOB = "feed.ingest"
DISCOVER_JOB = "feed.discover"
IMPORT_JOB = "feed.import"

DISCOVERY_PRIORITY = 3

EnqueueFn = Callable[..., str]


def schedule_ingestion(catalog: CatalogStore, enqueue: EnqueueFn) -> List[str]:
    job_ids = [enqueue(INGEST_JOB, {"feed_id": entry.id}) for entry in catalog.list_active()]
    logger.info("Scheduled ingestion for %d feed(s)", len(job_ids))
    return job_ids


def schedule_discovery(catalog: CatalogStore, enqueue: EnqueueFn, threshold: int) -> List[str]:
    job_ids = [
        enqueue(DISCOVER_JOB, {"feed_id": entry.id}, priority=DISCOVERY_PRIORITY)
        for entry in catalog.list_degraded(threshold)
    ]
    if job_ids:
        logger.info("Scheduled discovery for %d degraded feed(s)", len(job_ids))
    return job_ids
