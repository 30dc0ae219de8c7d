from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core import EnrichedItem, FeedCatalogEntry, Job, JobStatus, QualityMetrics, ScoreBreakdown, SourceType
from orchestrator import JobWorker, SqlJobStore
from storage import SqlCatalogStore, SqlItemStore

T0 = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)


def _job(**kwargs) -> Job:
    kwargs.setdefault("next_run_at", T0 - timedelta(minutes=1))
    return Job(type="feed.ingest", payload={"feed_id": "f1"}, **kwargs)


def test_claim_is_exclusive(sql_engine) -> None:
    store = SqlJobStore()
    job_id = store.add(_job())

    claimed = store.claim_next(T0)
    assert claimed is not None
    assert claimed.id == job_id
    assert claimed.status == JobStatus.PROCESSING
    assert claimed.processing_started_at == T0
    assert claimed.payload == {"feed_id": "f1"}

    assert store.claim_next(T0) is None


def test_claim_respects_priority_and_eligibility(sql_engine) -> None:
    store = SqlJobStore()
    later = store.add(_job(priority=1, next_run_at=T0 + timedelta(hours=1)))
    normal = store.add(_job(priority=5))
    urgent = store.add(_job(priority=3))

    assert store.claim_next(T0).id == urgent
    assert store.claim_next(T0).id == normal
    assert store.claim_next(T0) is None
    assert store.claim_next(T0 + timedelta(hours=2)).id == later


def test_transitions_round_trip(sql_engine) -> None:
    store = SqlJobStore()
    job_id = store.add(_job(max_retries=2))
    store.claim_next(T0)

    rescheduled = store.reschedule(job_id, retries=1, next_run_at=T0 + timedelta(seconds=30), error="timeout", now=T0)
    assert rescheduled.status == JobStatus.PENDING
    assert rescheduled.retries == 1
    assert rescheduled.last_error == "timeout"
    assert rescheduled.processing_started_at is None

    store.claim_next(T0 + timedelta(seconds=30))
    dead = store.dead_letter(job_id, retries=2, error="timeout", now=T0)
    assert dead.status == JobStatus.DEAD_LETTER
    assert [job.id for job in store.list_jobs(status=JobStatus.DEAD_LETTER)] == [job_id]
    assert store.complete("missing", T0) is None


def test_list_stale_only_returns_old_processing_jobs(sql_engine) -> None:
    store = SqlJobStore()
    old = store.add(_job())
    store.claim_next(T0)
    fresh = store.add(_job())
    store.claim_next(T0 + timedelta(minutes=30))

    stale = store.list_stale(T0 + timedelta(minutes=10))
    assert [job.id for job in stale] == [old]
    assert fresh not in [job.id for job in stale]


@pytest.mark.asyncio
async def test_worker_over_sql_store(sql_engine) -> None:
    store = SqlJobStore()
    worker = JobWorker(store, clock=lambda: T0)
    calls = []
    worker.register("feed.ingest", lambda payload: calls.append(payload["feed_id"]))
    job_id = store.add(_job())

    assert await worker.drain() == 1
    assert calls == ["f1"]
    assert store.get(job_id).status == JobStatus.COMPLETED


def test_catalog_store_round_trip(sql_engine) -> None:
    store = SqlCatalogStore()
    entry = FeedCatalogEntry(
        name="Gut Health Weekly",
        url="https://gut.substack.com/feed",
        source_type=SourceType.NEWSLETTER,
        topics=["health/gut"],
        approval_status="approved",
        metadata={"language": "en"},
    )
    store.add(entry)

    loaded = store.get_by_url("https://gut.substack.com/feed")
    assert loaded.id == entry.id
    assert loaded.source_type == SourceType.NEWSLETTER
    assert loaded.metadata == {"language": "en"}
    assert [item.id for item in store.list_active()] == [entry.id]

    store.save(loaded.model_copy(update={"consecutive_failures": 5, "active": False}))
    assert store.list_active() == []
    assert [item.id for item in store.list_degraded(3)] == [entry.id]


def test_item_store_upsert_is_idempotent(sql_engine) -> None:
    store = SqlItemStore()
    item = EnrichedItem(
        title="Creatine and cognition",
        url="https://example.org/creatine",
        source_type=SourceType.GENERIC_BLOG,
        metrics=QualityMetrics(citation_count=3),
        score_breakdown=ScoreBreakdown(methodology=20.0, total=20.0, explanation="Source: generic-blog"),
        score=20,
    )

    key = store.upsert(item)
    again = store.upsert(item.model_copy(update={"score": 21}))

    assert key == again
    assert store.count() == 1
    loaded = store.get(key)
    assert loaded.score == 21
    assert loaded.metrics.citation_count == 3
    assert loaded.score_breakdown.explanation == "Source: generic-blog"


def test_transitions_require_processing_status(sql_engine) -> None:
    store = SqlJobStore()
    job_id = store.add(_job())

    assert store.complete(job_id, T0) is None
    assert store.dead_letter(job_id, retries=1, error="x", now=T0) is None
    assert store.get(job_id).status == JobStatus.PENDING

    store.claim_next(T0)
    store.reschedule(job_id, retries=1, next_run_at=T0 + timedelta(minutes=5), error="stale", now=T0)

    assert store.complete(job_id, T0) is None
    assert store.get(job_id).status == JobStatus.PENDING
