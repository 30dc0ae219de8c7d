from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from core import (
    DiscoveryCandidate,
    EnrichedItem,
    FeedCatalogEntry,
    FeedItem,
    FeedValidationResult,
    Job,
    JobStatus,
    SourceType,
)
from orchestrator import DISCOVER_JOB, INGEST_JOB, InMemoryJobStore, JobWorker
from pipeline import FeedJobHandlers, register_handlers
from storage import InMemoryCatalogStore, InMemoryItemStore
from utils.exceptions import FeedFetchError, JobError


class _Fetcher:
    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error

    async def fetch(self, entry):
        if self.error:
            raise self.error
        return list(self.items)


class _Enricher:
    async def enrich_batch(self, items):
        return [EnrichedItem(**item.model_dump(), score=50) for item in items]

    async def aclose(self):
        return None


class _Discovery:
    def __init__(self, candidate=None):
        self.candidate = candidate
        self.entries = []

    async def discover_alternative(self, entry):
        self.entries.append(entry)
        return self.candidate


def _catalog_with(**kwargs):
    catalog = InMemoryCatalogStore()
    defaults = dict(
        name="Huberman Lab",
        url="https://old.example.com/rss",
        source_type=SourceType.PODCAST,
        approval_status="approved",
    )
    defaults.update(kwargs)
    return catalog, catalog.add(FeedCatalogEntry(**defaults))


def _handlers(catalog, settings, **kwargs):
    kwargs.setdefault("enricher", _Enricher())
    kwargs.setdefault("discovery", _Discovery())
    kwargs.setdefault("fetcher", _Fetcher())
    return FeedJobHandlers(catalog, kwargs.pop("items", InMemoryItemStore()), settings=settings, **kwargs)


@pytest.mark.asyncio
async def test_ingest_stores_enriched_items(settings) -> None:
    catalog, entry = _catalog_with()
    items = InMemoryItemStore()
    fetched = [
        FeedItem(title="Episode 1", url="https://pod.example.com/1", source_type=SourceType.PODCAST),
        FeedItem(title="Episode 2", url="https://pod.example.com/2", source_type=SourceType.PODCAST),
    ]
    handlers = _handlers(catalog, settings, items=items, fetcher=_Fetcher(fetched))

    stored = await handlers.ingest({"feed_id": entry.id})

    assert stored == 2
    assert items.count() == 2

    # re-running overwrites rather than duplicating
    await handlers.ingest({"feed_id": entry.id})
    assert items.count() == 2


@pytest.mark.asyncio
async def test_ingest_skips_inactive_entries(settings) -> None:
    catalog, entry = _catalog_with(active=False)
    handlers = _handlers(catalog, settings, fetcher=_Fetcher(error=AssertionError("should not fetch")))

    assert await handlers.ingest({"feed_id": entry.id}) == 0


@pytest.mark.asyncio
async def test_ingest_propagates_fetch_failures(settings) -> None:
    catalog, entry = _catalog_with()
    handlers = _handlers(catalog, settings, fetcher=_Fetcher(error=FeedFetchError("HTTP 500 fetching feed")))

    with pytest.raises(FeedFetchError):
        await handlers.ingest({"feed_id": entry.id})


@pytest.mark.asyncio
async def test_missing_feed_is_a_job_error(settings) -> None:
    catalog, _ = _catalog_with()
    handlers = _handlers(catalog, settings)

    with pytest.raises(JobError):
        await handlers.ingest({"feed_id": "nope"})
    with pytest.raises(JobError):
        await handlers.discover({})


@pytest.mark.asyncio
async def test_discovery_rewrites_and_reactivates_entry(settings) -> None:
    catalog, entry = _catalog_with(consecutive_failures=5, active=False, last_error="HTTP 404 fetching feed")
    candidate = DiscoveryCandidate(
        url="https://feeds.megaphone.fm/hubermanlab",
        name="Huberman Lab",
        confidence=0.9,
        method="known_mapping",
        validation=FeedValidationResult(valid=True, url="https://feeds.megaphone.fm/hubermanlab"),
    )
    handlers = _handlers(catalog, settings, discovery=_Discovery(candidate))

    new_url = await handlers.discover({"feed_id": entry.id})

    assert new_url == "https://feeds.megaphone.fm/hubermanlab"
    updated = catalog.get(entry.id)
    assert updated.url == new_url
    assert updated.consecutive_failures == 0
    assert updated.active is True
    assert updated.last_error is None
    assert updated.discovery_method == "known_mapping"


@pytest.mark.asyncio
async def test_discovery_without_alternative_leaves_entry(settings) -> None:
    catalog, entry = _catalog_with(consecutive_failures=5, active=False)
    handlers = _handlers(catalog, settings, discovery=_Discovery(None))

    assert await handlers.discover({"feed_id": entry.id}) is None
    unchanged = catalog.get(entry.id)
    assert unchanged.url == entry.url
    assert unchanged.active is False
    assert unchanged.consecutive_failures == 5


@pytest.mark.asyncio
async def test_registered_handlers_run_through_worker(settings) -> None:
    catalog, entry = _catalog_with()
    store = InMemoryJobStore()
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    worker = JobWorker(store, settings.worker, clock=lambda: now)
    register_handlers(worker, _handlers(catalog, settings))
    assert set(worker.handlers) == {"feed.ingest", "feed.discover", "feed.import"}

    ingest_id = store.add(Job(type=INGEST_JOB, payload={"feed_id": entry.id}, next_run_at=now - timedelta(seconds=1)))
    discover_id = store.add(
        Job(type=DISCOVER_JOB, payload={"feed_id": entry.id}, priority=3, next_run_at=now - timedelta(seconds=1))
    )

    assert await worker.drain() == 2
    assert store.get(ingest_id).status == JobStatus.COMPLETED
    assert store.get(discover_id).status == JobStatus.COMPLETED
