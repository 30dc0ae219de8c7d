from __future__ import annotations

import feedparser
import httpx
import pytest
from tenacity import wait_none

from core import EnrichmentCapabilities, FeedCatalogEntry, SourceType
from orchestrator import IMPORT_JOB, schedule_discovery, schedule_ingestion
from sources import feeds
from sources.catalog import auto_topics, ingest_feed
from sources.fetcher import FeedFetcher, normalize_entries
from sources.opml import extract_opml_outlines, import_opml
from storage import InMemoryCatalogStore
from utils.exceptions import FeedFetchError

JOURNAL_RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel>
  <title>Clinical Nutrition Letters</title>
  <description>Peer reviewed nutrition research</description>
  <item>
    <title>Preprint: vitamin D and immune response</title>
    <link>https://doi.org/10.5555/cnl.2026.10</link>
    <description>A clinical trial of vitamin D dosing in adults.</description>
    <pubDate>Mon, 02 Feb 2026 10:00:00 GMT</pubDate>
  </item>
  <item>
    <title>Gut microbiome diversity</title>
    <link>https://cnl.example.org/articles/2</link>
    <description>Observational study. doi:10.5555/cnl.2026.11</description>
  </item>
</channel></rss>"""

OPML = """<?xml version="1.0"?>
<opml version="1.0">
  <head><title>Subscriptions</title></head>
  <body>
    <outline text="Health">
      <outline text="Huberman Lab" type="rss" xmlUrl="https://feeds.megaphone.fm/hubermanlab"/>
      <outline title="Gut &amp; Brain" type="rss" xmlUrl='https://gut.substack.com/feed'/>
      <outline text="Duplicate" xmlUrl="https://feeds.megaphone.fm/hubermanlab"/>
      <outline text="Folder only"/>
      <outline xmlUrl="https://plain.example.com/rss"/>
    </outline>
  </body>
</opml>"""


def _serve(monkeypatch, pages):
    async def _fake_get_text(url: str, *, headers=None, timeout: float = 30.0) -> str:
        page = pages[url]
        if isinstance(page, Exception):
            raise page
        return page

    monkeypatch.setattr(feeds, "_http_get_text", _fake_get_text)


def _entry(**kwargs) -> FeedCatalogEntry:
    defaults = dict(
        name="Clinical Nutrition Letters",
        url="https://cnl.example.org/rss",
        source_type=SourceType.ACADEMIC_JOURNAL,
        approval_status="approved",
    )
    defaults.update(kwargs)
    return FeedCatalogEntry(**defaults)


def test_normalize_entries_extracts_doi_and_preprint() -> None:
    items = normalize_entries(feedparser.parse(JOURNAL_RSS), _entry(), max_items=10)

    assert [item.doi for item in items] == ["10.5555/cnl.2026.10", "10.5555/cnl.2026.11"]
    assert items[0].is_preprint is True
    assert items[1].is_preprint is False
    assert items[0].journal_name == "Clinical Nutrition Letters"
    assert items[0].published_at is not None
    assert items[1].published_at is None
    assert items[0].dedupe_hash and items[0].dedupe_hash != items[1].dedupe_hash


@pytest.mark.asyncio
async def test_fetcher_resets_failures_on_success(monkeypatch, settings) -> None:
    catalog = InMemoryCatalogStore()
    entry = catalog.add(_entry(consecutive_failures=2, last_error="HTTP 500 fetching feed"))
    _serve(monkeypatch, {entry.url: JOURNAL_RSS})

    items = await FeedFetcher(catalog, settings, retry_wait=wait_none()).fetch(entry)

    assert len(items) == 2
    stored = catalog.get(entry.id)
    assert stored.consecutive_failures == 0
    assert stored.last_error is None
    assert stored.last_successful_fetch is not None


@pytest.mark.asyncio
async def test_fetcher_counts_failures_and_deactivates(monkeypatch, settings) -> None:
    catalog = InMemoryCatalogStore()
    entry = catalog.add(_entry(consecutive_failures=settings.catalog.deactivate_after_failures - 1))
    request = httpx.Request("GET", entry.url)
    _serve(monkeypatch, {entry.url: httpx.HTTPStatusError("gone", request=request, response=httpx.Response(404, request=request))})

    with pytest.raises(FeedFetchError):
        await FeedFetcher(catalog, settings, retry_wait=wait_none()).fetch(entry)

    stored = catalog.get(entry.id)
    assert stored.consecutive_failures == settings.catalog.deactivate_after_failures
    assert stored.active is False
    assert stored.last_error == "HTTP 404 fetching feed"


@pytest.mark.asyncio
async def test_ingest_feed_creates_tagged_entry(monkeypatch, settings) -> None:
    url = "https://cnl.example.org/rss"
    _serve(monkeypatch, {url: JOURNAL_RSS})
    catalog = InMemoryCatalogStore()

    async def _prober(source_type, parsed):
        assert source_type == SourceType.ACADEMIC_JOURNAL
        return EnrichmentCapabilities(pdf_available=True)

    result = await ingest_feed(url, catalog, settings=settings, prober=_prober)

    assert result.success is True
    assert result.created is True
    entry = result.entry
    assert entry.source_type == SourceType.ACADEMIC_JOURNAL
    assert entry.name == "Clinical Nutrition Letters"
    assert entry.approval_status == "pending"
    assert entry.capabilities.pdf_available is True
    assert entry.topics == ["science/research", "health/medical", "health/nutrition"]
    assert entry.metadata["item_count"] == 2
    assert catalog.get_by_url(url).id == entry.id

    again = await ingest_feed(url, catalog, settings=settings, prober=_prober)
    assert again.success is True
    assert again.created is False
    assert again.entry.id == entry.id


@pytest.mark.asyncio
async def test_ingest_feed_rejects_invalid_feed(monkeypatch, settings) -> None:
    url = "https://empty.example.org/rss"
    _serve(monkeypatch, {url: "<rss version='2.0'><channel><title>Empty</title></channel></rss>"})
    catalog = InMemoryCatalogStore()

    result = await ingest_feed(url, catalog, settings=settings)

    assert result.success is False
    assert result.error == "Feed has no entries"
    assert catalog.list_entries() == []


def test_auto_topics_caps_at_three() -> None:
    parsed = feedparser.parse(JOURNAL_RSS)
    validation = feeds.build_validation("https://cnl.example.org/rss", parsed)
    assert len(auto_topics(validation, parsed)) == 3


def test_extract_opml_outlines() -> None:
    assert extract_opml_outlines(OPML) == [
        ("https://feeds.megaphone.fm/hubermanlab", "Huberman Lab"),
        ("https://gut.substack.com/feed", "Gut & Brain"),
        ("https://plain.example.com/rss", "https://plain.example.com/rss"),
    ]


@pytest.mark.asyncio
async def test_import_opml_enqueues_in_batches(settings) -> None:
    settings.enrichment.opml_batch_size = 2
    enqueued = []
    pauses = []

    def _enqueue(job_type, payload, **kwargs):
        enqueued.append((job_type, payload))
        return f"job-{len(enqueued)}"

    async def _sleep(seconds):
        pauses.append(seconds)

    job_ids = await import_opml(OPML, _enqueue, settings=settings, sleep=_sleep)

    assert job_ids == ["job-1", "job-2", "job-3"]
    assert {job_type for job_type, _ in enqueued} == {IMPORT_JOB}
    assert enqueued[1][1] == {"url": "https://gut.substack.com/feed", "name": "Gut & Brain"}
    assert len(pauses) == 1


def test_scheduler_targets_healthy_and_degraded_feeds() -> None:
    catalog = InMemoryCatalogStore()
    healthy = catalog.add(_entry(url="https://a.example.org/rss"))
    catalog.add(_entry(url="https://b.example.org/rss", approval_status="pending"))
    degraded = catalog.add(_entry(url="https://c.example.org/rss", consecutive_failures=4, active=False))
    calls = []

    def _enqueue(job_type, payload, **kwargs):
        calls.append((job_type, payload, kwargs))
        return f"job-{len(calls)}"

    schedule_ingestion(catalog, _enqueue)
    schedule_discovery(catalog, _enqueue, threshold=3)

    assert calls == [
        ("feed.ingest", {"feed_id": healthy.id}, {}),
        ("feed.discover", {"feed_id": degraded.id}, {"priority": 3}),
    ]
