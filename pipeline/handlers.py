"""Job handlers wiring catalog, fetcher, enrichment, discovery and result storage together."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from config import Settings, get_settings
from core import FeedCatalogEntry
from discovery import FeedDiscoveryEngine
from orchestrator.scheduler import DISCOVER_JOB, IMPORT_JOB, INGEST_JOB
from orchestrator.worker import JobWorker
from sources.catalog import ingest_feed
from sources.fetcher import FeedFetcher
from storage.catalog import CatalogStore
from storage.items import ItemStore
from utils.exceptions import JobError

from .enrichment import ContentEnricher

logger = logging.getLogger(__name__)


class FeedJobHandlers:
    """Handlers for ``feed.ingest``, ``feed.discover`` and ``feed.import`` jobs."""

    def __init__(
        self,
        catalog: CatalogStore,
        items: ItemStore,
        *,
        enricher: Optional[ContentEnricher] = None,
        discovery: Optional[FeedDiscoveryEngine] = None,
        fetcher: Optional[FeedFetcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.items = items
        self.enricher = enricher or ContentEnricher(self.settings)
        self.discovery = discovery or FeedDiscoveryEngine(settings=self.settings)
        self.fetcher = fetcher or FeedFetcher(catalog, self.settings)

    def _entry(self, payload: Dict[str, Any]) -> FeedCatalogEntry:
        feed_id = str(payload.get("feed_id") or "").strip()
        if not feed_id:
            raise JobError("Job payload is missing feed_id", {"payload": payload})
        entry = self.catalog.get(feed_id)
        if entry is None:
            raise JobError(f"Catalog entry not found: {feed_id}", {"feed_id": feed_id})
        return entry

    async def ingest(self, payload: Dict[str, Any]) -> int:
        """Fetch one feed, enrich its items and store the scored results."""
        entry = self._entry(payload)
        if not entry.active:
            logger.info("Skipping ingestion of inactive feed %s", entry.name)
            return 0

        fetched = await self.fetcher.fetch(entry)
        if not fetched:
            return 0
        enriched = await self.enricher.enrich_batch(fetched)
        stored = self.items.upsert_many(enriched)
        logger.info("Stored %d scored item(s) from %s", len(stored), entry.name)
        return len(stored)

    async def discover(self, payload: Dict[str, Any]) -> Optional[str]:
        """Look for a working replacement URL; rewrite and reactivate the entry on success."""
        entry = self._entry(payload)
        candidate = await self.discovery.discover_alternative(entry)
        if candidate is None:
            logger.warning("Discovery found no alternative for %s (%s)", entry.name, entry.url)
            return None

        updated = entry.model_copy(
            update={
                "url": candidate.url,
                "consecutive_failures": 0,
                "active": True,
                "last_error": None,
                "discovery_method": candidate.method,
            },
            deep=True,
        )
        self.catalog.save(updated)
        logger.info(
            "Recovered %s: %s -> %s via %s (confidence %.2f)",
            entry.name,
            entry.url,
            candidate.url,
            candidate.method,
            candidate.confidence,
        )
        return candidate.url

    async def import_feed(self, payload: Dict[str, Any]) -> Optional[str]:
        """Validate and catalog one feed URL; invalid feeds are reported, not retried."""
        url = str(payload.get("url") or "").strip()
        if not url:
            raise JobError("Job payload is missing url", {"payload": payload})
        result = await ingest_feed(
            url,
            self.catalog,
            name=payload.get("name") or None,
            topics=payload.get("topics") or None,
            auto_approve=bool(payload.get("auto_approve", False)),
            settings=self.settings,
        )
        if not result.success:
            logger.warning("Import of %s rejected: %s", url, result.error)
            return None
        return result.entry.id if result.entry else None


def register_handlers(worker: JobWorker, handlers: FeedJobHandlers) -> JobWorker:
    worker.register(INGEST_JOB, handlers.ingest)
    worker.register(DISCOVER_JOB, handlers.discover)
    worker.register(IMPORT_JOB, handlers.import_feed)
    return worker
