"""Catalog entry fetcher: feed entries to FeedItems, with failure bookkeeping."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, List, Optional

import feedparser

from config import Settings, get_settings
from core import FeedCatalogEntry, FeedItem, SourceType
from storage.catalog import CatalogStore
from utils.exceptions import FeedFetchError
from utils.text import dedupe_hash, extract_doi, safe_truncate

from .feeds import entry_doi_fields, entry_link, entry_published, entry_text, fetch_feed_with_retry

logger = logging.getLogger(__name__)

EXCERPT_LIMIT = 5000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _int_field(entry: Dict[str, Any], *keys: str) -> int:
    for key in keys:
        value = entry.get(key)
        if value in (None, ""):
            continue
        try:
            return max(0, int(float(value)))
        except (TypeError, ValueError):
            continue
    return 0


def normalize_entry(entry: Dict[str, Any], catalog_entry: FeedCatalogEntry) -> FeedItem:
    title = str(entry.get("title") or "").strip()
    link = entry_link(entry)
    excerpt = safe_truncate(entry_text(entry), max_len=EXCERPT_LIMIT)

    doi = extract_doi(link)
    if not doi:
        for candidate in [*entry_doi_fields(entry), excerpt]:
            doi = extract_doi(candidate)
            if doi:
                break

    is_journal = catalog_entry.source_type == SourceType.ACADEMIC_JOURNAL
    views = entry.get("media_statistics") or {}
    return FeedItem(
        title=title,
        url=link,
        feed_id=catalog_entry.id,
        feed_name=catalog_entry.name,
        source_type=catalog_entry.source_type,
        published_at=entry_published(entry),
        excerpt=excerpt,
        author=str(entry.get("author") or "").strip() or catalog_entry.name,
        doi=doi,
        is_preprint="preprint" in title.lower() or "preprint" in excerpt.lower(),
        journal_name=catalog_entry.name if is_journal else None,
        engagement={
            "views": _int_field(views, "views"),
            "comments": _int_field(entry, "slash_comments", "comments_count"),
        },
        dedupe_hash=dedupe_hash(link, title),
    )


def normalize_entries(
    parsed: feedparser.FeedParserDict,
    catalog_entry: FeedCatalogEntry,
    max_items: int = 10,
) -> List[FeedItem]:
    items = []
    for entry in list(parsed.get("entries") or [])[: max(1, int(max_items))]:
        item = normalize_entry(entry, catalog_entry)
        if item.title or item.url:
            items.append(item)
    return items


class FeedFetcher:
    """Fetches a catalog entry and keeps its health counters current."""

    def __init__(
        self,
        catalog: CatalogStore,
        settings: Optional[Settings] = None,
        *,
        retry_wait: Optional[Callable] = None,
    ) -> None:
        self.catalog = catalog
        self.settings = settings or get_settings()
        self._retry_wait = retry_wait

    async def fetch(self, entry: FeedCatalogEntry) -> List[FeedItem]:
        """Return normalised items; on failure record it and re-raise."""
        try:
            parsed = await fetch_feed_with_retry(entry.url, settings=self.settings, wait=self._retry_wait)
        except FeedFetchError as exc:
            self.record_failure(entry, exc)
            raise

        items = normalize_entries(parsed, entry, self.settings.catalog.max_items_per_fetch)
        self.record_success(entry)
        logger.info("Fetched %d item(s) from %s", len(items), entry.name)
        return items

    def record_success(self, entry: FeedCatalogEntry) -> FeedCatalogEntry:
        updated = entry.model_copy(
            update={
                "consecutive_failures": 0,
                "last_successful_fetch": _utcnow(),
                "last_error": None,
            },
            deep=True,
        )
        return self.catalog.save(updated)

    def record_failure(self, entry: FeedCatalogEntry, error: FeedFetchError) -> FeedCatalogEntry:
        failures = entry.consecutive_failures + 1
        threshold = self.settings.catalog.deactivate_after_failures
        changes: Dict[str, Any] = {
            "consecutive_failures": failures,
            "last_error": error.message,
        }
        if failures >= threshold and entry.active:
            changes["active"] = False
            logger.warning(
                "Deactivating feed %s after %d consecutive failures (%s)",
                entry.name,
                failures,
                "permanent" if error.permanent else "transient",
            )
        else:
            logger.warning("Feed %s failed (%d/%d): %s", entry.name, failures, threshold, error.message)
        return self.catalog.save(entry.model_copy(update=changes, deep=True))


async def fetch_catalog_entry(
    entry: FeedCatalogEntry,
    catalog: CatalogStore,
    settings: Optional[Settings] = None,
) -> List[FeedItem]:
    return await FeedFetcher(catalog, settings).fetch(entry)
