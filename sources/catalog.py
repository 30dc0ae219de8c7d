"""Catalog ingestion: validate a submitted feed, probe it, tag it and store it."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import feedparser
from pydantic import BaseModel

from config import Settings, get_settings
from core import EnrichmentCapabilities, FeedCatalogEntry, FeedValidationResult, SourceType
from storage.catalog import CatalogStore

from .capabilities import probe_capabilities
from .feeds import entry_text, inspect_feed

logger = logging.getLogger(__name__)

MAX_TOPICS = 3

TYPE_TOPICS: Dict[SourceType, List[str]] = {
    SourceType.VIDEO_CHANNEL: ["health/nutrition", "health/fitness"],
    SourceType.PODCAST: ["health/wellness", "science/medicine"],
    SourceType.ACADEMIC_JOURNAL: ["science/research", "health/medical"],
    SourceType.FORUM_COMMUNITY: ["community/discussion", "health/community"],
    SourceType.NEWSLETTER: ["health/newsletter", "science/analysis"],
    SourceType.GENERIC_BLOG: ["health/general", "lifestyle/wellness"],
}

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "health/nutrition": ["nutrition", "diet", "food", "eating", "nutrient", "vitamin"],
    "health/fitness": ["exercise", "fitness", "workout", "training", "muscle", "strength"],
    "health/medical": ["medical", "clinical", "treatment", "therapy", "patient", "disease"],
    "science/research": ["study", "research", "trial", "evidence", "data", "findings"],
    "health/longevity": ["longevity", "aging", "lifespan", "healthspan", "anti-aging"],
    "health/biohacking": ["biohacking", "optimization", "performance", "tracking", "quantified"],
    "health/mental": ["mental", "anxiety", "depression", "stress", "mindfulness", "meditation"],
    "health/gut": ["gut", "microbiome", "digestive", "probiotic", "intestinal"],
}

Prober = Callable[[Optional[SourceType], Optional[feedparser.FeedParserDict]], Awaitable[EnrichmentCapabilities]]


class IngestResult(BaseModel):
    success: bool
    entry: Optional[FeedCatalogEntry] = None
    validation: Optional[FeedValidationResult] = None
    created: bool = False
    error: Optional[str] = None


def auto_topics(validation: FeedValidationResult, parsed: Optional[feedparser.FeedParserDict]) -> List[str]:
    """Source-type defaults, then keyword hits over title, description and the first 5 entries."""
    topics: List[str] = []
    if validation.feed_type in TYPE_TOPICS:
        topics.extend(TYPE_TOPICS[validation.feed_type])

    parts = [validation.title or "", validation.description or ""]
    for entry in list((parsed or {}).get("entries") or [])[:5]:
        parts.append(f"{entry.get('title') or ''} {entry_text(entry)}")
    text = " ".join(parts).lower()

    for topic, keywords in TOPIC_KEYWORDS.items():
        if topic not in topics and any(keyword in text for keyword in keywords):
            topics.append(topic)
    return topics[:MAX_TOPICS]


async def ingest_feed(
    url: str,
    catalog: CatalogStore,
    *,
    name: Optional[str] = None,
    topics: Optional[List[str]] = None,
    auto_approve: bool = False,
    settings: Optional[Settings] = None,
    prober: Optional[Prober] = None,
) -> IngestResult:
    settings = settings or get_settings()
    validation, parsed = await inspect_feed(url, settings=settings)
    if not validation.valid:
        return IngestResult(success=False, validation=validation, error=validation.error)

    existing = catalog.get_by_url(validation.url)
    if existing:
        logger.info("Feed already in catalog: %s", validation.url)
        return IngestResult(success=True, entry=existing, validation=validation, created=False)

    capabilities = await (prober or probe_capabilities)(validation.feed_type, parsed)
    metadata = validation.metadata.model_dump() if validation.metadata else {}
    entry = FeedCatalogEntry(
        name=(name or validation.title or "Unknown Feed").strip(),
        url=validation.url,
        source_type=validation.feed_type or SourceType.GENERIC_BLOG,
        topics=list(topics) if topics else auto_topics(validation, parsed),
        approval_status="approved" if auto_approve else "pending",
        active=True,
        consecutive_failures=0,
        last_successful_fetch=datetime.now(timezone.utc),
        capabilities=capabilities,
        metadata={
            "description": validation.description,
            "author": metadata.get("author"),
            "language": metadata.get("language") or "en",
            "image_url": metadata.get("image_url"),
            "categories": metadata.get("categories") or [],
            "last_published": validation.last_published.isoformat() if validation.last_published else None,
            "item_count": validation.item_count,
            "validated_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    stored = catalog.add(entry)
    logger.info("Ingested feed %s as %s (topics=%s)", stored.name, stored.source_type.value, stored.topics)
    return IngestResult(success=True, entry=stored, validation=validation, created=True)
