"""Feed sources: validation, classification, fetching, catalog ingestion and OPML import."""

from .feeds import (
    categorize_error,
    classify_feed,
    extract_author,
    extract_categories,
    fetch_feed,
    fetch_feed_with_retry,
    inspect_feed,
    validate_feed,
)
from .capabilities import probe_capabilities
from .fetcher import FeedFetcher, fetch_catalog_entry, normalize_entries
from .catalog import IngestResult, auto_topics, ingest_feed
from .opml import extract_opml_outlines, import_opml

__all__ = [
    "categorize_error",
    "classify_feed",
    "extract_author",
    "extract_categories",
    "fetch_feed",
    "fetch_feed_with_retry",
    "inspect_feed",
    "validate_feed",
    "probe_capabilities",
    "FeedFetcher",
    "fetch_catalog_entry",
    "normalize_entries",
    "IngestResult",
    "auto_topics",
    "ingest_feed",
    "extract_opml_outlines",
    "import_opml",
]
