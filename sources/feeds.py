"""Feed fetching, validation, classification and metadata extraction."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import feedparser
import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from config import Settings, get_settings
from core import FeedMetadata, FeedValidationResult, SourceType
from utils.exceptions import FeedFetchError
from utils.text import contains_doi, normalize_url, parse_datetime, strip_html

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5"

PLATFORM_TYPES: List[Tuple[Tuple[str, ...], SourceType]] = [
    (("youtube.com", "youtu.be"), SourceType.VIDEO_CHANNEL),
    (("reddit.com",), SourceType.FORUM_COMMUNITY),
    (("substack.com", "beehiiv.com", "buttondown.email"), SourceType.NEWSLETTER),
]

ACADEMIC_DOMAINS = (
    "nature.com",
    "science.org",
    "cell.com",
    "nejm.org",
    "jamanetwork.com",
    "bmj.com",
    "thelancet.com",
    "plos.org",
    "frontiersin.org",
    "biomedcentral.com",
    "sciencedirect.com",
    "springer.com",
    "wiley.com",
    "mdpi.com",
)

PERMANENT_STATUS = {401, 403, 404, 410}

ITUNES_NAMESPACE = "itunes.com/dtds/podcast"


async def _http_get_text(url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 30.0) -> str:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        return response.text


def categorize_error(error: BaseException) -> bool:
    """True when the failure is permanent (retrying will not help)."""
    if isinstance(error, FeedFetchError):
        return error.permanent
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in PERMANENT_STATUS
    # timeouts, connection resets and anything unrecognised are treated as transient
    return False


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, FeedFetchError) and not error.permanent


async def fetch_feed(url: str, *, settings: Optional[Settings] = None) -> feedparser.FeedParserDict:
    """One fetch-and-parse attempt; failures raise a categorised ``FeedFetchError``."""
    settings = settings or get_settings()
    headers = {"User-Agent": settings.provider.user_agent, "Accept": FEED_ACCEPT}
    try:
        text = await _http_get_text(url, headers=headers, timeout=float(settings.provider.request_timeout))
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise FeedFetchError(
            f"HTTP {status} fetching feed",
            url=url,
            status_code=status,
            permanent=categorize_error(exc),
        ) from exc
    except httpx.HTTPError as exc:
        raise FeedFetchError(
            f"{exc.__class__.__name__} fetching feed: {exc}",
            url=url,
            permanent=False,
        ) from exc
    except (httpx.InvalidURL, ValueError) as exc:
        # malformed host/port surfaces from httpx's URL parser as a bare ValueError
        raise FeedFetchError(f"Invalid feed URL: {exc}", url=url, permanent=True) from exc

    parsed = feedparser.parse(text)
    if parsed.bozo and not parsed.entries and not parsed.feed.get("title"):
        raise FeedFetchError(
            f"Failed to parse feed: {parsed.get('bozo_exception')}",
            url=url,
            permanent=True,
        )
    return parsed


async def fetch_feed_with_retry(
    url: str,
    *,
    settings: Optional[Settings] = None,
    attempts: int = 3,
    wait: Optional[Callable] = None,
) -> feedparser.FeedParserDict:
    """Fetch with in-call retries on transient errors (2s, 4s, 8s)."""
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait or wait_exponential(multiplier=2, min=2, max=8),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.info("Retrying feed fetch %s (attempt %d)", url, attempt.retry_state.attempt_number)
            return await fetch_feed(url, settings=settings)
    raise FeedFetchError("Feed fetch retries exhausted", url=url)


# ---------------------------------------------------------------------------
# entry helpers
# ---------------------------------------------------------------------------

def entry_link(entry: Dict[str, Any]) -> str:
    return str(entry.get("link") or entry.get("id") or "").strip()


def entry_body(entry: Dict[str, Any]) -> str:
    """Raw (HTML) body: full content when present, else summary."""
    for block in entry.get("content") or []:
        value = str(block.get("value") or "").strip()
        if value:
            return value
    return str(entry.get("summary") or entry.get("description") or "").strip()


def entry_text(entry: Dict[str, Any]) -> str:
    return strip_html(entry_body(entry))


def entry_published(entry: Dict[str, Any]) -> Optional[datetime]:
    for key in ("published_parsed", "updated_parsed"):
        value = entry.get(key)
        if value:
            return datetime(*value[:6], tzinfo=timezone.utc)
    return parse_datetime(entry.get("published") or entry.get("updated"))


def entry_doi_fields(entry: Dict[str, Any]) -> List[str]:
    return [str(entry.get(key) or "") for key in ("prism_doi", "dc_identifier") if entry.get(key)]


def _has_audio_enclosure(entry: Dict[str, Any]) -> bool:
    for enclosure in entry.get("enclosures") or []:
        if str(enclosure.get("type") or "").lower().startswith("audio"):
            return True
    return False


def _is_itunes_feed(parsed: feedparser.FeedParserDict) -> bool:
    namespaces = parsed.get("namespaces") or {}
    if any(ITUNES_NAMESPACE in str(uri) for uri in namespaces.values()):
        return True
    return any(str(key).startswith("itunes_") for key in (parsed.get("feed") or {}).keys())


def _mentions_doi(entry: Dict[str, Any]) -> bool:
    if "doi.org" in entry_link(entry).lower():
        return True
    if any(contains_doi(value) for value in entry_doi_fields(entry)):
        return True
    return "doi.org/" in entry_body(entry).lower()


def classify_feed(url: str, parsed: feedparser.FeedParserDict) -> SourceType:
    """Most-specific-first rule chain: platform, podcast, academic, blog, unknown."""
    lower_url = str(url or "").lower()
    for domains, source_type in PLATFORM_TYPES:
        if any(domain in lower_url for domain in domains):
            return source_type

    entries = list(parsed.get("entries") or [])
    if _is_itunes_feed(parsed) or any(_has_audio_enclosure(entry) for entry in entries):
        return SourceType.PODCAST

    if any(_mentions_doi(entry) for entry in entries) or any(domain in lower_url for domain in ACADEMIC_DOMAINS):
        return SourceType.ACADEMIC_JOURNAL

    if any(entry.get("content") for entry in entries):
        return SourceType.GENERIC_BLOG

    return SourceType.UNKNOWN


def extract_author(parsed: feedparser.FeedParserDict, sample_size: int = 10) -> Optional[str]:
    """Feed-level author, else the most common entry author (ties go to the first seen)."""
    feed = parsed.get("feed") or {}
    for key in ("author", "publisher", "itunes_author"):
        value = str(feed.get(key) or "").strip()
        if value:
            return value

    authors = [
        str(entry.get("author") or "").strip()
        for entry in list(parsed.get("entries") or [])[: max(1, sample_size)]
    ]
    counts = Counter(author for author in authors if author)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def _tag_terms(tags: Any) -> List[str]:
    terms = []
    for tag in tags or []:
        term = str(tag.get("term") or tag.get("label") or "").strip() if isinstance(tag, dict) else str(tag).strip()
        if term:
            terms.append(term)
    return terms


def extract_categories(parsed: feedparser.FeedParserDict, sample_size: int = 10) -> List[str]:
    feed = parsed.get("feed") or {}
    collected = _tag_terms(feed.get("tags"))
    for entry in list(parsed.get("entries") or [])[: max(1, sample_size)]:
        collected.extend(_tag_terms(entry.get("tags")))

    seen = set()
    categories = []
    for term in collected:
        key = term.lower()
        if key in seen:
            continue
        seen.add(key)
        categories.append(term)
    return categories


def _image_url(feed: Dict[str, Any]) -> Optional[str]:
    image = feed.get("image") or {}
    href = image.get("href") or image.get("url") if isinstance(image, dict) else None
    return str(href).strip() if href else None


def build_validation(url: str, parsed: feedparser.FeedParserDict, settings: Optional[Settings] = None) -> FeedValidationResult:
    settings = settings or get_settings()
    entries = list(parsed.get("entries") or [])
    if not entries:
        return FeedValidationResult(valid=False, url=url, error="Feed has no entries")

    feed = parsed.get("feed") or {}
    published = [value for value in (entry_published(entry) for entry in entries) if value]
    return FeedValidationResult(
        valid=True,
        url=url,
        feed_type=classify_feed(url, parsed),
        title=str(feed.get("title") or "").strip() or None,
        description=strip_html(feed.get("subtitle") or feed.get("description") or "") or None,
        item_count=len(entries),
        last_published=max(published) if published else None,
        metadata=FeedMetadata(
            author=extract_author(parsed, settings.catalog.author_sample_size),
            categories=extract_categories(parsed, settings.catalog.category_sample_size),
            language=str(feed.get("language") or "").strip() or None,
            image_url=_image_url(feed),
        ),
    )


async def inspect_feed(
    url: str,
    *,
    settings: Optional[Settings] = None,
) -> Tuple[FeedValidationResult, Optional[feedparser.FeedParserDict]]:
    """Validate and also hand back the parsed feed for probes and topic tagging."""
    settings = settings or get_settings()
    normalized = normalize_url(url)
    if not normalized:
        return FeedValidationResult(valid=False, url="", error="URL is required"), None

    try:
        parsed = await fetch_feed(normalized, settings=settings)
    except FeedFetchError as exc:
        logger.info("Feed validation failed for %s: %s", normalized, exc.message)
        return FeedValidationResult(valid=False, url=normalized, error=exc.message), None

    result = build_validation(normalized, parsed, settings)
    if result.valid:
        logger.info(
            "Validated %s as %s (%d entries)",
            normalized,
            result.feed_type.value if result.feed_type else "unknown",
            result.item_count or 0,
        )
    return result, parsed


async def validate_feed(url: str, *, settings: Optional[Settings] = None) -> FeedValidationResult:
    """Normalise, fetch and parse a candidate feed; failures come back in the result."""
    result, _ = await inspect_feed(url, settings=settings)
    return result
