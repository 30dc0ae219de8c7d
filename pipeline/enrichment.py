"""
Content Enrichment
Full-content acquisition, metric collection, bias detection and scoring per item.

``ContentEnricher.enrich`` never raises: each provider call is guarded on its
own, and a failure only narrows the metrics bundle.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from config import Settings, get_settings
from core import EnrichedItem, FeedItem, QualityMetrics, SourceType
from providers import (
    CrossrefProvider,
    PdfTextExtractor,
    SemanticScholarProvider,
    TranscriptProvider,
    UnpaywallProvider,
)
from utils.text import extract_doi, safe_truncate

from .analyzer import ContentQualityAnalyzer, baseline_assessment
from .bias import FunderPredicate, detect_bias, keyword_funder_predicate
from .scoring import score


logger = logging.getLogger(__name__)

T = TypeVar("T")

HIGH_TIER_JOURNALS = (
    "nature",
    "science",
    "cell",
    "lancet",
    "new england journal",
    "nejm",
    "jama",
    "bmj",
)
MID_TIER_JOURNALS = (
    "plos",
    "frontiers",
    "bmc",
    "elife",
    "scientific reports",
    "nutrients",
    "journal of",
)
LOW_TIER_JOURNALS = (
    "preprint",
    "rxiv",
    "cureus",
    "hindawi",
)

FULL_TEXT_LIMIT = 200_000


def journal_tier(journal_name: Optional[str]) -> Optional[str]:
    """Coarse credibility tier from the journal name; low-tier markers win."""
    name = str(journal_name or "").lower().strip()
    if not name:
        return None
    if any(marker in name for marker in LOW_TIER_JOURNALS):
        return "low"
    if any(marker in name for marker in HIGH_TIER_JOURNALS):
        return "high"
    if any(marker in name for marker in MID_TIER_JOURNALS):
        return "mid"
    return "low"


class ContentEnricher:
    """
    Enriches feed items.

    Providers are injected for tests; defaults are built from settings. The
    analyzer runs for every source type; journal metrics only for items with
    a DOI.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        crossref: Optional[CrossrefProvider] = None,
        semantic_scholar: Optional[SemanticScholarProvider] = None,
        unpaywall: Optional[UnpaywallProvider] = None,
        transcripts: Optional[TranscriptProvider] = None,
        pdf_extractor: Optional[PdfTextExtractor] = None,
        analyzer: Optional[ContentQualityAnalyzer] = None,
        funder_predicate: FunderPredicate = keyword_funder_predicate,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.crossref = crossref or CrossrefProvider(self.settings)
        self.semantic_scholar = semantic_scholar or SemanticScholarProvider(self.settings)
        self.unpaywall = unpaywall or UnpaywallProvider(self.settings)
        self.transcripts = transcripts or TranscriptProvider(self.settings)
        self.pdf_extractor = pdf_extractor or PdfTextExtractor(self.settings)
        self.analyzer = analyzer or ContentQualityAnalyzer(settings=self.settings)
        self.funder_predicate = funder_predicate
        self._sleep = sleep

    async def _guarded(self, label: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        try:
            return await call()
        except Exception as e:
            logger.warning(f"[Enrich] {label} failed: {type(e).__name__}: {e}")
            return None

    # ------------------------------------------------------------------
    # content acquisition
    # ------------------------------------------------------------------

    async def _journal_full_text(self, enriched: EnrichedItem) -> None:
        access = await self._guarded("Unpaywall", lambda: self.unpaywall.find_open_access(enriched.doi))
        if not access or not access.is_open_access or not access.pdf_url:
            return
        enriched.pdf_url = access.pdf_url
        text = await self._guarded("PDF", lambda: self.pdf_extractor.extract_from_url(access.pdf_url))
        if text:
            enriched.full_text = safe_truncate(text, FULL_TEXT_LIMIT)
            logger.info(f"[Enrich] Extracted {len(text)} characters from PDF for {enriched.doi}")

    async def _video_full_text(self, enriched: EnrichedItem) -> None:
        transcript = await self._guarded("Transcript", lambda: self.transcripts.fetch_transcript(enriched.url))
        if transcript:
            enriched.full_text = safe_truncate(transcript, FULL_TEXT_LIMIT)

    # ------------------------------------------------------------------
    # journal metrics
    # ------------------------------------------------------------------

    async def _journal_metrics(self, enriched: EnrichedItem, metrics: QualityMetrics) -> None:
        doi = enriched.doi

        work = await self._guarded("Crossref", lambda: self.crossref.get_work(doi))
        if work:
            metrics.citation_count = work.citation_count
            metrics.funding_sources = list(work.funding_sources)
            suspicious, flags = detect_bias(work.funding_sources, self.funder_predicate)
            metrics.suspicious_funders = suspicious
            metrics.bias_flags = flags
            metrics.conflict_of_interest = bool(suspicious)
            if work.journal_name and not enriched.journal_name:
                enriched.journal_name = work.journal_name

        paper = await self._guarded("Semantic Scholar paper", lambda: self.semantic_scholar.get_paper_metrics(doi))
        if paper:
            metrics.influential_citation_count = paper.influential_citation_count
            metrics.citation_velocity = paper.citation_velocity
            if metrics.citation_count is None:
                metrics.citation_count = paper.citation_count
            if paper.author_ids:
                author_id = paper.author_ids[0]
                author = await self._guarded(
                    "Semantic Scholar author",
                    lambda: self.semantic_scholar.get_author_metrics(author_id),
                )
                if author:
                    metrics.author_h_index = author.h_index
                    metrics.author_citation_count = author.citation_count

        metrics.journal_tier = journal_tier(enriched.journal_name)

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def _finalize(self, enriched: EnrichedItem) -> EnrichedItem:
        breakdown = score(enriched, enriched.metrics)
        enriched.score_breakdown = breakdown
        enriched.score = round(breakdown.total)
        enriched.dedupe_hash = enriched.resolved_hash()
        return enriched

    async def _enrich(self, item: FeedItem) -> EnrichedItem:
        enriched = EnrichedItem(**item.model_dump())
        if not enriched.doi:
            enriched.doi = extract_doi(enriched.url)
        metrics = QualityMetrics(
            community_rating=item.community_rating,
            community_vote_count=item.community_votes,
            engagement=item.engagement.model_copy(),
        )

        source_type = enriched.source_type
        if source_type == SourceType.ACADEMIC_JOURNAL:
            if enriched.doi:
                await self._journal_full_text(enriched)
                await self._journal_metrics(enriched, metrics)
            else:
                logger.info(f"[Enrich] No DOI for journal article: {enriched.title}")
                metrics.journal_tier = journal_tier(enriched.journal_name)
        elif source_type == SourceType.VIDEO_CHANNEL:
            await self._video_full_text(enriched)
        elif source_type in (SourceType.FORUM_COMMUNITY, SourceType.NEWSLETTER):
            enriched.full_text = enriched.excerpt or None

        content = enriched.full_text or enriched.excerpt or enriched.title
        metrics.content_quality = await self._guarded(
            "Content analysis",
            lambda: self.analyzer.analyze(source_type, content),
        )
        enriched.metrics = metrics
        return self._finalize(enriched)

    async def enrich(self, item: FeedItem) -> EnrichedItem:
        try:
            enriched = await self._enrich(item)
        except Exception as e:
            logger.error(f"[Enrich] Unexpected failure for {item.url or item.title}: {type(e).__name__}: {e}")
            enriched = EnrichedItem(**item.model_dump())
            enriched.metrics = QualityMetrics(
                community_rating=item.community_rating,
                community_vote_count=item.community_votes,
                content_quality=baseline_assessment(item.source_type, item.excerpt or item.title),
                engagement=item.engagement.model_copy(),
            )
            enriched = self._finalize(enriched)
        logger.info(
            f"[Enrich] {enriched.title[:60]!r} scored {enriched.score}/100 "
            f"(citations: {enriched.metrics.citation_count or 0}, h-index: {enriched.metrics.author_h_index or 0})"
        )
        return enriched

    async def enrich_batch(self, items: List[FeedItem]) -> List[EnrichedItem]:
        """Enrich in concurrent batches, pausing between batches."""
        batch_size = max(1, self.settings.enrichment.batch_size)
        results: List[EnrichedItem] = []
        for start in range(0, len(items), batch_size):
            if start:
                await self._sleep(self.settings.enrichment.batch_pause)
            batch = items[start:start + batch_size]
            results.extend(await asyncio.gather(*(self.enrich(item) for item in batch)))
        return results

    async def aclose(self) -> None:
        for provider in (self.crossref, self.semantic_scholar, self.unpaywall, self.transcripts, self.pdf_extractor):
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
