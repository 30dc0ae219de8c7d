"""One-off enrichment capability probe recorded on catalog entries."""

from __future__ import annotations

import logging
from typing import Optional

import feedparser

from core import EnrichmentCapabilities, SourceType
from providers.transcripts import TranscriptProvider
from providers.unpaywall import UnpaywallProvider
from utils.text import extract_doi

from .feeds import entry_body, entry_doi_fields, entry_link

logger = logging.getLogger(__name__)

FULL_CONTENT_TYPES = {SourceType.FORUM_COMMUNITY, SourceType.NEWSLETTER, SourceType.GENERIC_BLOG}


async def probe_capabilities(
    source_type: Optional[SourceType],
    parsed: Optional[feedparser.FeedParserDict],
    *,
    transcripts: Optional[TranscriptProvider] = None,
    unpaywall: Optional[UnpaywallProvider] = None,
) -> EnrichmentCapabilities:
    """Check one representative entry so later enrichment runs can skip dead ends."""
    capabilities = EnrichmentCapabilities()
    entries = list((parsed or {}).get("entries") or [])
    if not entries or source_type is None:
        return capabilities

    first = entries[0]
    try:
        if source_type == SourceType.VIDEO_CHANNEL:
            provider = transcripts or TranscriptProvider()
            capabilities.transcript_available = await provider.has_transcript(entry_link(first))
        elif source_type == SourceType.ACADEMIC_JOURNAL:
            doi = None
            for candidate in [entry_link(first), *entry_doi_fields(first), entry_body(first)]:
                doi = extract_doi(candidate)
                if doi:
                    break
            if doi:
                provider = unpaywall or UnpaywallProvider()
                try:
                    capabilities.pdf_available = await provider.has_pdf(doi)
                finally:
                    if unpaywall is None:
                        await provider.close()
        elif source_type in FULL_CONTENT_TYPES:
            capabilities.full_content_available = any(entry.get("content") for entry in entries)
    except Exception as exc:
        logger.warning("Capability probe failed for %s feed: %s", source_type.value, exc)
        return EnrichmentCapabilities()

    logger.debug("Capabilities for %s feed: %s", source_type.value, capabilities.model_dump())
    return capabilities
