"""
Semantic Scholar
Scholarly-graph citation signals and author credibility.
API docs: https://api.semanticscholar.org/
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import quote
import asyncio
import logging

import aiohttp
from pydantic import BaseModel, Field

from config import Settings

from .base import RateLimitedProvider


logger = logging.getLogger(__name__)


class PaperMetrics(BaseModel):
    citation_count: int = 0
    influential_citation_count: int = 0
    citation_velocity: float = 0.0
    author_ids: List[str] = Field(default_factory=list)


class AuthorMetrics(BaseModel):
    h_index: int = 0
    citation_count: int = 0


class SemanticScholarProvider(RateLimitedProvider):
    """
    Semantic Scholar graph lookups.

    - paper metrics by ``DOI:<doi>``
    - author h-index and lifetime citations by author id
    - process-wide throttle (default 0.8 req/s, never above 1 req/s)
    """

    BASE_URL = "https://api.semanticscholar.org/graph/v1"

    PAPER_FIELDS = [
        "citationCount",
        "influentialCitationCount",
        "year",
        "publicationDate",
        "authors",
    ]

    AUTHOR_FIELDS = ["hIndex", "citationCount"]

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(settings)
        requested_rps = float(self.settings.semantic_scholar.requests_per_second or 0.8)
        # <= 1 req/s whether or not a key is configured
        self._rate_limit = max(0.1, min(requested_rps, 1.0))
        self._api_key = self.settings.semantic_scholar.api_key

    @property
    def name(self) -> str:
        return "Semantic Scholar"

    def _get_headers(self) -> Dict[str, str]:
        headers = super()._get_headers()
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    async def get_paper_metrics(self, doi: str) -> Optional[PaperMetrics]:
        if not doi:
            return None
        await self._wait_for_rate_limit()
        try:
            data = await self._get_json(
                f"{self.BASE_URL}/paper/DOI:{quote(doi, safe='/')}",
                params={"fields": ",".join(self.PAPER_FIELDS)},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._log_error(f"Paper lookup failed for {doi}", e)
            return None
        if not data:
            return None

        citations = int(data.get("citationCount") or 0)
        metrics = PaperMetrics(
            citation_count=citations,
            influential_citation_count=int(data.get("influentialCitationCount") or 0),
            citation_velocity=_citation_velocity(citations, data.get("year")),
            author_ids=[
                str(author.get("authorId"))
                for author in data.get("authors") or []
                if author.get("authorId")
            ],
        )
        logger.info(
            "[Semantic Scholar] %s: %d citations (%d influential)",
            doi,
            metrics.citation_count,
            metrics.influential_citation_count,
        )
        return metrics

    async def get_author_metrics(self, author_id: str) -> Optional[AuthorMetrics]:
        if not author_id:
            return None
        await self._wait_for_rate_limit()
        try:
            data = await self._get_json(
                f"{self.BASE_URL}/author/{quote(str(author_id))}",
                params={"fields": ",".join(self.AUTHOR_FIELDS)},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._log_error(f"Author lookup failed for {author_id}", e)
            return None
        if not data:
            return None
        return AuthorMetrics(
            h_index=int(data.get("hIndex") or 0),
            citation_count=int(data.get("citationCount") or 0),
        )


def _citation_velocity(citations: int, year, *, today: Optional[datetime] = None) -> float:
    """Average citations per year since publication."""
    try:
        published_year = int(year)
    except (TypeError, ValueError):
        return 0.0
    current_year = (today or datetime.now(timezone.utc)).year
    years = max(1, current_year - published_year + 1)
    return round(citations / years, 2)
