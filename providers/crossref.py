"""
Crossref
Bibliographic metadata: citation count and funders for a DOI.
API docs: https://api.crossref.org/swagger-ui/index.html
"""
from typing import List, Optional
from urllib.parse import quote
import asyncio
import logging

import aiohttp
from pydantic import BaseModel, Field

from .base import BaseProvider


logger = logging.getLogger(__name__)


class CrossrefWork(BaseModel):
    citation_count: int = 0
    funding_sources: List[str] = Field(default_factory=list)
    journal_name: Optional[str] = None


class CrossrefProvider(BaseProvider):
    """Crossref works lookup using the polite pool (mailto in the User-Agent)."""

    BASE_URL = "https://api.crossref.org/works"

    @property
    def name(self) -> str:
        return "Crossref"

    def _get_headers(self):
        headers = super()._get_headers()
        headers["User-Agent"] = (
            f"{self.settings.provider.user_agent} (mailto:{self.settings.provider.contact_email})"
        )
        return headers

    async def get_work(self, doi: str) -> Optional[CrossrefWork]:
        if not doi:
            return None
        try:
            data = await self._get_json(f"{self.BASE_URL}/{quote(doi, safe='/')}")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._log_error(f"Lookup failed for {doi}", e)
            return None
        if not data:
            return None

        message = data.get("message") or {}
        funders = [
            str(funder.get("name") or "").strip()
            for funder in message.get("funder") or []
            if str(funder.get("name") or "").strip()
        ]
        container = message.get("container-title") or []
        work = CrossrefWork(
            citation_count=int(message.get("is-referenced-by-count") or 0),
            funding_sources=funders,
            journal_name=str(container[0]).strip() if container else None,
        )
        logger.info(
            "[Crossref] %s has %d citations, %d funding sources",
            doi,
            work.citation_count,
            len(work.funding_sources),
        )
        return work
