"""
Unpaywall
Open-access PDF resolution for a DOI.
API docs: https://unpaywall.org/products/api
"""
from typing import Optional
from urllib.parse import quote
import asyncio
import logging

import aiohttp
from pydantic import BaseModel

from .base import BaseProvider


logger = logging.getLogger(__name__)


class OpenAccessInfo(BaseModel):
    is_open_access: bool = False
    pdf_url: Optional[str] = None
    landing_url: Optional[str] = None


class UnpaywallProvider(BaseProvider):
    BASE_URL = "https://api.unpaywall.org/v2"

    @property
    def name(self) -> str:
        return "Unpaywall"

    async def find_open_access(self, doi: str) -> Optional[OpenAccessInfo]:
        if not doi:
            return None
        try:
            data = await self._get_json(
                f"{self.BASE_URL}/{quote(doi, safe='/')}",
                params={"email": self.settings.provider.contact_email},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._log_error(f"Lookup failed for {doi}", e)
            return None
        if not data:
            return None

        best = data.get("best_oa_location") or {}
        info = OpenAccessInfo(
            is_open_access=bool(data.get("is_oa")),
            pdf_url=best.get("url_for_pdf") or None,
            landing_url=best.get("url") or None,
        )
        logger.debug("[Unpaywall] %s open_access=%s pdf=%s", doi, info.is_open_access, bool(info.pdf_url))
        return info

    async def has_pdf(self, doi: str) -> bool:
        info = await self.find_open_access(doi)
        return bool(info and info.is_open_access and info.pdf_url)
