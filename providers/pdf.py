"""
PDF text extraction for open-access papers.
"""
from io import BytesIO
from typing import Optional
import logging

import httpx
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from config import Settings
from utils.text import safe_truncate

from .base import BaseProvider


logger = logging.getLogger(__name__)


async def _http_get_bytes(url: str, *, headers: dict, timeout: float) -> bytes:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        return response.content


def extract_pdf_text(pdf_bytes: bytes, *, max_pages: int, max_chars: int = 200_000) -> str:
    if not pdf_bytes:
        return ""
    reader = PdfReader(BytesIO(pdf_bytes))
    pages = []
    for page in reader.pages[: max(1, int(max_pages))]:
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text)
    return safe_truncate("\n\n".join(pages), max_len=max_chars)


class PdfTextExtractor(BaseProvider):
    """Downloads a PDF and extracts its text with pypdf."""

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__(settings)
        self.max_pages = self.settings.enrichment.max_pdf_pages

    @property
    def name(self) -> str:
        return "PDF"

    async def extract_from_url(self, pdf_url: str) -> Optional[str]:
        if not pdf_url:
            return None
        try:
            pdf_bytes = await _http_get_bytes(
                pdf_url,
                headers={"User-Agent": self.settings.provider.user_agent, "Accept": "application/pdf"},
                timeout=float(self.settings.provider.request_timeout),
            )
        except httpx.HTTPError as e:
            self._log_error(f"Download failed for {pdf_url}", e)
            return None

        try:
            text = await self._run_blocking(extract_pdf_text, pdf_bytes, max_pages=self.max_pages)
        except (PyPdfError, ValueError, OSError) as e:
            self._log_error(f"Could not parse {pdf_url}", e)
            return None
        return text or None
