"""Text, URL and DOI helpers shared by sources, providers and the pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import hashlib
import html as html_lib
import re
from typing import Any, Optional

from bs4 import BeautifulSoup


_DOI_URL_PATTERN = re.compile(r"doi\.org/(10\.\d{4,}(?:\.\d+)*/[^\s<>\"]+)", re.IGNORECASE)
_DOI_PREFIX_PATTERN = re.compile(r"doi:\s*(10\.\d{4,}(?:\.\d+)*/[^\s<>\"]+)", re.IGNORECASE)
_DOI_PATTERN = re.compile(r"\b(10\.\d{4,}(?:\.\d+)*/[^\s<>\"]+)", re.IGNORECASE)


def _clean_doi(doi: str) -> str:
    return re.sub(r"[.,;)\]]+$", "", doi).strip()


def extract_doi(text: Optional[str]) -> Optional[str]:
    """Extract a DOI from a doi.org URL, a ``doi:`` prefix or bare ``10.xxxx/...`` text."""
    value = str(text or "")
    if not value:
        return None
    for pattern in (_DOI_URL_PATTERN, _DOI_PREFIX_PATTERN, _DOI_PATTERN):
        match = pattern.search(value)
        if match:
            return _clean_doi(match.group(1))
    return None


def contains_doi(text: Optional[str]) -> bool:
    return extract_doi(text) is not None


def normalize_url(url: str) -> str:
    """Trim and default the scheme to https."""
    value = str(url or "").strip()
    if not value:
        return value
    if not value.lower().startswith(("http://", "https://")):
        value = "https://" + value.lstrip("/")
    return value


def canonical_url(url: str) -> str:
    value = str(url or "").lower().strip()
    value = value.split("?")[0].split("#")[0]
    value = re.sub(r"^https?://", "", value)
    value = re.sub(r"^www\.", "", value)
    return value.rstrip("/")


def dedupe_hash(url: str, title: str) -> str:
    """SHA-256 over DOI-or-canonical-URL and normalised title."""
    doi = extract_doi(url) or extract_doi(title)
    canonical_id = doi.lower() if doi else canonical_url(url)
    normalized_title = re.sub(r"\s+", " ", str(title or "").lower().strip())
    return hashlib.sha256(f"{canonical_id}|{normalized_title}".encode("utf-8")).hexdigest()


def strip_html(value: str) -> str:
    text = str(value or "")
    if "<" not in text:
        return re.sub(r"\s+", " ", html_lib.unescape(text)).strip()
    soup = BeautifulSoup(text, "lxml")
    for node in soup(["script", "style"]):
        node.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()


def safe_truncate(text: str, max_len: int = 9000) -> str:
    value = str(text or "")
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    value = re.sub(r"[ \t\f\v]+", " ", value)
    value = re.sub(r"\n{3,}", "\n\n", value).strip()
    if len(value) <= max_len:
        return value
    return value[: max_len - 3].rstrip() + "..."


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 or RFC-822 timestamps into aware UTC datetimes."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value or "").strip()
    if not text:
        return None

    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError:
        pass

    try:
        dt2 = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if dt2.tzinfo is None:
        dt2 = dt2.replace(tzinfo=timezone.utc)
    return dt2.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
