"""OPML import: outline extraction and batched job enqueueing."""

from __future__ import annotations

import asyncio
import html as html_lib
import logging
import re
from typing import Callable, List, Optional, Tuple

from config import Settings, get_settings
from orchestrator.scheduler import IMPORT_JOB

logger = logging.getLogger(__name__)

_OUTLINE_PATTERN = re.compile(r"<outline\b([^>]*)>", re.IGNORECASE)
_ATTR_PATTERN = re.compile(r"([A-Za-z_:][-A-Za-z0-9_:.]*)\s*=\s*(\"[^\"]*\"|'[^']*')")


def _attributes(raw: str) -> dict:
    attrs = {}
    for key, value in _ATTR_PATTERN.findall(raw or ""):
        attrs[key.lower()] = html_lib.unescape(value[1:-1]).strip()
    return attrs


def extract_opml_outlines(text: str) -> List[Tuple[str, str]]:
    """``(url, name)`` for every outline carrying an ``xmlUrl``; duplicates dropped."""
    outlines: List[Tuple[str, str]] = []
    seen = set()
    for match in _OUTLINE_PATTERN.finditer(str(text or "")):
        attrs = _attributes(match.group(1))
        url = attrs.get("xmlurl", "")
        if not url or url in seen:
            continue
        seen.add(url)
        outlines.append((url, attrs.get("text") or attrs.get("title") or url))
    return outlines


async def import_opml(
    text: str,
    enqueue: Callable[..., str],
    *,
    settings: Optional[Settings] = None,
    sleep: Callable = asyncio.sleep,
) -> List[str]:
    """Enqueue one ``feed.import`` job per outline, in paced batches."""
    settings = settings or get_settings()
    outlines = extract_opml_outlines(text)
    batch_size = max(1, settings.enrichment.opml_batch_size)
    job_ids: List[str] = []

    for start in range(0, len(outlines), batch_size):
        if start:
            await sleep(settings.enrichment.opml_batch_pause)
        for url, name in outlines[start:start + batch_size]:
            job_ids.append(enqueue(IMPORT_JOB, {"url": url, "name": name}))

    logger.info("OPML import queued %d feed(s)", len(job_ids))
    return job_ids
