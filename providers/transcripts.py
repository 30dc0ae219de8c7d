"""
YouTube transcripts via youtube-transcript-api.
"""
from typing import Optional
from urllib.parse import parse_qs, urlparse
import logging
import re

from youtube_transcript_api import YouTubeTranscriptApi

from config import Settings

from .base import BaseProvider


logger = logging.getLogger(__name__)

_VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")


def extract_video_id(url: str) -> Optional[str]:
    """Video id from watch, short, embed and youtu.be links."""
    text = str(url or "").strip()
    if not text:
        return None
    if _VIDEO_ID_PATTERN.match(text):
        return text

    parsed = urlparse(text)
    host = (parsed.hostname or "").lower()
    if host.endswith("youtu.be"):
        candidate = parsed.path.strip("/").split("/")[0]
        return candidate if _VIDEO_ID_PATTERN.match(candidate) else None
    if "youtube.com" not in host:
        return None

    query_id = (parse_qs(parsed.query).get("v") or [""])[0]
    if _VIDEO_ID_PATTERN.match(query_id):
        return query_id
    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) >= 2 and parts[0] in {"shorts", "embed", "live", "v"}:
        return parts[1] if _VIDEO_ID_PATTERN.match(parts[1]) else None
    return None


class TranscriptProvider(BaseProvider):
    """Fetches the transcript text for a video link."""

    def __init__(self, settings: Optional[Settings] = None, api: Optional[YouTubeTranscriptApi] = None):
        super().__init__(settings)
        self._api = api

    @property
    def name(self) -> str:
        return "YouTube Transcripts"

    def _client(self) -> YouTubeTranscriptApi:
        if self._api is None:
            self._api = YouTubeTranscriptApi()
        return self._api

    def _fetch_blocking(self, video_id: str) -> str:
        fetched = self._client().fetch(video_id)
        return " ".join(
            str(snippet.get("text") or "").strip()
            for snippet in fetched.to_raw_data()
            if str(snippet.get("text") or "").strip()
        )

    async def fetch_transcript(self, video_url: str) -> Optional[str]:
        video_id = extract_video_id(video_url)
        if not video_id:
            return None
        try:
            text = await self._run_blocking(self._fetch_blocking, video_id)
        except Exception as e:
            # library raises a family of CouldNotRetrieveTranscript subclasses plus network errors
            self._log_error(f"Transcript unavailable for {video_id}", e)
            return None
        if not text:
            return None
        logger.info("[YouTube] transcript for %s: %d chars", video_id, len(text))
        return text

    async def has_transcript(self, video_url: str) -> bool:
        return bool(await self.fetch_transcript(video_url))
