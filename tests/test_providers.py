from __future__ import annotations

from datetime import datetime, timezone

import aiohttp
import pytest

from providers import (
    CrossrefProvider,
    SemanticScholarProvider,
    TranscriptProvider,
    UnpaywallProvider,
    extract_video_id,
)
from providers.semantic_scholar import _citation_velocity
from utils.text import canonical_url, dedupe_hash, extract_doi


def _stub_json(monkeypatch, provider, responses):
    calls = []

    async def _get_json(url, params=None):
        calls.append((url, params))
        reply = responses[len(calls) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def _no_wait():
        return None

    monkeypatch.setattr(provider, "_get_json", _get_json)
    if hasattr(provider, "_wait_for_rate_limit"):
        monkeypatch.setattr(provider, "_wait_for_rate_limit", _no_wait)
    return calls


@pytest.mark.asyncio
async def test_crossref_work_parsing(settings, monkeypatch) -> None:
    provider = CrossrefProvider(settings)
    calls = _stub_json(
        monkeypatch,
        provider,
        [
            {
                "message": {
                    "is-referenced-by-count": 42,
                    "funder": [{"name": "Dairy Council"}, {"name": " "}, {"name": "NIH"}],
                    "container-title": ["Nutrients"],
                }
            }
        ],
    )

    work = await provider.get_work("10.3390/nu1234")

    assert calls[0][0] == "https://api.crossref.org/works/10.3390/nu1234"
    assert work.citation_count == 42
    assert work.funding_sources == ["Dairy Council", "NIH"]
    assert work.journal_name == "Nutrients"
    assert "mailto:" in provider._get_headers()["User-Agent"]


@pytest.mark.asyncio
async def test_crossref_errors_become_none(settings, monkeypatch) -> None:
    provider = CrossrefProvider(settings)
    _stub_json(monkeypatch, provider, [aiohttp.ClientError("reset"), None])

    assert await provider.get_work("10.1/x") is None
    assert await provider.get_work("10.1/y") is None
    assert await provider.get_work("") is None


@pytest.mark.asyncio
async def test_semantic_scholar_paper_and_author(settings, monkeypatch) -> None:
    provider = SemanticScholarProvider(settings)
    _stub_json(
        monkeypatch,
        provider,
        [
            {
                "citationCount": 30,
                "influentialCitationCount": 4,
                "year": None,
                "authors": [{"authorId": "123"}, {"authorId": None}, {"authorId": "456"}],
            },
            {"hIndex": 27, "citationCount": 5400},
        ],
    )

    paper = await provider.get_paper_metrics("10.1000/abc")
    author = await provider.get_author_metrics("123")

    assert paper.citation_count == 30
    assert paper.influential_citation_count == 4
    assert paper.citation_velocity == 0.0
    assert paper.author_ids == ["123", "456"]
    assert author.h_index == 27
    assert author.citation_count == 5400


def test_semantic_scholar_rate_is_capped(settings) -> None:
    settings.semantic_scholar.requests_per_second = 5.0
    assert SemanticScholarProvider(settings)._rate_limit == 1.0


def test_citation_velocity() -> None:
    today = datetime(2026, 6, 1, tzinfo=timezone.utc)
    assert _citation_velocity(100, 2022, today=today) == 20.0
    assert _citation_velocity(7, 2026, today=today) == 7.0
    assert _citation_velocity(7, "unknown", today=today) == 0.0


@pytest.mark.asyncio
async def test_unpaywall_best_location(settings, monkeypatch) -> None:
    provider = UnpaywallProvider(settings)
    calls = _stub_json(
        monkeypatch,
        provider,
        [{"is_oa": True, "best_oa_location": {"url_for_pdf": "https://oa.example.org/a.pdf", "url": "https://oa.example.org/a"}}],
    )

    info = await provider.find_open_access("10.1000/abc")

    assert info.is_open_access is True
    assert info.pdf_url == "https://oa.example.org/a.pdf"
    assert calls[0][1] == {"email": settings.provider.contact_email}


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/shorts/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://www.youtube.com/embed/dQw4w9WgXcQ?start=3", "dQw4w9WgXcQ"),
        ("dQw4w9WgXcQ", "dQw4w9WgXcQ"),
        ("https://vimeo.com/12345", None),
        ("https://www.youtube.com/@hubermanlab", None),
        ("", None),
    ],
)
def test_extract_video_id(url, expected) -> None:
    assert extract_video_id(url) == expected


class _Fetched:
    def __init__(self, snippets):
        self.snippets = snippets

    def to_raw_data(self):
        return self.snippets


class _Api:
    def __init__(self, snippets=None, error=None):
        self.snippets = snippets or []
        self.error = error

    def fetch(self, video_id):
        if self.error:
            raise self.error
        return _Fetched(self.snippets)


@pytest.mark.asyncio
async def test_transcript_joins_snippets(settings) -> None:
    provider = TranscriptProvider(settings, api=_Api([{"text": "hello"}, {"text": " "}, {"text": "world"}]))

    assert await provider.fetch_transcript("https://youtu.be/dQw4w9WgXcQ") == "hello world"
    assert await provider.fetch_transcript("https://example.com/not-a-video") is None


@pytest.mark.asyncio
async def test_transcript_failures_are_none(settings) -> None:
    provider = TranscriptProvider(settings, api=_Api(error=RuntimeError("transcripts disabled")))

    assert await provider.fetch_transcript("https://youtu.be/dQw4w9WgXcQ") is None
    assert await provider.has_transcript("https://youtu.be/dQw4w9WgXcQ") is False


def test_doi_extraction_and_dedupe_hash() -> None:
    assert extract_doi("https://doi.org/10.1038/s41586-020-2649-2.") == "10.1038/s41586-020-2649-2"
    assert extract_doi("see doi: 10.1000/xyz123") == "10.1000/xyz123"
    assert extract_doi("no identifier here") is None
    assert canonical_url("https://www.Example.com/post/?utm=1") == "example.com/post"

    by_url = dedupe_hash("https://www.example.com/post", "  A   Title ")
    assert by_url == dedupe_hash("http://example.com/post/", "a title")
    assert dedupe_hash("https://doi.org/10.1000/xyz", "T") == dedupe_hash("https://publisher.com/10.1000/xyz", "t")
