from __future__ import annotations

import feedparser
import httpx
import pytest
from tenacity import wait_none

from core import SourceType
from sources import feeds
from utils.exceptions import FeedFetchError

BLOG_RSS = """<?xml version="1.0"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Metabolic Notes</title>
    <description>&lt;p&gt;Essays on &lt;b&gt;metabolism&lt;/b&gt;&lt;/p&gt;</description>
    <language>en-us</language>
    <category>Nutrition</category>
    <item>
      <title>Fasting windows explained</title>
      <link>https://metabolic.example.com/fasting</link>
      <dc:creator>Ana</dc:creator>
      <category>nutrition</category>
      <category>Fasting</category>
      <pubDate>Mon, 02 Feb 2026 10:00:00 GMT</pubDate>
      <content:encoded><![CDATA[<p>Long form body about fasting.</p>]]></content:encoded>
    </item>
    <item>
      <title>Protein timing</title>
      <link>https://metabolic.example.com/protein</link>
      <dc:creator>Ana</dc:creator>
      <pubDate>Tue, 10 Feb 2026 10:00:00 GMT</pubDate>
      <content:encoded><![CDATA[<p>Another essay.</p>]]></content:encoded>
    </item>
    <item>
      <title>Guest post</title>
      <link>https://metabolic.example.com/guest</link>
      <dc:creator>Bo</dc:creator>
      <pubDate>Wed, 04 Feb 2026 10:00:00 GMT</pubDate>
      <content:encoded><![CDATA[<p>Guest essay.</p>]]></content:encoded>
    </item>
  </channel>
</rss>"""

JOURNAL_RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel>
  <title>Journal of Trials</title>
  <item>
    <title>A randomized trial</title>
    <link>https://doi.org/10.1234/jt.2026.5</link>
    <description>Abstract text</description>
  </item>
</channel></rss>"""

PODCAST_RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel>
  <title>Sleep Talk</title>
  <item>
    <title>Episode 1</title>
    <link>https://sleeptalk.example.com/1</link>
    <enclosure url="https://cdn.example.com/ep1.mp3" type="audio/mpeg" length="1000"/>
  </item>
</channel></rss>"""

EMPTY_RSS = """<?xml version="1.0"?><rss version="2.0"><channel><title>Quiet</title></channel></rss>"""


def _serve(monkeypatch, pages, calls=None):
    async def _fake_get_text(url: str, *, headers=None, timeout: float = 30.0) -> str:
        if calls is not None:
            calls.append(url)
        page = pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            raise AssertionError(f"unexpected url: {url}")
        return page

    monkeypatch.setattr(feeds, "_http_get_text", _fake_get_text)


def _status_error(url: str, status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=httpx.Response(status, request=request))


def test_video_host_wins_over_entry_content() -> None:
    parsed = feedparser.parse(JOURNAL_RSS)
    url = "https://www.youtube.com/feeds/videos.xml?channel_id=UC123"
    assert feeds.classify_feed(url, parsed) == SourceType.VIDEO_CHANNEL


@pytest.mark.parametrize(
    "url, body, expected",
    [
        ("https://www.reddit.com/r/nutrition/.rss", BLOG_RSS, SourceType.FORUM_COMMUNITY),
        ("https://gut.substack.com/feed", BLOG_RSS, SourceType.NEWSLETTER),
        ("https://sleeptalk.example.com/rss", PODCAST_RSS, SourceType.PODCAST),
        ("https://trials.example.com/rss", JOURNAL_RSS, SourceType.ACADEMIC_JOURNAL),
        ("https://www.nature.com/nature.rss", EMPTY_RSS, SourceType.ACADEMIC_JOURNAL),
        ("https://metabolic.example.com/feed", BLOG_RSS, SourceType.GENERIC_BLOG),
        ("https://plain.example.com/feed", EMPTY_RSS, SourceType.UNKNOWN),
    ],
)
def test_classification_rule_chain(url: str, body: str, expected: SourceType) -> None:
    assert feeds.classify_feed(url, feedparser.parse(body)) == expected


@pytest.mark.asyncio
async def test_validate_feed_reports_metadata(monkeypatch) -> None:
    calls = []
    _serve(monkeypatch, {"https://metabolic.example.com/feed": BLOG_RSS}, calls)

    result = await feeds.validate_feed("metabolic.example.com/feed")

    assert calls == ["https://metabolic.example.com/feed"]
    assert result.valid is True
    assert result.url == "https://metabolic.example.com/feed"
    assert result.feed_type == SourceType.GENERIC_BLOG
    assert result.title == "Metabolic Notes"
    assert result.description == "Essays on metabolism"
    assert result.item_count == 3
    assert result.last_published.isoformat().startswith("2026-02-10")
    assert result.metadata.language == "en-us"
    assert result.metadata.author == "Ana"
    assert result.metadata.categories == ["Nutrition", "Fasting"]


@pytest.mark.asyncio
async def test_validate_feed_without_entries_is_invalid(monkeypatch) -> None:
    _serve(monkeypatch, {"https://quiet.example.com/feed": EMPTY_RSS})

    result = await feeds.validate_feed("https://quiet.example.com/feed")

    assert result.valid is False
    assert result.error == "Feed has no entries"


@pytest.mark.asyncio
async def test_validate_feed_reports_http_errors(monkeypatch) -> None:
    url = "https://gone.example.com/feed"
    _serve(monkeypatch, {url: _status_error(url, 404)})

    result = await feeds.validate_feed(url)

    assert result.valid is False
    assert result.error == "HTTP 404 fetching feed"


@pytest.mark.asyncio
async def test_permanent_status_is_not_retried(monkeypatch) -> None:
    url = "https://gone.example.com/feed"
    calls = []
    _serve(monkeypatch, {url: _status_error(url, 410)}, calls)

    with pytest.raises(FeedFetchError) as excinfo:
        await feeds.fetch_feed_with_retry(url, wait=wait_none())

    assert excinfo.value.permanent is True
    assert excinfo.value.status_code == 410
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_transient_errors_are_retried(monkeypatch) -> None:
    url = "https://flaky.example.com/feed"
    responses = [_status_error(url, 503), httpx.ConnectTimeout("slow"), BLOG_RSS]

    async def _flaky(requested: str, *, headers=None, timeout: float = 30.0) -> str:
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(feeds, "_http_get_text", _flaky)

    parsed = await feeds.fetch_feed_with_retry(url, wait=wait_none())

    assert len(parsed.entries) == 3
    assert responses == []


def test_categorize_error() -> None:
    url = "https://example.com/feed"
    assert feeds.categorize_error(_status_error(url, 403)) is True
    assert feeds.categorize_error(_status_error(url, 500)) is False
    assert feeds.categorize_error(httpx.ReadTimeout("slow")) is False


def _rss_with_items(items) -> str:
    body = "".join(
        "<item><title>Post {n}</title><link>https://many.example.com/{n}</link>{author}{tags}</item>".format(
            n=n,
            author=f"<dc:creator>{author}</dc:creator>" if author else "",
            tags="".join(f"<category>{tag}</category>" for tag in tags),
        )
        for n, (author, tags) in enumerate(items)
    )
    return (
        '<?xml version="1.0"?><rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">'
        f"<channel><title>Many</title>{body}</channel></rss>"
    )


def test_author_tie_goes_to_first_seen() -> None:
    parsed = feedparser.parse(_rss_with_items([("Bo", []), ("Ana", []), ("Ana", []), ("Bo", []), ("", [])]))

    assert feeds.extract_author(parsed) == "Bo"


def test_author_vote_only_counts_sampled_entries() -> None:
    items = [("Ana", [])] * 2 + [("Bo", [])] + [("Cy", [])] * 3
    parsed = feedparser.parse(_rss_with_items(items))

    assert feeds.extract_author(parsed, sample_size=3) == "Ana"
    assert feeds.extract_author(parsed) == "Cy"


def test_categories_come_from_first_ten_entries() -> None:
    items = [(None, [f"Topic {n}", "shared"]) for n in range(12)]
    parsed = feedparser.parse(_rss_with_items(items))

    categories = feeds.extract_categories(parsed)

    assert categories == ["Topic 0", "shared"] + [f"Topic {n}" for n in range(1, 10)]
    assert "Topic 10" not in categories


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ValueError("invalid literal for int()"), httpx.InvalidURL("bad host")])
async def test_malformed_url_errors_become_invalid_results(monkeypatch, error) -> None:
    url = "https://broken.example.com/feed"
    _serve(monkeypatch, {url: error})

    result = await feeds.validate_feed(url)

    assert result.valid is False
    assert result.error.startswith("Invalid feed URL")


@pytest.mark.asyncio
async def test_unparseable_url_is_rejected_without_raising() -> None:
    result = await feeds.validate_feed("https://[::1/feed")

    assert result.valid is False
    assert result.error


@pytest.mark.asyncio
async def test_malformed_url_is_permanent(monkeypatch) -> None:
    url = "https://broken.example.com/feed"
    calls = []
    _serve(monkeypatch, {url: ValueError("bad port")}, calls)

    with pytest.raises(FeedFetchError) as excinfo:
        await feeds.fetch_feed_with_retry(url, wait=wait_none())

    assert excinfo.value.permanent is True
    assert len(calls) == 1
