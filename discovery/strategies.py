"""Candidate-generating strategies for feed discovery.

Each strategy proposes ``DiscoveryCandidate``s with a fixed confidence. The
engine merges them, so strategies can be added or reweighted independently.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import re
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse

from core import DiscoveryCandidate, FeedCatalogEntry, SourceType


class DiscoveryStrategy(ABC):
    """Proposes replacement URLs for a degraded catalog entry."""

    name: str = "strategy"
    source_types: Optional[Set[SourceType]] = None  # None = every type

    def applies_to(self, source_type: SourceType) -> bool:
        return self.source_types is None or source_type in self.source_types

    @abstractmethod
    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        pass


def _names_overlap(a: str, b: str) -> bool:
    left, right = a.lower().strip(), b.lower().strip()
    if not left or not right:
        return False
    return left in right or right in left


class KnownMappingStrategy(DiscoveryStrategy):
    """Curated name -> feed URL table, matched by substring containment either way.

    When several names match, longer names are proposed first so the most
    specific mapping wins a confidence tie.
    """

    def __init__(
        self,
        source_type: SourceType,
        mapping: Dict[str, str],
        *,
        confidence: float,
        method: str = "known_mapping",
    ) -> None:
        self.name = f"known_mapping:{source_type.value}"
        self.source_types = {source_type}
        self.mapping = dict(mapping)
        self.confidence = confidence
        self.method = method

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        matches = [(name, url) for name, url in self.mapping.items() if _names_overlap(entry.name, name)]
        matches.sort(key=lambda pair: len(pair[0]), reverse=True)
        return [
            DiscoveryCandidate(url=url, name=name, confidence=self.confidence, method=self.method)
            for name, url in matches
        ]


YOUTUBE_CHANNELS = {
    "Andrew Huberman": "UC2D2CMWXMOVWx7giW1n3LIg",
    "Thomas DeLauer": "UC70SrI3VkT1MXALRtf0pcHg",
    "FoundMyFitness": "UCWF8SqJVNlx-ctXbLswcTcA",
    "Ben Greenfield": "UCbf7EccRGBLwbKmWgJ9FYHw",
}

PODCAST_FEEDS = {
    "Huberman Lab": "https://feeds.megaphone.fm/hubermanlab",
    "The Tim Ferriss Show": "https://rss.art19.com/tim-ferriss-show",
    "FoundMyFitness": "https://podcast.foundmyfitness.com/rss.xml",
    "Ben Greenfield Life": "https://bengreenfieldfitness.libsyn.com/rss",
}

JOURNAL_FEEDS = {
    "Nature": "https://www.nature.com/nature.rss",
    "Science": "https://www.science.org/rss/news_current.xml",
    "Cell": "https://www.cell.com/cell/rss/current",
    "NEJM": "https://www.nejm.org/action/showFeed?jc=nejm&type=etoc&feed=rss",
    "The Lancet": "https://www.thelancet.com/rssfeed/lancet_current.xml",
    "PLOS ONE": "https://journals.plos.org/plosone/feed/atom",
    "BMC Medicine": "https://bmcmedicine.biomedcentral.com/rss",
    "Frontiers in Neuroscience": "https://www.frontiersin.org/journals/neuroscience/rss",
}

FORUM_FEEDS = {
    "Nootropics": "https://www.reddit.com/r/Nootropics.rss",
    "Biohackers": "https://www.reddit.com/r/Biohackers.rss",
    "Longevity": "https://www.reddit.com/r/longevity.rss",
    "Supplements": "https://www.reddit.com/r/Supplements.rss",
}

NEWSLETTER_FEEDS = {
    "Ground Truths": "https://erictopol.substack.com/feed",
    "Your Local Epidemiologist": "https://yourlocalepidemiologist.substack.com/feed",
    "Sensible Medicine": "https://sensiblemed.substack.com/feed",
}

BLOG_FEEDS = {
    "Peter Attia": "https://peterattiamd.com/feed/",
    "Examine": "https://examine.com/feed/",
    "Precision Nutrition": "https://www.precisionnutrition.com/feed",
}


def youtube_feed_url(channel_id: str) -> str:
    return f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"


_CHANNEL_ID_PATTERN = re.compile(r"channel_id=([^&#]+)")
_CHANNEL_PATH_PATTERN = re.compile(r"/channel/(UC[\w-]+)")
_SUBREDDIT_PATTERN = re.compile(r"/r/([^/.?#]+)")
_SUBSTACK_PATTERN = re.compile(r"https?://(?:www\.)?([^./]+)\.substack\.com", re.IGNORECASE)


class YouTubeChannelStrategy(DiscoveryStrategy):
    """Rebuild the channel feed from a channel id found in the current URL."""

    name = "youtube_channel"
    source_types = {SourceType.VIDEO_CHANNEL}

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        match = _CHANNEL_ID_PATTERN.search(entry.url) or _CHANNEL_PATH_PATTERN.search(entry.url)
        if not match:
            return []
        return [
            DiscoveryCandidate(
                url=youtube_feed_url(match.group(1)),
                name=entry.name,
                confidence=0.7,
                method="url_reconstruction",
            )
        ]


class RedditStrategy(DiscoveryStrategy):
    name = "reddit"
    source_types = {SourceType.FORUM_COMMUNITY}

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        match = _SUBREDDIT_PATTERN.search(entry.url)
        if not match:
            return []
        subreddit = match.group(1)
        return [
            DiscoveryCandidate(
                url=f"https://www.reddit.com/r/{subreddit}.rss",
                name=f"r/{subreddit}",
                confidence=0.7,
                method="reddit_standard",
            ),
            DiscoveryCandidate(
                url=f"https://www.reddit.com/r/{subreddit}/new.rss",
                name=f"r/{subreddit} (new)",
                confidence=0.6,
                method="reddit_sort",
            ),
        ]


class SubstackStrategy(DiscoveryStrategy):
    name = "substack"
    source_types = {SourceType.NEWSLETTER}

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        match = _SUBSTACK_PATTERN.search(entry.url)
        if not match:
            return []
        return [
            DiscoveryCandidate(
                url=f"https://{match.group(1).lower()}.substack.com/feed",
                name=entry.name,
                confidence=0.7,
                method="substack_feed",
            )
        ]


def _strip_feed_suffix(url: str) -> str:
    return re.sub(r"/(rss|feed).*$", "", url.rstrip("/"))


JOURNAL_PATHS = (
    "/rss/current",
    "/rss/recent",
    "/feed/atom",
    "/feed/rss",
    "/rssfeed",
    "/action/showFeed?type=etoc&feed=rss",
    "/rss",
    ".rss",
)


class JournalPathStrategy(DiscoveryStrategy):
    name = "journal_paths"
    source_types = {SourceType.ACADEMIC_JOURNAL}

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        base = _strip_feed_suffix(entry.url)
        if not base:
            return []
        return [
            DiscoveryCandidate(url=base + path, name=entry.name, confidence=0.6, method="pattern_matching")
            for path in JOURNAL_PATHS
        ]


COMMON_FEED_PATHS = (
    "/feed",
    "/rss",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
    "/blog/feed",
    "/blog/rss",
    "/news/feed",
    "/posts/feed",
    "/articles/feed",
    "/feed/",
    "/rss/",
    "/.rss",
)


class PathGuessStrategy(DiscoveryStrategy):
    """Conventional feed paths on the site origin, plus a ``www.`` toggle."""

    name = "path_guess"
    source_types = {SourceType.GENERIC_BLOG, SourceType.NEWSLETTER, SourceType.UNKNOWN}

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        parsed = urlparse(entry.url)
        if not parsed.scheme or not parsed.netloc:
            return []
        origin = f"{parsed.scheme}://{parsed.netloc}"
        candidates = [
            DiscoveryCandidate(url=origin + path, name=entry.name, confidence=0.5, method="common_path")
            for path in COMMON_FEED_PATHS
        ]
        if parsed.netloc.startswith("www."):
            toggled, method = f"{parsed.scheme}://{parsed.netloc[4:]}", "no_www"
        else:
            toggled, method = f"{parsed.scheme}://www.{parsed.netloc}", "with_www"
        candidates.append(DiscoveryCandidate(url=f"{toggled}/feed", name=entry.name, confidence=0.4, method=method))
        return candidates


class ProtocolUpgradeStrategy(DiscoveryStrategy):
    name = "https_upgrade"

    def propose(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        if not entry.url.lower().startswith("http://"):
            return []
        return [
            DiscoveryCandidate(
                url="https://" + entry.url[len("http://"):],
                name=entry.name,
                confidence=0.8,
                method="https_upgrade",
            )
        ]


def default_strategies() -> List[DiscoveryStrategy]:
    return [
        KnownMappingStrategy(
            SourceType.VIDEO_CHANNEL,
            {name: youtube_feed_url(channel_id) for name, channel_id in YOUTUBE_CHANNELS.items()},
            confidence=0.9,
        ),
        KnownMappingStrategy(SourceType.PODCAST, PODCAST_FEEDS, confidence=0.9),
        KnownMappingStrategy(SourceType.ACADEMIC_JOURNAL, JOURNAL_FEEDS, confidence=0.95, method="known_journal"),
        KnownMappingStrategy(SourceType.FORUM_COMMUNITY, FORUM_FEEDS, confidence=0.9),
        KnownMappingStrategy(SourceType.NEWSLETTER, NEWSLETTER_FEEDS, confidence=0.9),
        KnownMappingStrategy(SourceType.GENERIC_BLOG, BLOG_FEEDS, confidence=0.9),
        YouTubeChannelStrategy(),
        RedditStrategy(),
        SubstackStrategy(),
        JournalPathStrategy(),
        PathGuessStrategy(),
        ProtocolUpgradeStrategy(),
    ]


def merge_candidates(groups: Iterable[List[DiscoveryCandidate]], exclude_url: str = "") -> List[DiscoveryCandidate]:
    """Flatten, drop the current URL, keep the best confidence per URL, sort stably by confidence."""
    best: Dict[str, DiscoveryCandidate] = {}
    order: List[str] = []
    excluded = exclude_url.strip().rstrip("/")
    for group in groups:
        for candidate in group:
            key = candidate.url.strip()
            if not key or key.rstrip("/") == excluded:
                continue
            current = best.get(key)
            if current is None:
                best[key] = candidate
                order.append(key)
            elif candidate.confidence > current.confidence:
                best[key] = candidate
    merged = [best[key] for key in order]
    merged.sort(key=lambda item: item.confidence, reverse=True)
    return merged
