from __future__ import annotations

import pytest

from core import DiscoveryCandidate, FeedCatalogEntry, FeedValidationResult, SourceType
from discovery import (
    DiscoveryStrategy,
    FeedDiscoveryEngine,
    KnownMappingStrategy,
    PathGuessStrategy,
    ProtocolUpgradeStrategy,
    RedditStrategy,
    SubstackStrategy,
    YouTubeChannelStrategy,
    merge_candidates,
)
from discovery.strategies import youtube_feed_url


class _Validator:
    def __init__(self, valid_urls=()):
        self.valid_urls = set(valid_urls)
        self.calls = []

    async def __call__(self, url: str) -> FeedValidationResult:
        self.calls.append(url)
        if url in self.valid_urls:
            return FeedValidationResult(valid=True, url=url, feed_type=SourceType.VIDEO_CHANNEL, item_count=5)
        return FeedValidationResult(valid=False, url=url, error="HTTP 404 fetching feed")


class _FixedStrategy(DiscoveryStrategy):
    name = "fixed"

    def __init__(self, candidates):
        self.candidates = candidates

    def propose(self, entry):
        return list(self.candidates)


def _entry(**kwargs) -> FeedCatalogEntry:
    defaults = dict(
        name="Andrew Huberman",
        url="https://www.youtube.com/@hubermanlab",
        source_type=SourceType.VIDEO_CHANNEL,
        consecutive_failures=3,
        active=False,
    )
    defaults.update(kwargs)
    return FeedCatalogEntry(**defaults)


@pytest.mark.asyncio
async def test_single_known_mapping_candidate_is_validated_and_returned(settings) -> None:
    expected = youtube_feed_url("UC2D2CMWXMOVWx7giW1n3LIg")
    validator = _Validator([expected])
    engine = FeedDiscoveryEngine(validator=validator, settings=settings)

    assert [c.url for c in engine.candidates(_entry())] == [expected]

    found = await engine.discover_alternative(_entry())

    assert validator.calls == [expected]
    assert found is not None
    assert found.url == expected
    assert found.confidence == 0.9
    assert found.method == "known_mapping"
    assert found.validation.valid is True


@pytest.mark.asyncio
async def test_returns_none_when_nothing_validates(settings) -> None:
    validator = _Validator()
    engine = FeedDiscoveryEngine(validator=validator, settings=settings)

    assert await engine.discover_alternative(_entry()) is None
    assert len(validator.calls) == 1


@pytest.mark.asyncio
async def test_validates_at_most_three_candidates_in_confidence_order(settings) -> None:
    proposals = [
        DiscoveryCandidate(url=f"https://example.com/feed{i}", confidence=conf, method="fixed")
        for i, conf in enumerate([0.4, 0.9, 0.5, 0.8, 0.7])
    ]
    validator = _Validator(["https://example.com/feed0"])
    engine = FeedDiscoveryEngine([_FixedStrategy(proposals)], validator=validator, settings=settings)

    found = await engine.discover_alternative(_entry(source_type=SourceType.GENERIC_BLOG))

    assert found is None
    assert validator.calls == [
        "https://example.com/feed1",
        "https://example.com/feed3",
        "https://example.com/feed4",
    ]


def test_known_mapping_prefers_longer_name_on_tie() -> None:
    strategy = KnownMappingStrategy(
        SourceType.PODCAST,
        {"Fit": "https://short.example.com/rss", "FoundMyFitness": "https://long.example.com/rss"},
        confidence=0.9,
    )
    entry = _entry(name="FoundMyFitness Podcast", source_type=SourceType.PODCAST)

    ranked = merge_candidates([strategy.propose(entry)])

    assert [c.url for c in ranked] == ["https://long.example.com/rss", "https://short.example.com/rss"]


def test_known_mapping_matches_either_direction_case_insensitive() -> None:
    strategy = KnownMappingStrategy(SourceType.ACADEMIC_JOURNAL, {"Nature": "https://www.nature.com/nature.rss"}, confidence=0.95)
    assert strategy.propose(_entry(name="nature", source_type=SourceType.ACADEMIC_JOURNAL))
    assert strategy.propose(_entry(name="NATURE Reviews", source_type=SourceType.ACADEMIC_JOURNAL))
    assert not strategy.propose(_entry(name="Cell", source_type=SourceType.ACADEMIC_JOURNAL))
    assert not strategy.applies_to(SourceType.PODCAST)


def test_merge_collapses_duplicates_keeping_highest_confidence() -> None:
    low = DiscoveryCandidate(url="https://a.example.com/feed", confidence=0.5, method="common_path")
    high = DiscoveryCandidate(url="https://a.example.com/feed", confidence=0.8, method="https_upgrade")
    current = DiscoveryCandidate(url="https://a.example.com/rss", confidence=0.9, method="fixed")

    merged = merge_candidates([[low], [high, current]], exclude_url="https://a.example.com/rss")

    assert [(c.url, c.method) for c in merged] == [("https://a.example.com/feed", "https_upgrade")]


def test_pattern_reconstruction_strategies() -> None:
    youtube = YouTubeChannelStrategy().propose(
        _entry(url="https://www.youtube.com/channel/UCabc-123", name="Someone")
    )
    assert [(c.url, c.confidence) for c in youtube] == [(youtube_feed_url("UCabc-123"), 0.7)]

    reddit = RedditStrategy().propose(
        _entry(url="https://old.reddit.com/r/nutrition/", source_type=SourceType.FORUM_COMMUNITY)
    )
    assert [(c.url, c.confidence) for c in reddit] == [
        ("https://www.reddit.com/r/nutrition.rss", 0.7),
        ("https://www.reddit.com/r/nutrition/new.rss", 0.6),
    ]

    substack = SubstackStrategy().propose(
        _entry(url="https://GutBrain.substack.com/p/some-post", source_type=SourceType.NEWSLETTER)
    )
    assert [c.url for c in substack] == ["https://gutbrain.substack.com/feed"]


def test_path_guessing_and_protocol_upgrade() -> None:
    entry = _entry(url="http://blog.example.com/old/feed", source_type=SourceType.GENERIC_BLOG, name="Blog")

    guesses = PathGuessStrategy().propose(entry)
    assert len(guesses) == 15
    assert guesses[0].url == "http://blog.example.com/feed"
    assert {c.confidence for c in guesses[:14]} == {0.5}
    assert guesses[-1].url == "http://www.blog.example.com/feed"
    assert guesses[-1].confidence == 0.4

    upgrade = ProtocolUpgradeStrategy().propose(entry)
    assert [(c.url, c.confidence) for c in upgrade] == [("https://blog.example.com/old/feed", 0.8)]
    assert ProtocolUpgradeStrategy().propose(_entry()) == []


def test_default_engine_ranks_upgrade_above_path_guesses(settings) -> None:
    entry = _entry(url="http://blog.example.com/rss", source_type=SourceType.GENERIC_BLOG, name="Blog")
    ranked = FeedDiscoveryEngine(validator=_Validator(), settings=settings).candidates(entry)

    assert ranked[0].url == "https://blog.example.com/rss"
    assert "http://blog.example.com/rss" not in [c.url for c in ranked]
    confidences = [c.confidence for c in ranked]
    assert confidences == sorted(confidences, reverse=True)


@pytest.mark.parametrize(
    "name,source_type,url,expected",
    [
        (
            "r/Nootropics",
            SourceType.FORUM_COMMUNITY,
            "https://old.reddit.com/r/Nootropics/",
            "https://www.reddit.com/r/Nootropics.rss",
        ),
        (
            "Ground Truths with Eric Topol",
            SourceType.NEWSLETTER,
            "https://erictopol.com/feed",
            "https://erictopol.substack.com/feed",
        ),
        (
            "Peter Attia MD",
            SourceType.GENERIC_BLOG,
            "http://peterattiamd.com/rss",
            "https://peterattiamd.com/feed/",
        ),
    ],
)
def test_default_engine_knows_forum_newsletter_and_blog_feeds(settings, name, source_type, url, expected) -> None:
    entry = _entry(name=name, source_type=source_type, url=url)
    ranked = FeedDiscoveryEngine(validator=_Validator(), settings=settings).candidates(entry)

    assert ranked[0].url == expected
    assert ranked[0].confidence == 0.9
    assert ranked[0].method == "known_mapping"
