"""Feed discovery for degraded catalog entries."""

from .engine import FeedDiscoveryEngine
from .strategies import (
    DiscoveryStrategy,
    JournalPathStrategy,
    KnownMappingStrategy,
    PathGuessStrategy,
    ProtocolUpgradeStrategy,
    RedditStrategy,
    SubstackStrategy,
    YouTubeChannelStrategy,
    default_strategies,
    merge_candidates,
)

__all__ = [
    "FeedDiscoveryEngine",
    "DiscoveryStrategy",
    "JournalPathStrategy",
    "KnownMappingStrategy",
    "PathGuessStrategy",
    "ProtocolUpgradeStrategy",
    "RedditStrategy",
    "SubstackStrategy",
    "YouTubeChannelStrategy",
    "default_strategies",
    "merge_candidates",
]
