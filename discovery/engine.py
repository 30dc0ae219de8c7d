"""Feed discovery engine: rank replacement candidates and validate the best few."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from config import Settings, get_settings
from core import DiscoveryCandidate, FeedCatalogEntry, FeedValidationResult
from sources.feeds import validate_feed

from .strategies import DiscoveryStrategy, default_strategies, merge_candidates

logger = logging.getLogger(__name__)

Validator = Callable[[str], Awaitable[FeedValidationResult]]


class FeedDiscoveryEngine:
    """Finds a working feed URL for a degraded catalog entry, or returns None."""

    def __init__(
        self,
        strategies: Optional[List[DiscoveryStrategy]] = None,
        *,
        validator: Optional[Validator] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self._validator = validator

    async def _validate(self, url: str) -> FeedValidationResult:
        if self._validator is not None:
            return await self._validator(url)
        return await validate_feed(url, settings=self.settings)

    def candidates(self, entry: FeedCatalogEntry) -> List[DiscoveryCandidate]:
        groups = [
            strategy.propose(entry)
            for strategy in self.strategies
            if strategy.applies_to(entry.source_type)
        ]
        return merge_candidates(groups, exclude_url=entry.url)

    async def discover_alternative(self, entry: FeedCatalogEntry) -> Optional[DiscoveryCandidate]:
        ranked = self.candidates(entry)
        limit = max(1, self.settings.discovery.max_validations)
        logger.info(
            "Discovering alternative for %s (%s): %d candidate(s), validating top %d",
            entry.name,
            entry.source_type.value,
            len(ranked),
            min(limit, len(ranked)),
        )

        for candidate in ranked[:limit]:
            validation = await self._validate(candidate.url)
            logger.info(
                "Candidate %s (%s, %.2f): %s",
                candidate.url,
                candidate.method,
                candidate.confidence,
                "valid" if validation.valid else validation.error,
            )
            if validation.valid:
                return candidate.model_copy(update={"validation": validation})

        logger.info("No working alternative found for %s", entry.name)
        return None
