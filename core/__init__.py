"""Core contracts and shared types for the feed pipeline."""

from .contracts import (
    ContentQualityAssessment,
    DiscoveryCandidate,
    EngagementSignals,
    EnrichedItem,
    EnrichmentCapabilities,
    FeedCatalogEntry,
    FeedItem,
    FeedMetadata,
    FeedValidationResult,
    Job,
    JobStatus,
    QualityMetrics,
    ScoreBreakdown,
    SourceType,
)

__all__ = [
    "ContentQualityAssessment",
    "DiscoveryCandidate",
    "EngagementSignals",
    "EnrichedItem",
    "EnrichmentCapabilities",
    "FeedCatalogEntry",
    "FeedItem",
    "FeedMetadata",
    "FeedValidationResult",
    "Job",
    "JobStatus",
    "QualityMetrics",
    "ScoreBreakdown",
    "SourceType",
]
