"""Canonical data contracts for the ingestion, enrichment and scoring pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, Field, field_validator

from utils.text import dedupe_hash


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class JobStatus(str, Enum):
    """Lifecycle of a deferred unit of work."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DEAD_LETTER = "dead_letter"


class SourceType(str, Enum):
    """Closed set of catalog source types (``unknown`` only as a classification outcome)."""

    ACADEMIC_JOURNAL = "academic-journal"
    VIDEO_CHANNEL = "video-channel"
    FORUM_COMMUNITY = "forum-community"
    NEWSLETTER = "newsletter"
    PODCAST = "podcast"
    GENERIC_BLOG = "generic-blog"
    UNKNOWN = "unknown"


class Job(BaseModel):
    """Queued job record."""

    id: str = Field(default_factory=_new_id)
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    priority: int = 5
    retries: int = 0
    max_retries: int = 5
    next_run_at: datetime = Field(default_factory=_utcnow)
    last_error: Optional[str] = None
    processing_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("type", mode="before")
    @classmethod
    def _non_empty_type(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("job type is required")
        return text

    @field_validator("max_retries")
    @classmethod
    def _positive_retries(cls, value: int) -> int:
        if int(value) < 1:
            raise ValueError("max_retries must be >= 1")
        return int(value)


class EnrichmentCapabilities(BaseModel):
    """Capability flags recorded once per catalog entry by the validator probe."""

    transcript_available: bool = False
    pdf_available: bool = False
    full_content_available: bool = False


class FeedCatalogEntry(BaseModel):
    """A subscribable content source."""

    id: str = Field(default_factory=_new_id)
    name: str
    url: str
    source_type: SourceType = SourceType.GENERIC_BLOG
    topics: List[str] = Field(default_factory=list)
    approval_status: Literal["pending", "approved", "rejected"] = "pending"
    active: bool = True
    consecutive_failures: int = 0
    last_successful_fetch: Optional[datetime] = None
    last_error: Optional[str] = None
    discovery_method: Optional[str] = None
    capabilities: EnrichmentCapabilities = Field(default_factory=EnrichmentCapabilities)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class EngagementSignals(BaseModel):
    upvotes: int = 0
    comments: int = 0
    views: int = 0
    likes: int = 0


class FeedItem(BaseModel):
    """One normalised entry pulled from a catalog feed."""

    title: str = ""
    url: str = ""
    feed_id: Optional[str] = None
    feed_name: Optional[str] = None
    source_type: SourceType = SourceType.UNKNOWN
    published_at: Optional[datetime] = None
    ingested_at: datetime = Field(default_factory=_utcnow)
    excerpt: str = ""
    author: Optional[str] = None
    doi: Optional[str] = None
    is_preprint: bool = False
    journal_name: Optional[str] = None
    community_rating: Optional[float] = None
    community_votes: int = 0
    engagement: EngagementSignals = Field(default_factory=EngagementSignals)
    dedupe_hash: str = ""

    def resolved_hash(self) -> str:
        return self.dedupe_hash or dedupe_hash(self.url, self.title)


class ContentQualityAssessment(BaseModel):
    """Four 0-10 sub-scores plus a one-sentence rationale."""

    evidence_quality: float = Field(default=0.0, ge=0, le=10)
    clinical_value: float = Field(default=0.0, ge=0, le=10)
    clarity_structure: float = Field(default=0.0, ge=0, le=10)
    practical_applicability: float = Field(default=0.0, ge=0, le=10)
    reasoning: str = ""
    is_fallback: bool = False

    @property
    def total(self) -> float:
        return round(
            self.evidence_quality
            + self.clinical_value
            + self.clarity_structure
            + self.practical_applicability,
            1,
        )


class QualityMetrics(BaseModel):
    """Evidence collected for one item; consumed once by the scoring engine."""

    # citation signals
    citation_count: Optional[int] = None
    influential_citation_count: Optional[int] = None
    citation_velocity: Optional[float] = None

    # author credibility
    author_h_index: Optional[int] = None
    author_citation_count: Optional[int] = None

    # bias
    funding_sources: List[str] = Field(default_factory=list)
    suspicious_funders: List[str] = Field(default_factory=list)
    conflict_of_interest: bool = False
    bias_flags: List[str] = Field(default_factory=list)

    # community
    community_rating: Optional[float] = None
    community_vote_count: int = 0

    content_quality: Optional[ContentQualityAssessment] = None
    engagement: EngagementSignals = Field(default_factory=EngagementSignals)
    journal_tier: Optional[Literal["high", "mid", "low"]] = None


class ScoreBreakdown(BaseModel):
    """Explainable scoring output; each sub-score is capped, total is their sum."""

    citation: float = Field(default=0.0, ge=0, le=30)
    author: float = Field(default=0.0, ge=0, le=25)
    methodology: float = Field(default=0.0, ge=0, le=25)
    community: float = Field(default=0.0, ge=0, le=10)
    recency: float = Field(default=0.0, ge=0, le=10)
    total: float = Field(default=0.0, ge=0, le=100)
    explanation: str = ""


class EnrichedItem(FeedItem):
    """Feed item with full content, metrics bundle and score attached."""

    full_text: Optional[str] = None
    pdf_url: Optional[str] = None
    metrics: QualityMetrics = Field(default_factory=QualityMetrics)
    score_breakdown: Optional[ScoreBreakdown] = None
    score: Optional[float] = None
    enriched_at: datetime = Field(default_factory=_utcnow)


class FeedMetadata(BaseModel):
    author: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    language: Optional[str] = None
    image_url: Optional[str] = None


class FeedValidationResult(BaseModel):
    """Synchronous validation outcome; failures are reported, never raised."""

    valid: bool
    url: str = ""
    feed_type: Optional[SourceType] = None
    title: Optional[str] = None
    description: Optional[str] = None
    item_count: Optional[int] = None
    last_published: Optional[datetime] = None
    metadata: Optional[FeedMetadata] = None
    error: Optional[str] = None

    @property
    def source_type(self) -> Optional[SourceType]:
        return self.feed_type


class DiscoveryCandidate(BaseModel):
    """Proposed replacement URL for a degraded catalog entry."""

    url: str
    name: str = ""
    confidence: float = Field(ge=0, le=1)
    method: str
    validation: Optional[FeedValidationResult] = None
