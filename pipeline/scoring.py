"""Quality scoring: five capped sub-scores, their total and a readable explanation.

``score`` is pure. The only time input is the reference instant used for
recency, which is the explicit ``as_of``, else the item's ``ingested_at``.
"""

from __future__ import annotations

from datetime import datetime, timezone
import math
from typing import List, Optional, Sequence, Tuple

from core import FeedItem, QualityMetrics, ScoreBreakdown, SourceType

CITATION_CAP = 30.0
AUTHOR_CAP = 25.0
METHODOLOGY_CAP = 25.0
COMMUNITY_CAP = 10.0
RECENCY_CAP = 10.0

PREPRINT_PENALTY = 5.0
CONFLICT_PENALTY = 5.0
BIAS_FLAG_PENALTY = 2.0
SUSPICIOUS_FUNDER_PENALTY = 2.0

SOURCE_TYPE_PENALTY = {
    SourceType.ACADEMIC_JOURNAL: 0.0,
    SourceType.PODCAST: 3.0,
    SourceType.NEWSLETTER: 3.0,
    SourceType.VIDEO_CHANNEL: 4.0,
    SourceType.GENERIC_BLOG: 5.0,
    SourceType.UNKNOWN: 5.0,
    SourceType.FORUM_COMMUNITY: 6.0,
}

NEUTRAL_COMMUNITY = 5.0
VOTE_CONFIDENCE_THRESHOLD = 5
VOTE_SATURATION = 10

# (days since publication, score) breakpoints, linear in between
RECENCY_CURVE: Sequence[Tuple[float, float]] = (
    (0, 10.0),
    (30, 10.0),
    (90, 8.0),
    (365, 5.0),
    (730, 3.0),
    (1825, 0.0),
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def citation_score(metrics: QualityMetrics) -> float:
    count = max(0, metrics.citation_count or 0)
    if count == 0:
        return 0.0
    base = min(math.log10(count + 1) / 3.0, 1.0)
    influential = max(0, metrics.influential_citation_count or 0)
    influence_bonus = 0.3 * min(influential / count, 1.0)
    velocity_bonus = 0.2 * min(max(0.0, metrics.citation_velocity or 0.0) / 20.0, 1.0)
    return min(base + influence_bonus + velocity_bonus, 1.0) * CITATION_CAP


def author_score(metrics: QualityMetrics) -> float:
    h_index = max(0, metrics.author_h_index or 0)
    citations = max(0, metrics.author_citation_count or 0)
    normalized = 0.6 * min(h_index / 50.0, 1.0) + 0.4 * min(math.log10(citations + 1) / 4.0, 1.0)
    return normalized * AUTHOR_CAP


def methodology_score(item: FeedItem, metrics: QualityMetrics) -> float:
    score = METHODOLOGY_CAP
    if item.is_preprint:
        score -= PREPRINT_PENALTY
    if metrics.conflict_of_interest:
        score -= CONFLICT_PENALTY
    score -= BIAS_FLAG_PENALTY * len(metrics.bias_flags)
    score -= SUSPICIOUS_FUNDER_PENALTY * len(metrics.suspicious_funders)
    score -= SOURCE_TYPE_PENALTY.get(item.source_type, SOURCE_TYPE_PENALTY[SourceType.UNKNOWN])
    return max(0.0, score)


def community_score(metrics: QualityMetrics) -> float:
    votes = max(0, metrics.community_vote_count)
    if votes == 0 or metrics.community_rating is None:
        return NEUTRAL_COMMUNITY
    raw = _clamp(metrics.community_rating, 0.0, 5.0) * 2.0
    if votes < VOTE_CONFIDENCE_THRESHOLD:
        weight = votes / VOTE_CONFIDENCE_THRESHOLD
        value = raw * weight + NEUTRAL_COMMUNITY * (1 - weight)
    else:
        value = raw * min(votes / VOTE_SATURATION, 1.0)
    return _clamp(value, 0.0, COMMUNITY_CAP)


def recency_from_days(days: float) -> float:
    """Piecewise-linear decay; negative ages (future dates) count as day 0."""
    days = max(0.0, days)
    for (start, start_score), (end, end_score) in zip(RECENCY_CURVE, RECENCY_CURVE[1:]):
        if days <= end:
            span = end - start
            fraction = (days - start) / span if span else 0.0
            return start_score + (end_score - start_score) * fraction
    return 0.0


def recency_score(published_at: Optional[datetime], as_of: datetime) -> float:
    if published_at is None:
        return 0.0
    age = _aware(as_of) - _aware(published_at)
    return recency_from_days(age.total_seconds() / 86400.0)


def build_explanation(item: FeedItem, metrics: QualityMetrics) -> str:
    parts: List[str] = []
    if metrics.citation_count:
        parts.append(f"{metrics.citation_count} citations")
    if metrics.author_h_index:
        parts.append(f"Author h-index: {metrics.author_h_index}")
    if item.is_preprint:
        parts.append("Preprint (not peer reviewed)")
    concerns = len(metrics.bias_flags) + (1 if metrics.conflict_of_interest and not metrics.bias_flags else 0)
    if concerns:
        parts.append(f"{concerns} bias concern(s) detected")
    if metrics.community_vote_count and metrics.community_rating is not None:
        parts.append(f"Community rating: {metrics.community_rating:.1f}/5 ({metrics.community_vote_count} votes)")
    if item.published_at is None:
        parts.append("Publication date unknown")
    parts.append(f"Source: {item.source_type.value}")
    return " | ".join(parts)


def score(item: FeedItem, metrics: QualityMetrics, as_of: Optional[datetime] = None) -> ScoreBreakdown:
    reference = as_of or item.ingested_at
    citation = round(citation_score(metrics), 2)
    author = round(author_score(metrics), 2)
    methodology = round(methodology_score(item, metrics), 2)
    community = round(community_score(metrics), 2)
    recency = round(recency_score(item.published_at, reference), 2)
    return ScoreBreakdown(
        citation=citation,
        author=author,
        methodology=methodology,
        community=community,
        recency=recency,
        total=round(citation + author + methodology + community + recency, 1),
        explanation=build_explanation(item, metrics),
    )
