"""
Pipeline Module
Enrichment, bias heuristics, content analysis, scoring and job handlers.
"""
from .analyzer import ContentQualityAnalyzer, baseline_assessment, parse_assessment
from .bias import FunderPredicate, detect_bias, keyword_funder_predicate
from .enrichment import ContentEnricher, journal_tier
from .handlers import FeedJobHandlers, register_handlers
from .scoring import recency_from_days, score

__all__ = [
    "ContentQualityAnalyzer",
    "baseline_assessment",
    "parse_assessment",
    "FunderPredicate",
    "detect_bias",
    "keyword_funder_predicate",
    "ContentEnricher",
    "journal_tier",
    "FeedJobHandlers",
    "register_handlers",
    "recency_from_days",
    "score",
]
