"""
Providers Module
External metric and content providers used during enrichment.
"""
from .base import BaseProvider, RateLimitedProvider
from .crossref import CrossrefProvider, CrossrefWork
from .semantic_scholar import SemanticScholarProvider, PaperMetrics, AuthorMetrics
from .unpaywall import UnpaywallProvider, OpenAccessInfo
from .transcripts import TranscriptProvider, extract_video_id
from .pdf import PdfTextExtractor, extract_pdf_text

__all__ = [
    "BaseProvider",
    "RateLimitedProvider",
    "CrossrefProvider",
    "CrossrefWork",
    "SemanticScholarProvider",
    "PaperMetrics",
    "AuthorMetrics",
    "UnpaywallProvider",
    "OpenAccessInfo",
    "TranscriptProvider",
    "extract_video_id",
    "PdfTextExtractor",
    "extract_pdf_text",
]
