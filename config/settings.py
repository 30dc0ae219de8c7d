"""
Settings Configuration
Pydantic-backed configuration groups for the feed pipeline.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class WorkerSettings(BaseSettings):
    """Job worker polling, concurrency and retry policy"""
    poll_interval: float = Field(default=5.0, description="Seconds between empty polls")
    concurrency: int = Field(default=5, description="Max simultaneous handler executions")
    max_retries: int = Field(default=5, description="Default retry budget per job")
    default_priority: int = Field(default=5, description="Default priority (lower runs first)")
    backoff_base: float = Field(default=2.0, description="Retry delay base (seconds)")
    backoff_factor: float = Field(default=2.0, description="Retry delay growth factor")
    backoff_jitter: float = Field(default=0.4, description="Multiplicative jitter fraction")
    stale_after: float = Field(default=900.0, description="Seconds before a processing job is stale")
    sweep_interval: float = Field(default=60.0, description="Seconds between stale sweeps")
    error_pause: float = Field(default=5.0, description="Pause after a poll loop error")

    class Config:
        env_prefix = "WORKER_"


class CatalogSettings(BaseSettings):
    """Feed catalog maintenance thresholds"""
    deactivate_after_failures: int = Field(default=5, description="Failures before an entry is deactivated")
    discovery_failure_threshold: int = Field(default=3, description="Failures before discovery is scheduled")
    max_items_per_fetch: int = Field(default=10, description="Entries normalised per fetch")
    category_sample_size: int = Field(default=10, description="Entries sampled for categories")
    author_sample_size: int = Field(default=10, description="Entries sampled for author vote")

    class Config:
        env_prefix = "CATALOG_"


class DiscoverySettings(BaseSettings):
    """Feed discovery"""
    max_validations: int = Field(default=3, description="Candidates validated per discovery attempt")

    class Config:
        env_prefix = "DISCOVERY_"


class EnrichmentSettings(BaseSettings):
    """Content enrichment batching and analyzer retry policy"""
    batch_size: int = Field(default=3, description="Items enriched concurrently")
    batch_pause: float = Field(default=1.0, description="Pause between batches (seconds)")
    content_char_limit: int = Field(default=5000, description="Characters sent to the analyzer")
    llm_max_retries: int = Field(default=3, description="Retries on rate limit")
    llm_backoff_base: float = Field(default=1.0, description="First rate-limit wait (seconds)")
    max_pdf_pages: int = Field(default=30, description="Pages extracted from a PDF")
    opml_batch_size: int = Field(default=5, description="OPML outlines enqueued per batch")
    opml_batch_pause: float = Field(default=1.0, description="Pause between OPML batches")

    class Config:
        env_prefix = "ENRICHMENT_"


class ProviderSettings(BaseSettings):
    """Shared HTTP settings for external providers"""
    contact_email: str = Field(default="feeds@example.org", description="Contact for polite API pools")
    request_timeout: int = Field(default=30, description="Request timeout (seconds)")
    user_agent: str = Field(default="FeedPipeline/1.0", description="User Agent")

    class Config:
        env_prefix = "PROVIDER_"


class SemanticScholarSettings(BaseSettings):
    """Semantic Scholar API"""
    api_key: Optional[str] = Field(default=None, description="Semantic Scholar API Key (optional)")
    requests_per_second: float = Field(default=0.8, description="Global request rate, never above 1")

    class Config:
        env_prefix = "SEMANTIC_SCHOLAR_"


class LLMSettings(BaseSettings):
    """LLM used for content-quality assessment"""
    provider: str = Field(default="openai", description="LLM provider: openai")
    model_name: Optional[str] = Field(default=None, description="Model name (provider default when empty)")
    temperature: float = Field(default=0.3, description="Sampling temperature")
    max_tokens: int = Field(default=300, description="Max completion tokens")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    base_url: Optional[str] = Field(default=None, description="OpenAI-compatible base URL")

    class Config:
        env_prefix = "LLM_"


class StorageSettings(BaseSettings):
    """Database"""
    database_url: str = Field(default="sqlite:///feed_pipeline.db", description="SQLAlchemy URL")
    echo: bool = Field(default=False, description="Echo SQL statements")

    class Config:
        env_prefix = "STORAGE_"


class Settings(BaseSettings):
    """Aggregated settings"""

    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    semantic_scholar: SemanticScholarSettings = Field(default_factory=SemanticScholarSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings, reading ``config/.env`` into the environment first when present."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            worker=WorkerSettings(),
            catalog=CatalogSettings(),
            discovery=DiscoverySettings(),
            enrichment=EnrichmentSettings(),
            provider=ProviderSettings(),
            semantic_scholar=SemanticScholarSettings(),
            llm=LLMSettings(),
            storage=StorageSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings singleton."""
    return Settings.load_from_env_file()


def get_worker_settings() -> WorkerSettings:
    return get_settings().worker


def get_enrichment_settings() -> EnrichmentSettings:
    return get_settings().enrichment


def get_llm_settings() -> LLMSettings:
    return get_settings().llm


def get_storage_settings() -> StorageSettings:
    return get_settings().storage
