"""
Configuration Management Module
"""
from .settings import (
    Settings,
    WorkerSettings,
    CatalogSettings,
    DiscoverySettings,
    EnrichmentSettings,
    ProviderSettings,
    SemanticScholarSettings,
    LLMSettings,
    StorageSettings,
    get_settings,
    get_worker_settings,
    get_enrichment_settings,
    get_llm_settings,
    get_storage_settings,
)

__all__ = [
    "Settings",
    "WorkerSettings",
    "CatalogSettings",
    "DiscoverySettings",
    "EnrichmentSettings",
    "ProviderSettings",
    "SemanticScholarSettings",
    "LLMSettings",
    "StorageSettings",
    "get_settings",
    "get_worker_settings",
    "get_enrichment_settings",
    "get_llm_settings",
    "get_storage_settings",
]
