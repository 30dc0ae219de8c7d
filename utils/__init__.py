"""
Utils Module
Shared logging, exceptions and text helpers.
"""
from .logger import setup_logger, build_handlers, configure_root_logging
from .exceptions import (
    FeedPipelineError,
    ConfigurationError,
    StorageError,
    JobError,
    UnknownJobTypeError,
    JobNotFoundError,
    ProviderError,
    LLMError,
    LLMRateLimitError,
    FeedFetchError,
)

__all__ = [
    "setup_logger",
    "build_handlers",
    "configure_root_logging",
    "FeedPipelineError",
    "ConfigurationError",
    "StorageError",
    "JobError",
    "UnknownJobTypeError",
    "JobNotFoundError",
    "ProviderError",
    "LLMError",
    "LLMRateLimitError",
    "FeedFetchError",
]
