"""
Custom Exceptions
Exception hierarchy for the ingestion / enrichment / scoring pipeline.
"""
from typing import Optional


class FeedPipelineError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(FeedPipelineError):
    """Invalid or missing configuration."""
    pass


class StorageError(FeedPipelineError):
    """Database / repository failure."""
    pass


class JobError(FeedPipelineError):
    """Job queue error."""
    pass


class UnknownJobTypeError(JobError):
    """No handler registered for the job type."""

    def __init__(self, job_type: str):
        super().__init__(f"No handler registered for job type: {job_type}", {"type": job_type})
        self.job_type = job_type


class JobNotFoundError(JobError):
    """Job id does not exist in the store."""
    pass


class ProviderError(FeedPipelineError):
    """External metric/content provider failure."""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class LLMError(FeedPipelineError):
    """Text-generation call failure."""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class FeedFetchError(FeedPipelineError):
    """Feed could not be fetched or parsed."""

    def __init__(
        self,
        message: str,
        url: str = None,
        status_code: Optional[int] = None,
        permanent: bool = False,
        **kwargs,
    ):
        super().__init__(message, kwargs)
        self.url = url
        self.status_code = status_code
        self.permanent = permanent


class LLMRateLimitError(LLMError):
    """Provider rejected the call with a rate-limit response."""
    pass
