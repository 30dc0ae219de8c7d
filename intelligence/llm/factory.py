"""
LLM Factory
Builds the configured LLM client.
"""
from typing import Optional
import logging

from utils.exceptions import ConfigurationError

from .base import BaseLLM
from .openai_llm import OpenAILLM


logger = logging.getLogger(__name__)


DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
}


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> BaseLLM:
    """
    Get an LLM instance.

    Reads ``LLM_*`` settings; explicit arguments win.

    Example:
        llm = get_llm()
        llm = get_llm(model="gpt-4o", temperature=0.0)
    """
    from config import get_llm_settings

    settings = get_llm_settings()

    provider = (provider or settings.provider or "").strip().lower()
    model = model or settings.model_name or DEFAULT_MODELS.get(provider)

    for key, value in {"temperature": settings.temperature, "max_tokens": settings.max_tokens}.items():
        kwargs.setdefault(key, value)

    if provider == "openai":
        return OpenAILLM(
            model=model,
            api_key=kwargs.pop("api_key", None) or settings.openai_api_key,
            base_url=kwargs.pop("base_url", None) or settings.base_url,
            **kwargs,
        )
    raise ConfigurationError(f"Unsupported LLM provider: {provider}", {"provider": provider})
