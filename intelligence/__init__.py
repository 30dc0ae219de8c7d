"""
Intelligence Module
LLM abstraction used for content-quality assessment.
"""
from .llm import (
    BaseLLM,
    OpenAILLM,
    get_llm,
)

__all__ = [
    "BaseLLM",
    "OpenAILLM",
    "get_llm",
]
