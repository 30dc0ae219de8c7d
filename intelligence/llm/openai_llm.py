"""
OpenAI LLM
Chat completions for gpt-4o-mini and compatible endpoints.
"""
from typing import List, Optional
import logging

import openai
from openai import AsyncOpenAI

from utils.exceptions import LLMError, LLMRateLimitError

from .base import BaseLLM, Message, LLMResponse


logger = logging.getLogger(__name__)


class OpenAILLM(BaseLLM):
    """OpenAI (or OpenAI-compatible) chat completion client."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 300,
        timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(model, temperature, max_tokens, timeout, **kwargs)
        self.api_key = api_key
        self.base_url = base_url
        self._async_client: Optional[AsyncOpenAI] = None

    @property
    def provider(self) -> str:
        return "openai"

    def _get_async_client(self) -> AsyncOpenAI:
        if self._async_client is None:
            self._async_client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._async_client

    async def acomplete(
        self,
        messages: List[Message],
        *,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        client = self._get_async_client()

        request_params = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }
        if json_mode:
            request_params["response_format"] = {"type": "json_object"}

        try:
            response = await client.chat.completions.create(**request_params)
        except openai.RateLimitError as e:
            raise LLMRateLimitError(str(e), provider=self.provider, model=self.model) from e
        except openai.OpenAIError as e:
            raise LLMError(str(e), provider=self.provider, model=self.model) from e

        choice = response.choices[0]
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            finish_reason=choice.finish_reason,
            raw_response=response,
        )

    async def aclose(self) -> None:
        if self._async_client is not None:
            await self._async_client.close()
            self._async_client = None
