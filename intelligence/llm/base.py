"""
Base LLM
Abstract text-generation client.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from enum import Enum


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """Chat message"""
    role: MessageRole
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)


@dataclass
class LLMResponse:
    """LLM response"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)  # prompt_tokens, completion_tokens, total_tokens
    finish_reason: Optional[str] = None
    raw_response: Optional[Any] = None


class BaseLLM(ABC):
    """
    Abstract LLM client.

    Implementations raise ``LLMRateLimitError`` for rate-limit responses and
    ``LLMError`` for every other provider failure.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 300,
        timeout: float = 60.0,
        **kwargs,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.extra_config = kwargs

    @property
    @abstractmethod
    def provider(self) -> str:
        pass

    @abstractmethod
    async def acomplete(
        self,
        messages: List[Message],
        *,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        """
        Generate one completion.

        Args:
            messages: conversation
            json_mode: ask the provider for a JSON object response
            **kwargs: per-call overrides (temperature, max_tokens)
        """
        pass

    async def achat(self, user_message: str, system_prompt: Optional[str] = None, *, json_mode: bool = False) -> str:
        messages = []
        if system_prompt:
            messages.append(Message.system(system_prompt))
        messages.append(Message.user(user_message))

        response = await self.acomplete(messages, json_mode=json_mode)
        return response.content

    async def aclose(self) -> None:
        """Release the underlying HTTP client (no-op by default)."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model}, provider={self.provider})"
