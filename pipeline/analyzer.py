"""
Content Quality Analyzer
Asks the LLM for four 0-10 sub-scores; falls back to a deterministic baseline.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import Settings, get_settings
from core import ContentQualityAssessment, SourceType
from intelligence.llm import BaseLLM, Message, get_llm
from utils.exceptions import LLMError, LLMRateLimitError


logger = logging.getLogger(__name__)


ANALYZER_SYSTEM_PROMPT = """You are a strict health and science content reviewer.
Rate the content on four criteria, each an integer from 0 to 10:
- evidence_quality: strength of the evidence presented
- clinical_value: usefulness for clinical or health decisions
- clarity_structure: clarity and organisation
- practical_applicability: how actionable it is for a reader

Respond with JSON only, exactly in this shape:
{"evidence_quality": 0, "clinical_value": 0, "clarity_structure": 0, "practical_applicability": 0, "reasoning": "one sentence"}"""

FALLBACK_REASONING = "AI analysis unavailable, using baseline assessment"

BASELINE_BY_TYPE = {
    SourceType.ACADEMIC_JOURNAL: 25.0,
    SourceType.NEWSLETTER: 22.0,
    SourceType.VIDEO_CHANNEL: 20.0,
    SourceType.PODCAST: 20.0,
    SourceType.GENERIC_BLOG: 20.0,
    SourceType.FORUM_COMMUNITY: 18.0,
}
DEFAULT_BASELINE = 20.0
MAX_LENGTH_BONUS = 5.0
MAX_BASELINE = 40.0


class _AssessmentPayload(BaseModel):
    """Strict shape of the model's JSON reply."""

    model_config = ConfigDict(strict=True, extra="ignore")

    evidence_quality: int = Field(ge=0, le=10)
    clinical_value: int = Field(ge=0, le=10)
    clarity_structure: int = Field(ge=0, le=10)
    practical_applicability: int = Field(ge=0, le=10)
    reasoning: str

    @field_validator("reasoning")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("reasoning must not be empty")
        return value.strip()


def parse_assessment(content: str) -> ContentQualityAssessment:
    """Parse the model reply; raises ``LLMError`` on any schema violation."""
    match = re.search(r"\{[\s\S]*\}", content or "")
    if not match:
        raise LLMError("Analyzer response contained no JSON object", content=(content or "")[:200])
    try:
        payload = _AssessmentPayload.model_validate_json(match.group())
    except ValidationError as e:
        raise LLMError("Analyzer response failed validation", errors=e.error_count()) from e
    return ContentQualityAssessment(
        evidence_quality=payload.evidence_quality,
        clinical_value=payload.clinical_value,
        clarity_structure=payload.clarity_structure,
        practical_applicability=payload.practical_applicability,
        reasoning=payload.reasoning,
    )


def baseline_assessment(source_type: SourceType, content: str) -> ContentQualityAssessment:
    """Deterministic assessment used whenever the LLM cannot answer."""
    base = BASELINE_BY_TYPE.get(source_type, DEFAULT_BASELINE)
    bonus = min(len(content or "") / 1000.0, MAX_LENGTH_BONUS)
    share = min(base + bonus, MAX_BASELINE) / 4.0
    return ContentQualityAssessment(
        evidence_quality=share,
        clinical_value=share,
        clarity_structure=share,
        practical_applicability=share,
        reasoning=FALLBACK_REASONING,
        is_fallback=True,
    )


class ContentQualityAnalyzer:
    """
    LLM-backed content assessment.

    Rate-limit errors are retried with exponential waits (1s, 2s, 4s by
    default); every other failure, or exhausted retries, yields the baseline.
    """

    def __init__(
        self,
        llm: Optional[BaseLLM] = None,
        settings: Optional[Settings] = None,
        *,
        wait: Optional[Callable] = None,
    ):
        self.settings = settings or get_settings()
        self._llm = llm
        self._wait = wait

    @property
    def llm(self) -> BaseLLM:
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    def _build_prompt(self, source_type: SourceType, content: str) -> str:
        limit = self.settings.enrichment.content_char_limit
        return f"Source type: {source_type.value}\n\nContent:\n{(content or '')[:limit]}"

    async def _ask(self, source_type: SourceType, content: str) -> ContentQualityAssessment:
        messages = [
            Message.system(ANALYZER_SYSTEM_PROMPT),
            Message.user(self._build_prompt(source_type, content)),
        ]
        response = await self.llm.acomplete(messages, json_mode=True)
        return parse_assessment(response.content)

    async def analyze(self, source_type: SourceType, content: str) -> ContentQualityAssessment:
        base = self.settings.enrichment.llm_backoff_base
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.enrichment.llm_max_retries + 1),
                wait=self._wait or wait_exponential(multiplier=base, min=base, max=base * 4),
                retry=retry_if_exception_type(LLMRateLimitError),
                reraise=True,
            ):
                with attempt:
                    return await self._ask(source_type, content)
        except LLMRateLimitError as e:
            logger.warning(f"Content analysis rate limited, retries exhausted: {e}")
        except LLMError as e:
            logger.warning(f"Content analysis failed: {e}")
        except Exception as e:
            logger.warning(f"Content analysis error ({type(e).__name__}): {e}")
        return baseline_assessment(source_type, content)
