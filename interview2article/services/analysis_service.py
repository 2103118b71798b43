"""Content analysis stage.

Turns the content sources into an AnalysisResult with one non-streaming
completion. Unparseable output degrades to a heuristic summary instead of
failing the stage.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from interview2article.llm import CompletionOptions, LLMClient, extract_json, get_client
from interview2article.models import AnalysisResult, ContentSource

from .errors import InvalidInputError
from .prompts import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt

logger = logging.getLogger(__name__)

ANALYSIS_OPTIONS = CompletionOptions(max_tokens=2000, temperature=0.7)

FALLBACK_SUMMARY_CHARS = 200
FALLBACK_TOPICS = ["Creative approach", "Personal experience", "Future plans"]
FALLBACK_QUESTIONS = [
    "What first motivated this work?",
    "What was the biggest challenge along the way?",
    "Where do you plan to take it next?",
]


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def fallback_analysis(text: str) -> AnalysisResult:
    """Heuristic analysis used when the model output cannot be parsed."""
    return AnalysisResult(
        summary=text[:FALLBACK_SUMMARY_CHARS] + "...",
        key_topics=list(FALLBACK_TOPICS),
        suggested_questions=list(FALLBACK_QUESTIONS),
        difficulty="intermediate",
        degraded=True,
    )


def parse_analysis(text: str) -> AnalysisResult:
    """Parse model output into an AnalysisResult, degrading on failure.

    Accepts both camelCase and snake_case keys.
    """
    payload = extract_json(text).as_object()
    if payload is None or not str(payload.get("summary") or "").strip():
        logger.warning(
            "Analysis output not parseable, using fallback",
            extra={"stage": "analysis", "raw_length": len(text or "")},
        )
        return fallback_analysis(text or "")

    return AnalysisResult(
        summary=str(payload["summary"]).strip(),
        key_topics=_string_list(payload.get("keyTopics", payload.get("key_topics"))),
        suggested_questions=_string_list(
            payload.get("suggestedQuestions", payload.get("suggested_questions"))
        ),
        difficulty=str(payload.get("difficulty") or "intermediate"),
    )


class ContentAnalysisStage:
    """Sources in, AnalysisResult out. No side effects."""

    def __init__(self, client: Optional[LLMClient] = None):
        self._client = client

    @property
    def client(self) -> LLMClient:
        return self._client or get_client()

    async def analyze(self, sources: list[ContentSource]) -> AnalysisResult:
        """Analyze the content sources.

        Raises:
            InvalidInputError: If there are no sources.
            LLMError: If the completion service fails.
        """
        if not sources:
            raise InvalidInputError("At least one content source is required for analysis")

        response = await self.client.complete(
            build_analysis_prompt(sources),
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            options=ANALYSIS_OPTIONS,
        )
        result = parse_analysis(response.text)

        logger.info(
            "Content analyzed",
            extra={
                "stage": "analysis",
                "source_count": len(sources),
                "degraded": result.degraded,
                "latency_ms": response.latency_ms,
            },
        )
        return result
