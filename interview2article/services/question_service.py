"""Question generation engine.

The next interview question comes from one of two places:

1. the curated preview list: previews the user marked "good" that were not
   yet consumed are drawn uniformly at random, with no model call;
2. the model: a streamed completion conditioned on the analysis, the full
   Q&A history and the user's preview feedback as soft hints.

A consumed preview is never offered again.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional

from interview2article.llm import (
    ChunkCallback,
    CompletionOptions,
    LLMClient,
    ProviderError,
    extract_json,
    get_client,
)
from interview2article.models import (
    AnalysisResult,
    Answer,
    ContentSource,
    PreviewQuestion,
    Question,
    QuestionFeedback,
)

from .errors import InvalidInputError
from .prompts import (
    PREVIEW_SYSTEM_PROMPT,
    QUESTION_SYSTEM_PROMPT,
    build_preview_questions_prompt,
    build_question_prompt,
)

logger = logging.getLogger(__name__)

QUESTION_OPTIONS = CompletionOptions(max_tokens=500, temperature=0.8)
PREVIEW_OPTIONS = CompletionOptions(max_tokens=2000, temperature=0.8)

DEFAULT_PREVIEW_COUNT = 10


def preview_candidates(
    previews: list[PreviewQuestion],
    feedback: dict[int, QuestionFeedback],
) -> list[int]:
    """Indexes of previews marked good and not yet consumed."""
    return [
        index
        for index, preview in enumerate(previews)
        if not preview.consumed
        and feedback.get(index, QuestionFeedback.unset) == QuestionFeedback.good
    ]


def select_preview_question(
    previews: list[PreviewQuestion],
    feedback: dict[int, QuestionFeedback],
    rng: random.Random,
) -> Optional[int]:
    """Pick a preview index uniformly among the candidates, or None."""
    candidates = preview_candidates(previews, feedback)
    if not candidates:
        return None
    return rng.choice(candidates)


def question_from_preview(preview: PreviewQuestion) -> Question:
    """Synthesize a live question from a preview question."""
    return Question(
        content=preview.question,
        category=preview.category or "general",
        explanation=preview.purpose,
        is_from_preview=True,
    )


def parse_question(text: str) -> Question:
    """Parse model output into a Question.

    Degraded output becomes the raw trimmed text with category "general".
    """
    payload = extract_json(text).as_object()
    content = str(payload.get("question") or "").strip() if payload else ""

    if not content:
        logger.warning(
            "Question output not parseable, using raw text",
            extra={"stage": "question", "raw_length": len(text or "")},
        )
        return Question(content=(text or "").strip(), category="general")

    return Question(
        content=content,
        category=str(payload.get("category") or "general"),
        explanation=str(payload.get("explanation") or ""),
        tone=payload.get("tone") or None,
        is_follow_up=bool(payload.get("isFollowUp", payload.get("is_follow_up", False))),
    )


def _preview_items(payload: Any) -> Optional[list[Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
        return payload["questions"]
    return None


def parse_preview_questions(text: str) -> list[PreviewQuestion]:
    """Parse a JSON array, or {"questions": [...]}, into preview questions.

    Items may be plain strings or objects; unusable items are dropped.
    """
    extraction = extract_json(text)
    items = _preview_items(extraction.value) if extraction.parsed else None
    if not items:
        return []

    previews = []
    for item in items:
        if isinstance(item, str):
            question, category, purpose = item.strip(), "general", ""
        elif isinstance(item, dict):
            question = str(item.get("question") or item.get("content") or "").strip()
            category = str(item.get("category") or "general")
            purpose = str(item.get("purpose") or item.get("explanation") or "")
        else:
            continue
        if question:
            previews.append(
                PreviewQuestion(
                    order=len(previews),
                    question=question,
                    category=category,
                    purpose=purpose,
                )
            )
    return previews


class QuestionGenerationEngine:
    """Produces the next interview question.

    Args:
        client: Completion client. Defaults to the module singleton.
        rng: Random source for preview selection (inject for determinism).
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        rng: Optional[random.Random] = None,
    ):
        self._client = client
        self._rng = rng or random.Random()

    @property
    def client(self) -> LLMClient:
        return self._client or get_client()

    async def next_question(
        self,
        analysis: Optional[AnalysisResult],
        questions: list[Question],
        answers: dict[str, Answer],
        preview_questions: list[PreviewQuestion],
        feedback: dict[int, QuestionFeedback],
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> tuple[Question, Optional[int]]:
        """Produce the next question.

        Returns:
            (question, consumed preview index or None when model-generated).

        Raises:
            LLMError: If the completion service fails or returns nothing.
            GenerationCancelled: If cancel_event was set mid-stream.
        """
        index = select_preview_question(preview_questions, feedback, self._rng)
        if index is not None:
            logger.info(
                "Using curated preview question",
                extra={"stage": "question", "preview_index": index},
            )
            return question_from_preview(preview_questions[index]), index

        liked = [
            p.question for i, p in enumerate(preview_questions)
            if feedback.get(i) == QuestionFeedback.good
        ]
        disliked = [
            p.question for i, p in enumerate(preview_questions)
            if feedback.get(i) == QuestionFeedback.bad
        ]

        response = await self.client.complete_streaming(
            build_question_prompt(analysis, questions, answers, liked, disliked),
            system_prompt=QUESTION_SYSTEM_PROMPT,
            options=QUESTION_OPTIONS,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )
        if not response.text.strip():
            raise ProviderError("Model returned an empty question", provider=response.provider)

        question = parse_question(response.text)
        logger.info(
            "Generated question",
            extra={
                "stage": "question",
                "question_id": question.id,
                "chunk_count": response.chunk_count,
                "latency_ms": response.latency_ms,
            },
        )
        return question, None

    async def generate_preview_questions(
        self,
        analysis: Optional[AnalysisResult],
        sources: list[ContentSource],
        count: int = DEFAULT_PREVIEW_COUNT,
    ) -> list[PreviewQuestion]:
        """Bulk-generate the preview list for user curation.

        Falls back to the analysis' suggested questions when the output has no
        usable items.

        Raises:
            InvalidInputError: If content has not been analyzed.
        """
        if analysis is None:
            raise InvalidInputError("Content must be analyzed before generating preview questions")

        response = await self.client.complete(
            build_preview_questions_prompt(analysis, sources, count),
            system_prompt=PREVIEW_SYSTEM_PROMPT,
            options=PREVIEW_OPTIONS,
        )
        previews = parse_preview_questions(response.text)

        if not previews:
            logger.warning(
                "Preview question output not parseable, using suggested questions",
                extra={"stage": "preview"},
            )
            previews = [
                PreviewQuestion(order=i, question=q, category="general")
                for i, q in enumerate(analysis.suggested_questions)
            ]

        return previews[:count] if count > 0 else previews
