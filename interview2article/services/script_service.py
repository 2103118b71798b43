"""Script synthesis pipeline.

Two alternate sub-pipelines turn the interview transcript into an article:

- Quick: transcript + style -> styled article in one streamed call
- Outline: outline -> per-section generation -> merged draft -> style polish

The draft is never generated by the model: merge_sections() derives it from
the outline and the section table, and returns None until every section
exists.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Optional, Union

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
    DraftScript,
    Outline,
    OutlineSection,
    Question,
    StyledScript,
)

from .errors import InvalidInputError
from .prompts import (
    OUTLINE_SYSTEM_PROMPT,
    SECTION_SYSTEM_PROMPT,
    build_outline_prompt,
    build_polish_prompt,
    build_quick_script_prompt,
    build_section_prompt,
    build_transcript,
)
from .styles import StyleSpec, get_style
from .word_count import count_words, estimate_read_time

logger = logging.getLogger(__name__)

SCRIPT_MAX_TOKENS = 4000
OUTLINE_OPTIONS = CompletionOptions(max_tokens=2000, temperature=0.3)
SECTION_OPTIONS = CompletionOptions(max_tokens=2000, temperature=0.7)

FALLBACK_OUTLINE_SECTIONS = [
    ("Background", "Who the interviewee is and what the conversation is about"),
    ("Key insights", "The main ideas and experiences shared in the interview"),
    ("Looking ahead", "Reflections, advice and future plans"),
]

# on_progress(current, total); current is 1-based
ProgressCallback = Callable[[int, int], Union[None, Awaitable[None]]]
# on_section(index, text); called after each section completes
SectionCallback = Callable[[int, str], Union[None, Awaitable[None]]]


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


def _style_options(style: StyleSpec) -> CompletionOptions:
    return CompletionOptions(max_tokens=SCRIPT_MAX_TOKENS, temperature=style.temperature)


def make_styled_script(style: str, content: str, generated_at: Optional[datetime] = None) -> StyledScript:
    """Wrap generated content with its word count and read time."""
    words = count_words(content)
    return StyledScript(
        style=style,
        content=content,
        word_count=words,
        estimated_read_time=estimate_read_time(words),
        generated_at=generated_at or datetime.now(timezone.utc),
    )


def fallback_outline(analysis: Optional[AnalysisResult] = None) -> Outline:
    """Generic three-section outline used when the model output is unusable."""
    title = analysis.key_topics[0] if analysis and analysis.key_topics else "Interview"
    sections = [
        OutlineSection(
            section_number=i + 1,
            title=name,
            theme=theme,
            estimated_words=500,
        )
        for i, (name, theme) in enumerate(FALLBACK_OUTLINE_SECTIONS)
    ]
    return Outline(
        title=title,
        total_sections=len(sections),
        estimated_words=sum(s.estimated_words for s in sections),
        sections=sections,
        degraded=True,
    )


def _int_or(value: Any, default: int) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default


def parse_outline(text: str, analysis: Optional[AnalysisResult] = None) -> Outline:
    """Parse model output into an Outline.

    Sections are renumbered 1..N in list order so total_sections always
    equals len(sections). Degrades to fallback_outline().
    """
    payload = extract_json(text).as_object()
    raw_sections = payload.get("sections") if payload else None
    if not isinstance(raw_sections, list):
        raw_sections = []

    sections = []
    for item in raw_sections:
        if not isinstance(item, dict):
            continue
        number = len(sections) + 1
        key_points = item.get("keyPoints", item.get("key_points")) or []
        sections.append(
            OutlineSection(
                section_number=number,
                title=str(item.get("title") or f"Section {number}"),
                theme=str(item.get("theme") or ""),
                key_points=[str(p) for p in key_points] if isinstance(key_points, list) else [],
                tone=str(item.get("tone") or ""),
                estimated_words=_int_or(item.get("estimatedWords", item.get("estimated_words")), 0),
            )
        )

    if not sections:
        logger.warning(
            "Outline output not parseable, using fallback outline",
            extra={"stage": "outline", "raw_length": len(text or "")},
        )
        return fallback_outline(analysis)

    estimated = _int_or(payload.get("estimatedWords", payload.get("estimated_words")), 0)
    return Outline(
        title=str(payload.get("title") or "Interview"),
        total_sections=len(sections),
        estimated_words=estimated or sum(s.estimated_words for s in sections),
        sections=sections,
    )


def merge_sections(
    outline: Optional[Outline],
    sections: dict[int, str],
    generated_at: Optional[datetime] = None,
) -> Optional[DraftScript]:
    """Join sections 0..N-1 with blank lines.

    Returns None unless an outline exists and every section has content.
    Pure: no network call, same inputs give the same content.
    """
    if outline is None or outline.total_sections == 0:
        return None
    if any(i not in sections for i in range(outline.total_sections)):
        return None

    content = "\n\n".join(sections[i].strip() for i in range(outline.total_sections))
    words = count_words(content)
    return DraftScript(
        content=content,
        word_count=words,
        estimated_read_time=estimate_read_time(words),
        sections_count=outline.total_sections,
        total_sections=outline.total_sections,
        generated_at=generated_at or datetime.now(timezone.utc),
    )


def previous_sections_text(sections: dict[int, str], index: int) -> str:
    """Concatenation of the already generated sections before `index`."""
    return "\n\n".join(sections[i] for i in sorted(sections) if i < index)


class ScriptSynthesisPipeline:
    """Model-facing half of script synthesis.

    Methods return artifacts; committing them to the state tree is the
    caller's job.
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self._client = client

    @property
    def client(self) -> LLMClient:
        return self._client or get_client()

    async def generate_quick(
        self,
        style: str,
        questions: list[Question],
        answers: dict[str, Answer],
        analysis: Optional[AnalysisResult] = None,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> StyledScript:
        """Transform the transcript directly into a styled article.

        Raises:
            InvalidInputError: If nothing has been answered.
            LLMError: If the completion service fails.
        """
        transcript = build_transcript(questions, answers)
        if not transcript:
            raise InvalidInputError("At least one answered question is required")

        spec = get_style(style)
        response = await self.client.complete_streaming(
            build_quick_script_prompt(transcript, analysis, spec),
            system_prompt=spec.system_prompt,
            options=_style_options(spec),
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )
        if not response.text.strip():
            raise ProviderError("Model returned an empty article", provider=response.provider)

        script = make_styled_script(spec.name, response.text)
        logger.info(
            "Quick script generated",
            extra={"stage": "quick_script", "style": spec.name, "word_count": script.word_count},
        )
        return script

    async def generate_outline(
        self,
        style: str,
        questions: list[Question],
        answers: dict[str, Answer],
        analysis: Optional[AnalysisResult] = None,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Outline:
        """Plan the article.

        Raises:
            InvalidInputError: If nothing has been answered.
            LLMError: If the completion service fails.
        """
        transcript = build_transcript(questions, answers)
        if not transcript:
            raise InvalidInputError("At least one answered question is required")

        response = await self.client.complete_streaming(
            build_outline_prompt(transcript, analysis, get_style(style)),
            system_prompt=OUTLINE_SYSTEM_PROMPT,
            options=OUTLINE_OPTIONS,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )
        outline = parse_outline(response.text, analysis)
        logger.info(
            "Outline generated",
            extra={
                "stage": "outline",
                "style": style,
                "total_sections": outline.total_sections,
                "degraded": outline.degraded,
            },
        )
        return outline

    async def generate_section(
        self,
        outline: Optional[Outline],
        index: int,
        sections: dict[int, str],
        questions: list[Question],
        answers: dict[str, Answer],
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Write one section. Sections may be generated in any order.

        Raises:
            InvalidInputError: If there is no outline or the index is out of range.
            LLMError: If the completion service fails.
        """
        if outline is None:
            raise InvalidInputError("Generate an outline before writing sections")
        if not 0 <= index < outline.total_sections:
            raise InvalidInputError(
                f"Section index {index} out of range (0..{outline.total_sections - 1})"
            )

        response = await self.client.complete_streaming(
            build_section_prompt(
                outline,
                index,
                build_transcript(questions, answers),
                previous_sections_text(sections, index),
            ),
            system_prompt=SECTION_SYSTEM_PROMPT,
            options=SECTION_OPTIONS,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )
        if not response.text.strip():
            raise ProviderError(f"Model returned an empty section {index}", provider=response.provider)

        logger.info(
            "Section generated",
            extra={"stage": "section", "section_index": index, "latency_ms": response.latency_ms},
        )
        return response.text

    async def generate_all_sections(
        self,
        outline: Optional[Outline],
        sections: dict[int, str],
        questions: list[Question],
        answers: dict[str, Answer],
        on_section: Optional[SectionCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> dict[int, str]:
        """Generate sections 0..N-1 sequentially.

        Each finished section is handed to `on_section` before the next one
        starts, so a failure part-way keeps the earlier sections.

        Returns:
            The complete section table.
        """
        if outline is None:
            raise InvalidInputError("Generate an outline before writing sections")

        table = dict(sections)
        total = outline.total_sections
        for index in range(total):
            if on_progress is not None:
                await _maybe_await(on_progress(index + 1, total))
            text = await self.generate_section(
                outline,
                index,
                table,
                questions,
                answers,
                on_chunk=on_chunk,
                cancel_event=cancel_event,
            )
            table[index] = text
            if on_section is not None:
                await _maybe_await(on_section(index, text))
        return table

    def merge_draft(
        self,
        outline: Optional[Outline],
        sections: dict[int, str],
        existing: Optional[DraftScript] = None,
    ) -> Optional[DraftScript]:
        """Derive the draft; returns `existing` unchanged when content matches."""
        draft = merge_sections(outline, sections)
        if draft is not None and existing is not None and existing.content == draft.content:
            return existing
        return draft

    async def polish(
        self,
        style: str,
        draft: Optional[DraftScript],
        on_chunk: Optional[ChunkCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> StyledScript:
        """Rewrite the merged draft in a style.

        Raises:
            InvalidInputError: If there is no merged draft.
            LLMError: If the completion service fails.
        """
        if draft is None:
            raise InvalidInputError("Merge a complete draft before polishing")

        spec = get_style(style)
        response = await self.client.complete_streaming(
            build_polish_prompt(draft.content, spec),
            system_prompt=spec.system_prompt,
            options=_style_options(spec),
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )
        if not response.text.strip():
            raise ProviderError("Model returned an empty article", provider=response.provider)

        script = make_styled_script(spec.name, response.text)
        logger.info(
            "Final script polished",
            extra={"stage": "final", "style": spec.name, "word_count": script.word_count},
        )
        return script

    def edit_script(self, script: StyledScript, content: str) -> StyledScript:
        """Apply a manual edit, recounting words and stamping last_edited_at."""
        words = count_words(content)
        return script.model_copy(
            update={
                "content": content,
                "word_count": words,
                "estimated_read_time": estimate_read_time(words),
                "last_edited_at": datetime.now(timezone.utc),
            }
        )
