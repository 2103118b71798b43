"""Article style registry.

One table shared by the Quick and Outline sub-pipelines. Unknown style names
resolve to the default style.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_STYLE = "default"


@dataclass(frozen=True)
class StyleSpec:
    """How an article in one style is written."""

    name: str
    label: str
    description: str
    system_prompt: str
    temperature: float
    template_id: str
    instruction: str


STYLE_REGISTRY: dict[str, StyleSpec] = {
    "default": StyleSpec(
        name="default",
        label="Standard interview",
        description="Clear structure, smooth reading, faithful to the interviewee",
        system_prompt=(
            "You are a professional editor who turns interview Q&A into a "
            "well-structured, readable interview article."
        ),
        temperature=0.7,
        template_id="interview_article",
        instruction=(
            "Add a title and subtitles, keep the logic of the conversation, "
            "polish the language lightly and never change the speaker's meaning."
        ),
    ),
    "qa": StyleSpec(
        name="qa",
        label="Q&A",
        description="Keeps the original question/answer format, fixes typos",
        system_prompt=(
            "You are a careful copy editor. You preserve the question and answer "
            "format and only fix typos, grammar and obvious transcription errors."
        ),
        temperature=0.3,
        template_id="qa_transcript",
        instruction=(
            "Keep every question and answer in order, in Q/A form. Fix typos and "
            "punctuation only; do not merge, reorder or summarize answers."
        ),
    ),
    "emotional": StyleSpec(
        name="emotional",
        label="Emotional",
        description="Warm and moving, speaks to the reader's pain points",
        system_prompt=(
            "You are a feature writer known for emotionally resonant stories "
            "built from real interviews."
        ),
        temperature=0.9,
        template_id="feature_story",
        instruction=(
            "Write a narrative that draws the reader in, highlights turning points "
            "and feelings, and quotes the interviewee at the most moving moments."
        ),
    ),
    "tech": StyleSpec(
        name="tech",
        label="Technology",
        description="Rational and objective, practical, professionally deep",
        system_prompt=(
            "You are a technology journalist. You write precise, objective and "
            "practical articles for a professional audience."
        ),
        temperature=0.3,
        template_id="tech_report",
        instruction=(
            "Organize the material around concepts, methods and takeaways. Prefer "
            "concrete facts and examples from the answers; avoid hype."
        ),
    ),
    "literary": StyleSpec(
        name="literary",
        label="Literary",
        description="Lyrical and reflective, with philosophical depth",
        system_prompt=(
            "You are an essayist who turns conversations into literary prose "
            "with imagery and reflection."
        ),
        temperature=0.8,
        template_id="literary_essay",
        instruction=(
            "Write flowing prose with vivid imagery and reflective passages while "
            "staying true to what the interviewee said."
        ),
    ),
    "business": StyleSpec(
        name="business",
        label="Business",
        description="Data driven, analytical, actionable",
        system_prompt=(
            "You are a business analyst and writer. You turn interviews into "
            "insightful, actionable business articles."
        ),
        temperature=0.4,
        template_id="business_analysis",
        instruction=(
            "Structure the article around insights, evidence and practical "
            "recommendations. Surface numbers and decisions from the answers."
        ),
    ),
}


def get_style(name: str | None) -> StyleSpec:
    """Resolve a style name, falling back to the default style."""
    if name and name in STYLE_REGISTRY:
        return STYLE_REGISTRY[name]
    return STYLE_REGISTRY[DEFAULT_STYLE]


def list_styles() -> list[StyleSpec]:
    """All registered styles in display order."""
    return list(STYLE_REGISTRY.values())
