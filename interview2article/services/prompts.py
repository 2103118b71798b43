"""Prompt templates for the interview pipeline.

Contains system and user prompts for:
1. Content analysis - summarizing the background material
2. Question generation - live next question and bulk preview list
3. Script synthesis - quick transform, outline, sections and polish
"""

from __future__ import annotations

import json
from typing import Optional

from interview2article.models import (
    AnalysisResult,
    Answer,
    ContentSource,
    Outline,
    Question,
)

from .styles import StyleSpec

LANGUAGE_RULE = "Always answer in the same language as the source material and answers."


# ==============================================================================
# Content Analysis Prompts
# ==============================================================================

ANALYSIS_SYSTEM_PROMPT = (
    "You are a professional interview assistant. You analyze background "
    "material and prepare insightful interview questions. " + LANGUAGE_RULE
)


def build_analysis_prompt(sources: list[ContentSource]) -> str:
    """Build user prompt for content analysis.

    Args:
        sources: Content sources, in the order they were added.

    Returns:
        Formatted user prompt string.
    """
    parts = ["Analyze the following material to prepare for an interview:", ""]
    for index, source in enumerate(sources, start=1):
        parts.extend([
            f"## Material {index} ({source.type.value})",
            f"Title: {source.title or 'Untitled'}",
            f"Content: {source.content}",
            "",
        ])

    parts.extend([
        "Provide:",
        "1. A summary of the material (at most 200 words)",
        "2. 3-5 key topics and highlights",
        "3. 5-8 suggested directions for interview questions",
        "4. Interview difficulty (beginner / intermediate / advanced)",
        "",
        "Return JSON in this format:",
        "```json",
        json.dumps(
            {
                "summary": "...",
                "keyTopics": ["topic 1", "topic 2"],
                "suggestedQuestions": ["question 1", "question 2"],
                "difficulty": "intermediate",
            },
            indent=2,
        ),
        "```",
    ])
    return "\n".join(parts)


# ==============================================================================
# Question Prompts
# ==============================================================================

QUESTION_SYSTEM_PROMPT = (
    "You are an experienced interview host. Based on the context and the "
    "conversation so far, you ask deep, thought-provoking questions. " + LANGUAGE_RULE
)


def format_qa_history(questions: list[Question], answers: dict[str, Answer]) -> str:
    """Render prior questions with their answers (or 'not answered')."""
    if not questions:
        return "No questions asked yet."

    blocks = []
    for index, question in enumerate(questions, start=1):
        answer = answers.get(question.id)
        if answer is None:
            answer_text = "(not answered)"
        else:
            answer_text = answer.content
        blocks.append(f"Q{index}: {question.content}\nA{index}: {answer_text}")
    return "\n\n".join(blocks)


def build_question_prompt(
    analysis: Optional[AnalysisResult],
    questions: list[Question],
    answers: dict[str, Answer],
    liked_examples: Optional[list[str]] = None,
    disliked_examples: Optional[list[str]] = None,
) -> str:
    """Build user prompt for the next live question.

    Preview feedback is passed as soft hints only: the model is told what the
    user liked and disliked, never forced to reuse those questions.
    """
    summary = analysis.summary if analysis else "No specific context"
    topics = ", ".join(analysis.key_topics) if analysis and analysis.key_topics else "No specific topics"

    parts = [
        "Generate the next in-depth interview question from the context and history below.",
        "",
        "## Interview context",
        f"Summary: {summary}",
        f"Key topics: {topics}",
        "",
        "## Questions and answers so far",
        format_qa_history(questions, answers),
    ]

    if liked_examples or disliked_examples:
        parts.extend(["", "## User preferences"])
        if liked_examples:
            parts.append("The user liked questions like:")
            parts.extend(f"- {q}" for q in liked_examples)
        if disliked_examples:
            parts.append("The user disliked questions like:")
            parts.extend(f"- {q}" for q in disliked_examples)

    parts.extend([
        "",
        "The question must be:",
        "1. Deep and thought-provoking",
        "2. Relevant to the context without repeating earlier questions",
        "3. Likely to draw out the interviewee's own insights",
        "4. Of moderate length and easy to understand",
        "",
        "Return JSON:",
        "```json",
        json.dumps(
            {
                "question": "...",
                "category": "...",
                "isFollowUp": False,
                "explanation": "why this question",
                "tone": "curious",
            },
            indent=2,
        ),
        "```",
    ])
    return "\n".join(parts)


PREVIEW_SYSTEM_PROMPT = (
    "You are an interview planner. You draft a varied list of interview "
    "questions that the user will curate before the interview. " + LANGUAGE_RULE
)


def build_preview_questions_prompt(
    analysis: AnalysisResult,
    sources: list[ContentSource],
    count: int,
) -> str:
    """Build user prompt for the bulk preview question list."""
    titles = [s.title for s in sources if s.title]
    parts = [
        f"Draft {count} interview questions for the material summarized below.",
        "",
        f"Summary: {analysis.summary}",
        f"Key topics: {', '.join(analysis.key_topics) or 'none'}",
    ]
    if titles:
        parts.append(f"Source titles: {', '.join(titles)}")
    if analysis.suggested_questions:
        parts.append("Suggested directions:")
        parts.extend(f"- {q}" for q in analysis.suggested_questions)

    parts.extend([
        "",
        "Order them from warm-up to deep. Return a JSON array:",
        "```json",
        json.dumps(
            [{"question": "...", "category": "...", "purpose": "what this question uncovers"}],
            indent=2,
        ),
        "```",
    ])
    return "\n".join(parts)


# ==============================================================================
# Script Synthesis Prompts
# ==============================================================================


def build_transcript(questions: list[Question], answers: dict[str, Answer]) -> str:
    """Render the interview as markdown; skipped questions are left out."""
    blocks = []
    number = 0
    for question in questions:
        answer = answers.get(question.id)
        if answer is None or answer.skipped:
            continue
        number += 1
        blocks.append(f"**{number}. {question.content}**\n\n{answer.content}\n")
    return "\n".join(blocks)


def build_quick_script_prompt(
    transcript: str,
    analysis: Optional[AnalysisResult],
    style: StyleSpec,
) -> str:
    """Build user prompt for the one-shot styled article."""
    background = analysis.summary if analysis else "No specific background"
    return "\n".join([
        f"Turn the interview below into a finished article ({style.label} style).",
        "",
        "## Background",
        background,
        "",
        "## Interview",
        transcript or "(no answers)",
        "",
        "## Style requirements",
        style.instruction,
        "",
        "Use Markdown. Return only the article, not JSON.",
    ])


OUTLINE_SYSTEM_PROMPT = (
    "You are a senior editor who plans long-form articles from interview "
    "transcripts. You produce precise, well-balanced outlines. " + LANGUAGE_RULE
)


def build_outline_prompt(
    transcript: str,
    analysis: Optional[AnalysisResult],
    style: StyleSpec,
) -> str:
    """Build user prompt for outline generation."""
    background = analysis.summary if analysis else "No specific background"
    return "\n".join([
        "Plan an article outline based on this interview.",
        "",
        "## Background",
        background,
        "",
        "## Interview",
        transcript or "(no answers)",
        "",
        f"## Target style: {style.label}",
        style.description,
        "",
        "Use 3-6 sections. Return JSON:",
        "```json",
        json.dumps(
            {
                "title": "...",
                "estimatedWords": 2000,
                "sections": [
                    {
                        "sectionNumber": 1,
                        "title": "...",
                        "theme": "...",
                        "keyPoints": ["..."],
                        "tone": "...",
                        "estimatedWords": 400,
                    }
                ],
            },
            indent=2,
        ),
        "```",
    ])


SECTION_SYSTEM_PROMPT = (
    "You are a long-form writer. You write one section of an article at a "
    "time, keeping continuity with what has already been written. " + LANGUAGE_RULE
)


def build_section_prompt(
    outline: Outline,
    index: int,
    transcript: str,
    previous_content: str,
) -> str:
    """Build user prompt for one outline section.

    Args:
        outline: The full outline.
        index: 0-based section index.
        transcript: Interview markdown.
        previous_content: Already generated earlier sections, joined.

    Returns:
        Formatted user prompt string.
    """
    section = outline.sections[index]
    next_section = outline.sections[index + 1] if index + 1 < len(outline.sections) else None

    parts = [
        f'Write section {index + 1} of {outline.total_sections} of the article "{outline.title}".',
        "",
        "## Outline",
        "\n".join(f"{s.section_number}. {s.title}: {s.theme}" for s in outline.sections),
        "",
        "## This section",
        f"Title: {section.title}",
        f"Theme: {section.theme}",
        f"Key points: {', '.join(section.key_points) or 'none'}",
        f"Tone: {section.tone or 'consistent with the article'}",
        f"Target length: about {section.estimated_words or 400} words",
        "",
        "## Interview",
        transcript or "(no answers)",
    ]

    if previous_content:
        parts.extend(["", "## Already written (do not repeat)", previous_content])
    if next_section is not None:
        parts.extend([
            "",
            "## Next section (lead into it, do not write it)",
            f"{next_section.title}: {next_section.theme}",
        ])

    parts.extend(["", "Start with a '## ' heading. Return only the section in Markdown."])
    return "\n".join(parts)


def build_polish_prompt(draft: str, style: StyleSpec) -> str:
    """Build user prompt for polishing the merged draft into a style."""
    return "\n".join([
        f"Polish the draft below into the final article ({style.label} style).",
        "",
        "## Style requirements",
        style.instruction,
        "",
        "## Draft",
        draft,
        "",
        "Keep the structure and facts. Return only the article in Markdown.",
    ])
