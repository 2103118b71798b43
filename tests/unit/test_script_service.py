"""Unit tests for script synthesis.

Tests cover:
- Outline parsing and its fallback
- Draft merge gating and idempotency
- Section generation context and failure isolation
- Quick mode and polish prerequisites
- Blank model output rejected as a provider failure
"""

import json

import pytest

from interview2article.llm import ProviderError
from interview2article.models import AnalysisResult, Answer, Outline, OutlineSection, Question
from interview2article.services.errors import InvalidInputError
from interview2article.services.script_service import (
    ScriptSynthesisPipeline,
    fallback_outline,
    make_styled_script,
    merge_sections,
    parse_outline,
)


def make_outline(count: int) -> Outline:
    sections = [
        OutlineSection(section_number=i + 1, title=f"S{i + 1}", theme=f"theme {i + 1}")
        for i in range(count)
    ]
    return Outline(title="T", total_sections=count, sections=sections)


def make_transcript() -> tuple[list[Question], dict[str, Answer]]:
    questions = [Question(content="Why bread?"), Question(content="Skipped one?")]
    answers = {
        questions[0].id: Answer(content="Because mornings smell better."),
        questions[1].id: Answer(content="(skipped)", skipped=True),
    }
    return questions, answers


class TestParseOutline:
    def test_sections_renumbered(self):
        text = json.dumps({
            "title": "Title",
            "sections": [
                {"sectionNumber": 7, "title": "A", "keyPoints": ["k"], "estimatedWords": 300},
                {"title": "B"},
            ],
        })
        outline = parse_outline(text)

        assert outline.title == "Title"
        assert outline.total_sections == 2
        assert [s.section_number for s in outline.sections] == [1, 2]
        assert outline.sections[0].key_points == ["k"]
        assert outline.estimated_words == 300

    def test_fallback(self):
        outline = parse_outline("Sorry, I can't do that.")
        assert outline.degraded
        assert outline.total_sections == len(outline.sections) == 3

    def test_fallback_uses_first_topic_as_title(self):
        analysis = AnalysisResult(summary="s", key_topics=["Sourdough"])
        assert fallback_outline(analysis).title == "Sourdough"


class TestMergeSections:
    """Draft is a pure function of outline + sections."""

    def test_none_without_outline(self):
        assert merge_sections(None, {0: "x"}) is None

    def test_none_with_missing_section(self):
        assert merge_sections(make_outline(3), {0: "a", 2: "c"}) is None

    def test_joins_in_index_order(self):
        draft = merge_sections(make_outline(3), {2: "c c", 0: "a", 1: "b"})

        assert draft.content == "a\n\nb\n\nc c"
        assert draft.word_count == 4
        assert draft.sections_count == draft.total_sections == 3
        assert draft.estimated_read_time == 1

    def test_idempotent(self):
        pipeline = ScriptSynthesisPipeline()
        outline = make_outline(2)
        sections = {0: "one", 1: "two"}

        first = pipeline.merge_draft(outline, sections)
        second = pipeline.merge_draft(outline, sections, existing=first)

        assert second is first
        assert merge_sections(outline, sections).content == first.content

    def test_changed_section_replaces_draft(self):
        pipeline = ScriptSynthesisPipeline()
        outline = make_outline(2)
        first = pipeline.merge_draft(outline, {0: "one", 1: "two"})
        second = pipeline.merge_draft(outline, {0: "one", 1: "deux"}, existing=first)

        assert second is not first
        assert second.content.endswith("deux")


class TestSections:
    @pytest.mark.asyncio
    async def test_requires_outline(self, llm_client):
        questions, answers = make_transcript()
        with pytest.raises(InvalidInputError):
            await ScriptSynthesisPipeline(llm_client).generate_section(None, 0, {}, questions, answers)

    @pytest.mark.asyncio
    async def test_index_out_of_range(self, llm_client):
        questions, answers = make_transcript()
        with pytest.raises(InvalidInputError):
            await ScriptSynthesisPipeline(llm_client).generate_section(make_outline(2), 2, {}, questions, answers)

    @pytest.mark.asyncio
    async def test_prompt_holds_previous_sections_and_next_theme(self, make_client):
        client, provider = make_client(replies=["## S2\n\nbody"])
        questions, answers = make_transcript()

        await ScriptSynthesisPipeline(client).generate_section(
            make_outline(3), 1, {0: "EARLIER SECTION TEXT", 2: "LATER TEXT"}, questions, answers
        )

        prompt = provider.requests[0].messages[-1].content
        assert "EARLIER SECTION TEXT" in prompt
        assert "LATER TEXT" not in prompt
        assert "theme 3" in prompt
        assert "Because mornings smell better." in prompt
        assert "Skipped one?" not in prompt

    @pytest.mark.asyncio
    async def test_all_sections_failure_keeps_earlier(self, make_client):
        client, _ = make_client(replies=["first", "second", ProviderError("down", provider="fake")])
        questions, answers = make_transcript()
        stored: dict[int, str] = {}
        progress: list[tuple[int, int]] = []

        with pytest.raises(ProviderError):
            await ScriptSynthesisPipeline(client).generate_all_sections(
                make_outline(4),
                {},
                questions,
                answers,
                on_section=lambda i, text: stored.__setitem__(i, text),
                on_progress=lambda current, total: progress.append((current, total)),
            )

        assert stored == {0: "first", 1: "second"}
        assert progress == [(1, 4), (2, 4), (3, 4)]

    @pytest.mark.asyncio
    async def test_blank_section_output_is_provider_error(self, make_client):
        client, _ = make_client(replies=["first", "   "])
        questions, answers = make_transcript()
        stored: dict[int, str] = {}

        with pytest.raises(ProviderError, match="empty section 1"):
            await ScriptSynthesisPipeline(client).generate_all_sections(
                make_outline(3),
                {},
                questions,
                answers,
                on_section=lambda i, text: stored.__setitem__(i, text),
            )

        assert stored == {0: "first"}


class TestStyledScripts:
    @pytest.mark.asyncio
    async def test_quick_requires_answers(self, llm_client):
        with pytest.raises(InvalidInputError):
            await ScriptSynthesisPipeline(llm_client).generate_quick("default", [], {})

    @pytest.mark.asyncio
    async def test_quick_uses_style_temperature(self, make_client):
        client, provider = make_client(replies=["# Article\n\nText here"])
        questions, answers = make_transcript()

        script = await ScriptSynthesisPipeline(client).generate_quick("emotional", questions, answers)

        assert script.style == "emotional"
        assert script.word_count == 3
        assert provider.requests[0].temperature == 0.9

    @pytest.mark.asyncio
    async def test_unknown_style_falls_back(self, make_client):
        client, _ = make_client(replies=["text"])
        questions, answers = make_transcript()
        script = await ScriptSynthesisPipeline(client).generate_quick("gothic", questions, answers)
        assert script.style == "default"

    @pytest.mark.asyncio
    async def test_polish_requires_draft(self, llm_client):
        with pytest.raises(InvalidInputError):
            await ScriptSynthesisPipeline(llm_client).polish("tech", None)

    @pytest.mark.asyncio
    async def test_blank_quick_output_is_provider_error(self, make_client):
        client, _ = make_client(replies=["  \n "])
        questions, answers = make_transcript()

        with pytest.raises(ProviderError, match="empty article"):
            await ScriptSynthesisPipeline(client).generate_quick("default", questions, answers)

    @pytest.mark.asyncio
    async def test_blank_polish_output_is_provider_error(self, make_client):
        client, _ = make_client(replies=["\n\n"])
        draft = merge_sections(make_outline(2), {0: "one", 1: "two"})

        with pytest.raises(ProviderError, match="empty article"):
            await ScriptSynthesisPipeline(client).polish("tech", draft)

    def test_edit_sets_last_edited_at(self):
        script = make_styled_script("qa", "one two")
        edited = ScriptSynthesisPipeline().edit_script(script, "one two three four")

        assert edited.last_edited_at is not None
        assert edited.word_count == 4
        assert edited.generated_at == script.generated_at
        assert script.last_edited_at is None
