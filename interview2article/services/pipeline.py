"""Interview pipeline facade.

Every user-level trigger is one method here. Each method reads the current
state, calls the stage that does the work, and commits a new state value
through the container. Model-backed actions run inside a stage guard and
stream their accumulated text into the container as it arrives.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Optional

from interview2article.llm import ChunkCallback, LLMClient, get_client
from interview2article.models import (
    AnalysisResult,
    ContentSource,
    ContentSourceType,
    DraftScript,
    GenerationMode,
    Outline,
    PipelineState,
    PreviewQuestion,
    Question,
    QuestionFeedback,
    ScriptKind,
    SessionState,
    StageName,
    StyledScript,
)

from .analysis_service import ContentAnalysisStage
from .errors import InvalidInputError, NotFoundError
from .interview_session import InterviewSessionController
from .question_service import DEFAULT_PREVIEW_COUNT, QuestionGenerationEngine
from .script_export import MEDIA_TYPES, ExportFormat, export_filename, render_export
from .script_service import ProgressCallback, ScriptSynthesisPipeline
from .snapshot_store import restore_state
from .state_container import PipelineStateContainer
from .styles import get_style

logger = logging.getLogger(__name__)


class InterviewPipeline:
    """Facade over the pipeline stages and the state container.

    Args:
        container: State holder. Defaults to one backed by the configured store.
        client: Completion client shared by all stages.
        question_engine: Override for the question engine (e.g. seeded rng).
    """

    def __init__(
        self,
        container: Optional[PipelineStateContainer] = None,
        client: Optional[LLMClient] = None,
        question_engine: Optional[QuestionGenerationEngine] = None,
        session_controller: Optional[InterviewSessionController] = None,
    ):
        self.container = container or PipelineStateContainer()
        self._client = client
        self.analysis_stage = ContentAnalysisStage(client)
        self.question_engine = question_engine or QuestionGenerationEngine(client)
        self.session_controller = session_controller or InterviewSessionController()
        self.script_pipeline = ScriptSynthesisPipeline(client)
        self._cancel_events: dict[StageName, asyncio.Event] = {}

    @property
    def state(self) -> PipelineState:
        return self.container.state

    def _commit(self, **changes: Any) -> PipelineState:
        return self.container.commit(self.state.model_copy(update=changes))

    def _commit_content(self, **changes: Any) -> PipelineState:
        return self._commit(content=self.state.content.model_copy(update=changes))

    def _commit_session(self, session: SessionState) -> PipelineState:
        return self._commit(session=session)

    def _commit_result(self, **changes: Any) -> PipelineState:
        return self._commit(result=self.state.result.model_copy(update=changes))

    def _streamer(self, stage: StageName, on_chunk: Optional[ChunkCallback]) -> ChunkCallback:
        async def handle(delta: str, accumulated: str) -> None:
            self.container.set_streaming(stage, accumulated)
            if on_chunk is not None:
                result = on_chunk(delta, accumulated)
                if inspect.isawaitable(result):
                    await result

        return handle

    def _cancel_event(self, stage: StageName) -> asyncio.Event:
        event = asyncio.Event()
        self._cancel_events[stage] = event
        return event

    def cancel(self, stage: StageName) -> bool:
        """Request cooperative cancellation of a running stage.

        Returns:
            True if the stage was running and has been signalled.
        """
        event = self._cancel_events.get(stage)
        if event is None or not self.state.stage(stage).is_running:
            return False
        event.set()
        logger.info(f"Cancellation requested for stage {stage.value}")
        return True

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def add_source(
        self,
        source_type: ContentSourceType,
        content: str,
        title: str = "",
        metadata: Optional[dict[str, Any]] = None,
    ) -> ContentSource:
        """Add a content source.

        Raises:
            InvalidInputError: If the content is blank.
        """
        if not content or not content.strip():
            raise InvalidInputError("Source content must not be empty")

        source = ContentSource(
            type=source_type,
            title=title.strip(),
            content=content.strip(),
            metadata=metadata or {},
        )
        self._commit_content(sources=[*self.state.content.sources, source])
        logger.info(f"Added {source_type.value} source {source.id}")
        return source

    def remove_source(self, source_id: str) -> None:
        """Remove a content source by id.

        Raises:
            NotFoundError: If no source has this id.
        """
        sources = self.state.content.sources
        remaining = [s for s in sources if s.id != source_id]
        if len(remaining) == len(sources):
            raise NotFoundError("Source", source_id)
        self._commit_content(sources=remaining)

    async def analyze_content(self) -> AnalysisResult:
        """Analyze all sources; overwrites any previous analysis."""
        async with self.container.run_stage(StageName.analysis):
            result = await self.analysis_stage.analyze(self.state.content.sources)
            self._commit_content(analysis_result=result)
        return result

    async def generate_preview_questions(
        self, count: int = DEFAULT_PREVIEW_COUNT
    ) -> list[PreviewQuestion]:
        """Regenerate the preview list; previous feedback is cleared."""
        async with self.container.run_stage(StageName.preview):
            previews = await self.question_engine.generate_preview_questions(
                self.state.content.analysis_result,
                self.state.content.sources,
                count=count,
            )
            self._commit_content(preview_questions=previews, question_feedback={})
        return previews

    def set_question_feedback(self, index: int, feedback: QuestionFeedback) -> None:
        """Tag a preview question.

        Raises:
            NotFoundError: If the index is out of range.
        """
        if not 0 <= index < len(self.state.content.preview_questions):
            raise NotFoundError("Preview question", str(index))
        feedback_map = {**self.state.content.question_feedback, index: feedback}
        self._commit_content(question_feedback=feedback_map)

    # ------------------------------------------------------------------
    # Interview
    # ------------------------------------------------------------------

    async def next_question(self, on_chunk: Optional[ChunkCallback] = None) -> Question:
        """Produce and append the next interview question."""
        async with self.container.run_stage(StageName.question):
            content = self.state.content
            session = self.state.session
            question, consumed = await self.question_engine.next_question(
                content.analysis_result,
                session.questions,
                session.answers,
                content.preview_questions,
                content.question_feedback,
                on_chunk=self._streamer(StageName.question, on_chunk),
                cancel_event=self._cancel_event(StageName.question),
            )

            # Re-read: state may have moved while the model was streaming
            content = self.state.content
            if consumed is not None:
                previews = list(content.preview_questions)
                previews[consumed] = previews[consumed].model_copy(update={"consumed": True})
                content = content.model_copy(update={"preview_questions": previews})

            session = self.session_controller.add_question(self.state.session, question)
            self._commit(content=content, session=session)
        return question

    async def _after_answer(self, on_chunk: Optional[ChunkCallback]) -> Optional[Question]:
        session = self.state.session
        if not self.session_controller.needs_next_question(session):
            return None
        if self.state.stage(StageName.question).is_running:
            return None
        return await self.next_question(on_chunk=on_chunk)

    async def submit_answer(
        self,
        question_id: str,
        text: str,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> Optional[Question]:
        """Record an answer; generate the next question once all are answered.

        Returns:
            The newly generated question, or None if none was needed.
        """
        session = self.session_controller.submit_answer(self.state.session, question_id, text)
        self._commit_session(session)
        return await self._after_answer(on_chunk)

    async def skip_question(
        self,
        question_id: str,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> Optional[Question]:
        """Skip a question; behaves like submit_answer with the skip sentinel."""
        session = self.session_controller.skip(self.state.session, question_id)
        self._commit_session(session)
        return await self._after_answer(on_chunk)

    def complete_interview(self) -> SessionState:
        session = self.session_controller.complete(self.state.session)
        self._commit_session(session)
        return session

    def interview_progress(self) -> dict:
        return self.session_controller.progress(self.state.session)

    # ------------------------------------------------------------------
    # Script synthesis
    # ------------------------------------------------------------------

    async def generate_quick_script(
        self,
        style: Optional[str] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> StyledScript:
        """Quick mode: transcript straight to `interview_scripts[style]`."""
        style_name = get_style(style or self.state.result.current_style).name
        async with self.container.run_stage(StageName.quick_script):
            session = self.state.session
            script = await self.script_pipeline.generate_quick(
                style_name,
                session.questions,
                session.answers,
                self.state.content.analysis_result,
                on_chunk=self._streamer(StageName.quick_script, on_chunk),
                cancel_event=self._cancel_event(StageName.quick_script),
            )
            self._commit_result(
                interview_scripts={**self.state.result.interview_scripts, style_name: script},
                current_style=style_name,
                generation_mode=GenerationMode.quick,
            )
        return script

    async def generate_outline(
        self,
        style: Optional[str] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> Outline:
        """Outline mode step 1. Discards sections and the draft of any previous outline.

        Rejected with StageBusyError while sections are being written.
        """
        style_name = get_style(style or self.state.result.current_style).name
        async with self.container.run_stage(StageName.outline, blocked_by=(StageName.section,)):
            session = self.state.session
            outline = await self.script_pipeline.generate_outline(
                style_name,
                session.questions,
                session.answers,
                self.state.content.analysis_result,
                on_chunk=self._streamer(StageName.outline, on_chunk),
                cancel_event=self._cancel_event(StageName.outline),
            )
            self._commit_result(
                outline=outline,
                sections={},
                current_section=0,
                draft_script=None,
                current_style=style_name,
                generation_mode=GenerationMode.outline,
            )
        return outline

    def _store_section(self, outline: Optional[Outline], index: int, text: str) -> None:
        result = self.state.result
        if result.outline is not outline:
            logger.warning(
                f"Dropping section {index}: outline changed while it was generated",
                extra={"section": index},
            )
            return
        sections = {**result.sections, index: text}
        changes: dict[str, Any] = {"sections": sections, "current_section": index}
        if result.draft_script is not None:
            # Keep the derived draft consistent with the section table
            changes["draft_script"] = self.script_pipeline.merge_draft(
                result.outline, sections, result.draft_script
            )
        self._commit_result(**changes)

    async def generate_section(
        self,
        index: int,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        """Outline mode step 2, one section (any order)."""
        async with self.container.run_stage(StageName.section, blocked_by=(StageName.outline,)):
            result = self.state.result
            session = self.state.session
            text = await self.script_pipeline.generate_section(
                result.outline,
                index,
                result.sections,
                session.questions,
                session.answers,
                on_chunk=self._streamer(StageName.section, on_chunk),
                cancel_event=self._cancel_event(StageName.section),
            )
            self._store_section(result.outline, index, text)
        return text

    async def generate_all_sections(
        self,
        on_progress: Optional[ProgressCallback] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> Optional[DraftScript]:
        """Outline mode step 2, all sections in order, then merge.

        A failure part-way keeps every section finished before it.
        """
        async with self.container.run_stage(StageName.section, blocked_by=(StageName.outline,)):
            result = self.state.result
            session = self.state.session
            streamer = self._streamer(StageName.section, on_chunk)

            async def on_section(index: int, text: str) -> None:
                self._store_section(result.outline, index, text)

            await self.script_pipeline.generate_all_sections(
                result.outline,
                result.sections,
                session.questions,
                session.answers,
                on_section=on_section,
                on_progress=on_progress,
                on_chunk=streamer,
                cancel_event=self._cancel_event(StageName.section),
            )
        return self.merge_draft()

    def merge_draft(self) -> Optional[DraftScript]:
        """Outline mode step 3. Returns None until every section exists."""
        result = self.state.result
        draft = self.script_pipeline.merge_draft(result.outline, result.sections, result.draft_script)
        if draft is not result.draft_script:
            self._commit_result(draft_script=draft)
        return draft

    async def polish(
        self,
        style: Optional[str] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> StyledScript:
        """Outline mode step 4: draft to `final_scripts[style]`."""
        style_name = get_style(style or self.state.result.current_style).name
        async with self.container.run_stage(StageName.final):
            script = await self.script_pipeline.polish(
                style_name,
                self.state.result.draft_script,
                on_chunk=self._streamer(StageName.final, on_chunk),
                cancel_event=self._cancel_event(StageName.final),
            )
            self._commit_result(
                final_scripts={**self.state.result.final_scripts, style_name: script},
                current_style=style_name,
            )
        return script

    def _scripts(self, kind: ScriptKind) -> dict[str, StyledScript]:
        result = self.state.result
        return result.interview_scripts if kind == ScriptKind.quick else result.final_scripts

    def get_script(self, kind: ScriptKind, style: str) -> StyledScript:
        """Raises NotFoundError if no artifact exists for this kind and style."""
        script = self._scripts(kind).get(style)
        if script is None:
            raise NotFoundError(f"{kind.value.capitalize()} script", style)
        return script

    def edit_script(self, kind: ScriptKind, style: str, content: str) -> StyledScript:
        """Apply a manual edit to an existing styled script."""
        if not content or not content.strip():
            raise InvalidInputError("Script content must not be empty")

        edited = self.script_pipeline.edit_script(self.get_script(kind, style), content)
        scripts = {**self._scripts(kind), style: edited}
        if kind == ScriptKind.quick:
            self._commit_result(interview_scripts=scripts)
        else:
            self._commit_result(final_scripts=scripts)
        return edited

    async def switch_style(
        self,
        style: str,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> StyledScript:
        """Show `style` in the active mode, generating it if it does not exist yet."""
        style_name = get_style(style).name
        result = self.state.result
        if result.generation_mode == GenerationMode.quick:
            existing = result.interview_scripts.get(style_name)
            if existing is None:
                return await self.generate_quick_script(style_name, on_chunk=on_chunk)
        else:
            existing = result.final_scripts.get(style_name)
            if existing is None:
                return await self.polish(style_name, on_chunk=on_chunk)

        self._commit_result(current_style=style_name)
        return existing

    def switch_mode(self, mode: GenerationMode) -> GenerationMode:
        """Change the active sub-pipeline; artifacts of both modes are kept."""
        if self.state.result.generation_mode != mode:
            self._commit_result(generation_mode=mode)
        return mode

    def export_script(
        self,
        kind: ScriptKind,
        style: str,
        export_format: ExportFormat = ExportFormat.markdown,
    ) -> tuple[str, str, str]:
        """Render a styled script for download.

        Returns:
            (document text, filename, media type).
        """
        script = self.get_script(kind, style)
        outline = self.state.result.outline
        title = outline.title if kind == ScriptKind.final and outline else None
        return (
            render_export(script, export_format, title=title),
            export_filename(style, export_format),
            MEDIA_TYPES[export_format],
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load_snapshot(self) -> bool:
        """Restore the persisted state, if any. In-flight flags come back idle.

        Returns:
            True if a snapshot was restored.
        """
        payload = await self.container.store.load(self.container.snapshot_key)
        if payload is None:
            return False
        await self.container.replace(restore_state(payload), persist=False)
        logger.info(f"Restored snapshot from {self.container.snapshot_key}")
        return True

    async def save_snapshot(self) -> None:
        await self.container.flush()

    async def reset(self) -> PipelineState:
        """Discard all state and clear the persisted snapshot."""
        for event in self._cancel_events.values():
            event.set()
        await self.container.replace(PipelineState(), persist=False)
        await self.container.store.clear(self.container.snapshot_key)
        logger.info("Pipeline reset")
        return self.state

    async def test_connection(self) -> dict:
        client = self._client or get_client()
        return await client.test_connection()


# Module-level singleton instance
_default_pipeline: Optional[InterviewPipeline] = None


def get_pipeline() -> InterviewPipeline:
    """Get the default pipeline singleton."""
    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = InterviewPipeline()
    return _default_pipeline


def set_pipeline(pipeline: InterviewPipeline | None) -> None:
    """Replace the default pipeline (for testing)."""
    global _default_pipeline
    _default_pipeline = pipeline
