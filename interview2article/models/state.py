"""Pipeline state tree.

The whole pipeline is one immutable value: every action builds a new
PipelineState with model_copy(update=...) and commits it through the state
container. `stages` and `streaming` are transient; they are stripped from
snapshots and reset on restore.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .content import AnalysisResult, ContentSource
from .interview import Answer, PreviewQuestion, Question, QuestionFeedback
from .script import DraftScript, GenerationMode, Outline, StyledScript

SNAPSHOT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return f"session_{uuid4().hex[:12]}"


class StageName(str, Enum):
    """Guarded pipeline stages; at most one run of each at a time."""
    analysis = "analysis"
    preview = "preview"
    question = "question"
    quick_script = "quick_script"
    outline = "outline"
    section = "section"
    final = "final"


class StageStatus(str, Enum):
    """Lifecycle of a single stage run."""
    idle = "idle"
    running = "running"
    done = "done"
    failed = "failed"


class InterviewStep(str, Enum):
    """Coarse position of the user in the flow."""
    content_input = "content_input"
    interview = "interview"
    completed = "completed"


class StageState(BaseModel):
    """Status and last error of one stage."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    status: StageStatus = StageStatus.idle
    error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status == StageStatus.running


def _idle_stages() -> dict[StageName, StageState]:
    return {stage: StageState() for stage in StageName}


class ContentState(BaseModel):
    """Background material, its analysis and the curated preview list."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    sources: list[ContentSource] = Field(default_factory=list)
    analysis_result: Optional[AnalysisResult] = None
    preview_questions: list[PreviewQuestion] = Field(default_factory=list)
    # Keyed by index into preview_questions
    question_feedback: dict[int, QuestionFeedback] = Field(default_factory=dict)


class SessionState(BaseModel):
    """Live interview: ordered questions and answers keyed by question id."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    session_id: str = Field(default_factory=new_session_id)
    created_at: datetime = Field(default_factory=_utcnow)
    step: InterviewStep = InterviewStep.content_input
    questions: list[Question] = Field(default_factory=list)
    answers: dict[str, Answer] = Field(default_factory=dict)
    current_index: int = Field(default=0, ge=0)
    is_complete: bool = False

    def find_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def unanswered(self) -> list[Question]:
        return [q for q in self.questions if q.id not in self.answers]


class ResultState(BaseModel):
    """Synthesis artifacts of both sub-pipelines.

    `interview_scripts` holds Quick-mode output, `final_scripts` holds polished
    Outline-mode output. Both are keyed by style name and coexist.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    generation_mode: GenerationMode = GenerationMode.quick
    current_style: str = "default"
    interview_scripts: dict[str, StyledScript] = Field(default_factory=dict)
    outline: Optional[Outline] = None
    # Sparse: section index -> generated text
    sections: dict[int, str] = Field(default_factory=dict)
    current_section: int = Field(default=0, ge=0)
    draft_script: Optional[DraftScript] = None
    final_scripts: dict[str, StyledScript] = Field(default_factory=dict)


class PipelineState(BaseModel):
    """Root of the state tree."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    content: ContentState = Field(default_factory=ContentState)
    session: SessionState = Field(default_factory=SessionState)
    result: ResultState = Field(default_factory=ResultState)
    # Transient
    stages: dict[StageName, StageState] = Field(default_factory=_idle_stages)
    streaming: dict[StageName, str] = Field(default_factory=dict)

    def stage(self, name: StageName) -> StageState:
        return self.stages.get(name, StageState())


TRANSIENT_FIELDS = {"stages", "streaming"}


class PipelineSnapshot(BaseModel):
    """Persisted form of PipelineState, without transient fields."""
    model_config = ConfigDict(extra="ignore")

    version: int = SNAPSHOT_VERSION
    saved_at: datetime = Field(default_factory=_utcnow)
    content: ContentState = Field(default_factory=ContentState)
    session: SessionState = Field(default_factory=SessionState)
    result: ResultState = Field(default_factory=ResultState)
