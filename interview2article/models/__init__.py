"""Pydantic models for the interview pipeline."""

from .content import AnalysisResult, ContentSource, ContentSourceType
from .interview import (
    SKIPPED_ANSWER,
    Answer,
    PreviewQuestion,
    Question,
    QuestionFeedback,
)
from .script import (
    DraftScript,
    GenerationMode,
    Outline,
    OutlineSection,
    ScriptKind,
    StyledScript,
)
from .state import (
    SNAPSHOT_VERSION,
    TRANSIENT_FIELDS,
    ContentState,
    InterviewStep,
    PipelineSnapshot,
    PipelineState,
    ResultState,
    SessionState,
    StageName,
    StageState,
    StageStatus,
)

__all__ = [
    # Content
    "ContentSource",
    "ContentSourceType",
    "AnalysisResult",
    # Interview
    "PreviewQuestion",
    "Question",
    "Answer",
    "QuestionFeedback",
    "SKIPPED_ANSWER",
    # Script
    "Outline",
    "OutlineSection",
    "DraftScript",
    "StyledScript",
    "GenerationMode",
    "ScriptKind",
    # State
    "PipelineState",
    "PipelineSnapshot",
    "ContentState",
    "SessionState",
    "ResultState",
    "StageName",
    "StageState",
    "StageStatus",
    "InterviewStep",
    "SNAPSHOT_VERSION",
    "TRANSIENT_FIELDS",
]
