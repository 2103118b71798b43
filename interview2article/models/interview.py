"""Interview models: preview questions, live questions and answers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# Recorded as the answer content when a question is skipped
SKIPPED_ANSWER = "(skipped)"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_question_id() -> str:
    """Generate a question id; stable once assigned."""
    return f"q_{uuid4().hex}"


class QuestionFeedback(str, Enum):
    """User curation tag on a preview question."""
    good = "good"
    bad = "bad"
    unset = "unset"


class PreviewQuestion(BaseModel):
    """A question pre-generated in bulk before the interview starts.

    Feedback is held separately, keyed by list index. `consumed` flips once the
    question has been promoted into the live session and never flips back.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    order: int = Field(ge=0)
    question: str
    category: str = "general"
    purpose: str = ""
    consumed: bool = False


class Question(BaseModel):
    """A question asked in the live session."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=new_question_id)
    content: str
    category: str = "general"
    explanation: str = Field(default="", description="Intent behind the question")
    tone: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    is_from_preview: bool = False
    is_follow_up: bool = False


class Answer(BaseModel):
    """The answer recorded for one question id."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    skipped: bool = False
