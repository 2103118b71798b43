"""Content ingestion models.

Sources are immutable once added; they can only be removed by id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def new_source_id() -> str:
    """Generate a content source id."""
    return f"source_{uuid4().hex[:12]}"


class ContentSourceType(str, Enum):
    """Kind of background material."""
    url = "url"
    text = "text"
    document = "document"


class ContentSource(BaseModel):
    """A piece of background material supplied by the user."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=new_source_id, description="Unique source identifier")
    type: ContentSourceType = Field(description="Source kind")
    title: str = Field(default="", description="Display title (may be empty)")
    content: str = Field(min_length=1, description="Source text")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata (url, filename, ...)")
    added_at: datetime = Field(default_factory=_utcnow)


class AnalysisResult(BaseModel):
    """Structured summary of the content sources.

    `degraded` is True when the model output could not be parsed and the
    heuristic fallback was used instead.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    summary: str
    key_topics: List[str] = Field(default_factory=list)
    suggested_questions: List[str] = Field(default_factory=list)
    difficulty: str = "intermediate"
    degraded: bool = False
