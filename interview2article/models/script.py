"""Script synthesis artifacts: outline, draft and styled scripts.

Pydantic v2. Extra fields are forbidden to prevent drift.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GenerationMode(str, Enum):
    """Which synthesis sub-pipeline is active."""
    quick = "quick"
    outline = "outline"


class ScriptKind(str, Enum):
    """Which styled-script table an artifact lives in."""
    quick = "quick"    # interview_scripts, derived from the transcript
    final = "final"    # final_scripts, derived from the merged draft


class OutlineSection(BaseModel):
    """Plan for one section of the article."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    section_number: int = Field(ge=1)
    title: str
    theme: str = ""
    key_points: List[str] = Field(default_factory=list)
    tone: str = ""
    estimated_words: int = Field(default=0, ge=0)


class Outline(BaseModel):
    """Article outline. `total_sections` always equals len(sections)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    total_sections: int = Field(ge=0)
    estimated_words: int = Field(default=0, ge=0)
    sections: List[OutlineSection] = Field(default_factory=list)
    degraded: bool = False


class DraftScript(BaseModel):
    """Merged draft; derived purely from Outline + section content."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    content: str
    word_count: int = Field(ge=0)
    estimated_read_time: int = Field(ge=0, description="Minutes")
    sections_count: int = Field(ge=0)
    total_sections: int = Field(ge=0)
    generated_at: datetime = Field(default_factory=_utcnow)


class StyledScript(BaseModel):
    """A finished article in one style."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    style: str
    content: str
    word_count: int = Field(ge=0)
    estimated_read_time: int = Field(ge=0, description="Minutes")
    generated_at: datetime = Field(default_factory=_utcnow)
    last_edited_at: Optional[datetime] = None
