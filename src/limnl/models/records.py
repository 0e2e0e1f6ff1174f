"""Persisted journal records and their input models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


MAX_MIND_DUMP_LENGTH = 2000


class Card(BaseModel):
    """An entry of the fixed 36-card deck."""

    id: int = Field(..., ge=1, le=36)
    name: str
    core_meaning: str
    card_question: str
    tags: tuple[str, ...] = ()

    model_config = {"frozen": True}


class Dream(BaseModel):
    """A dream journal entry."""

    id: int
    title: str
    content: str
    sleep_quality: Optional[int] = Field(default=None, ge=1, le=5)
    date_recorded: datetime
    created_at: datetime
    updated_at: datetime


class DreamInput(BaseModel):
    """Fields supplied when creating or updating a dream."""

    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    sleep_quality: Optional[int] = Field(default=None, ge=1, le=5)
    date_recorded: Optional[datetime] = None


class BugStatus(str, Enum):
    """Lifecycle of a personal issue ("bug")."""

    ACTIVE = "active"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class Bug(BaseModel):
    """A personal issue the user reflects on with the card deck."""

    id: int
    title: str
    description: str
    status: BugStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    card_ids: list[int] = Field(default_factory=list, description="Cards linked to this bug")


class BugInput(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    notes: Optional[str] = None
    card_ids: list[int] = Field(default_factory=list)


class MindDump(BaseModel):
    """A free-text mind dump."""

    id: int
    title: Optional[str] = None
    content: str
    character_count: int
    mood_tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class MindDumpInput(BaseModel):
    """
    Fields supplied when creating or updating a mind dump.

    `character_count` is sent by the editor and must agree with the
    content it describes.
    """

    title: Optional[str] = None
    content: str
    character_count: int

    @model_validator(mode="after")
    def _check_content(self) -> "MindDumpInput":
        if not self.content.strip():
            raise ValueError("Content cannot be empty")
        if len(self.content) > MAX_MIND_DUMP_LENGTH:
            raise ValueError(
                f"Content exceeds maximum length of {MAX_MIND_DUMP_LENGTH} characters"
            )
        if self.character_count != len(self.content):
            raise ValueError(
                f"Character count mismatch: expected {len(self.content)}, got {self.character_count}"
            )
        return self


class AnalysisCard(BaseModel):
    """A deck card linked to an analysis, with the model's reason."""

    card_id: int
    card_name: str
    relevance_note: Optional[str] = None


class AnalysisTask(BaseModel):
    id: int
    title: str
    description: Optional[str] = None


class MindDumpAnalysis(BaseModel):
    """Stored analysis of a mind dump, with its linked cards and tasks."""

    id: int
    mind_dump_id: int
    blocker_patterns: list[str] = Field(default_factory=list)
    created_at: datetime
    cards: list[AnalysisCard] = Field(default_factory=list)
    tasks: list[AnalysisTask] = Field(default_factory=list)


class DreamAnalysis(BaseModel):
    """Stored analysis of a dream, with its linked symbol cards."""

    id: int
    dream_id: int
    themes_patterns: str
    emotional_analysis: str
    narrative_summary: str
    created_at: datetime
    cards: list[AnalysisCard] = Field(default_factory=list)


class CreativePrompts(BaseModel):
    """Stored creative prompts for a dream analysis."""

    id: int
    dream_analysis_id: int
    image_prompts: list[str]
    music_prompts: list[str]
    story_prompts: list[str]
    created_at: datetime
