"""Background analysis state for mind dumps."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AnalysisState(str, Enum):
    """States of one background mind dump analysis."""

    CREATED = "created"
    ANALYZING = "analyzing"
    LINKED = "linked"
    PARTIAL_FAILURE = "partial_failure"
    SKIPPED = "skipped"
    FAILED = "failed"
    ABANDONED = "abandoned"


class AnalysisOutcome(BaseModel):
    """Result of one background analysis run, reported to the log."""

    mind_dump_id: int = Field(..., description="Parent mind dump")

    state: AnalysisState = Field(
        default=AnalysisState.CREATED,
        description="Current or final state"
    )

    analysis_id: Optional[int] = Field(
        default=None,
        description="Analysis record ID once created"
    )

    cards_linked: int = Field(default=0, ge=0)
    cards_skipped: int = Field(default=0, ge=0)
    tasks_created: int = Field(default=0, ge=0)
    tasks_failed: int = Field(default=0, ge=0)
    mood_tags_saved: bool = False
    blocker_patterns_saved: bool = False

    error_message: Optional[str] = Field(
        default=None,
        description="Error details if the run failed or was abandoned"
    )

    model_config = {"frozen": False}  # Updated as the run progresses
