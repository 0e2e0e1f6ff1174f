"""Structured results decoded from LLM completions."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SymbolCard(BaseModel):
    """A deck card the model tied to an entry, with its reason."""

    card_name: str = Field(..., description="Exact deck card name as returned by the model")
    relevance_note: str = Field(..., description="Why the card relates to the entry")

    model_config = {"frozen": True}


class DreamAnalysisResult(BaseModel):
    """Analysis of a single dream."""

    themes_patterns: str = Field(..., description="Recurring themes and patterns")
    emotional_analysis: str = Field(..., description="Emotional undercurrents of the dream")
    narrative_summary: str = Field(..., description="Short retelling of the dream")
    symbol_cards: list[SymbolCard] = Field(..., description="Deck cards echoing the dream's symbols")

    model_config = {"frozen": True}


class CreativePromptsResult(BaseModel):
    """Three image, music and story prompts derived from a dream analysis."""

    image_prompts: list[str] = Field(..., min_length=3, max_length=3)
    music_prompts: list[str] = Field(..., min_length=3, max_length=3)
    story_prompts: list[str] = Field(..., min_length=3, max_length=3)

    model_config = {"frozen": True}


class TaskSuggestion(BaseModel):
    """An actionable task suggested for a mind dump."""

    title: str = Field(..., description="Short imperative task title")
    description: Optional[str] = Field(default=None, description="Optional detail")

    model_config = {"frozen": True}


class MindDumpAnalysisResult(BaseModel):
    """
    Analysis of a mind dump.

    `relevant_cards` and `tasks` are required. Every returned card is kept.
    Mood tags and blocker patterns longer than the prompt allows are cut
    to three.
    """

    relevant_cards: list[SymbolCard] = Field(..., description="Relevant deck cards, resolved by exact name")
    tasks: list[TaskSuggestion] = Field(..., description="Suggested tasks")
    mood_tags: list[str] = Field(default_factory=list, description="Up to three mood tags")
    blocker_patterns: list[str] = Field(default_factory=list, description="Up to three blocker pattern ids")

    model_config = {"frozen": True}

    @field_validator("mood_tags", "blocker_patterns")
    @classmethod
    def _limit_tags(cls, value: list[str]) -> list[str]:
        return value[:3]
