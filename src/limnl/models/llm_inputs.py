"""Inputs passed by callers into LLM operations."""

from typing import Optional

from pydantic import BaseModel, Field


class CardPrompt(BaseModel):
    """Card fields injected into commentary and chat prompts."""

    id: int = Field(..., description="Deck card ID, used as the key in multi-card replies")
    name: str = Field(..., description="Card name")
    question: str = Field(..., description="Reflective question printed on the card")
    meaning: str = Field(..., description="Core meaning of the card")

    model_config = {"frozen": True}


class SelectedCard(BaseModel):
    """A card the user already picked during a discovery session."""

    name: str
    question: str
    meaning: str
    commentary: Optional[str] = Field(
        default=None,
        description="Commentary previously generated for this card, if any"
    )

    model_config = {"frozen": True}


class ChatMessage(BaseModel):
    """One turn of a discovery chat.

    Any role other than "user" is rendered with the assistant label.
    """

    role: str = Field(..., description="Speaker role, \"user\" or \"assistant\"")
    content: str = Field(..., description="Message text")

    model_config = {"frozen": True}


class UserProfile(BaseModel):
    """Optional personal context appended to the discovery chat prompt."""

    name: Optional[str] = None
    zodiac_sign: Optional[str] = None
    mbti_type: Optional[str] = None

    model_config = {"frozen": True}

    def is_empty(self) -> bool:
        return not (self.name or self.zodiac_sign or self.mbti_type)
