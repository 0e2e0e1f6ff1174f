"""The fixed 36-card deck shipped with the package."""

import json
from functools import cache
from importlib import resources
from typing import Optional, Sequence

from limnl.models.records import Card
from limnl.utils.logging import get_logger


logger = get_logger(__name__)


@cache
def load_deck() -> tuple[Card, ...]:
    """
    Load the deck from package data.

    The deck is read once per process and shared read-only by every
    caller, including concurrent background analyses.

    Returns:
        Cards ordered by ID
    """
    raw = resources.files("limnl.data").joinpath("cards.json").read_text(encoding="utf-8")
    cards = tuple(
        sorted((Card(**entry) for entry in json.loads(raw)["cards"]), key=lambda card: card.id)
    )
    logger.debug("deck_loaded", card_count=len(cards))
    return cards


def find_card(deck: Sequence[Card], name: str) -> Optional[Card]:
    """Exact-name lookup; no case folding or trimming."""
    for card in deck:
        if card.name == name:
            return card
    return None


def card_summaries(deck: Sequence[Card]) -> str:
    """Render one `- name: meaning` line per card."""
    return "\n".join(f"- {card.name}: {card.core_meaning}" for card in deck)


def card_summaries_with_tags(deck: Sequence[Card]) -> str:
    """Render one `- name: meaning [tags: a, b]` line per card."""
    return "\n".join(
        f"- {card.name}: {card.core_meaning} [tags: {', '.join(card.tags)}]"
        for card in deck
    )
