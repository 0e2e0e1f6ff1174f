"""Dream analysis and creative prompt workflows."""

import asyncio
from functools import partial
from typing import Optional, Sequence

from limnl.llm.client import generate_creative_prompts, generate_dream_analysis
from limnl.models.config import LLMConfig
from limnl.models.records import Card, CreativePrompts, DreamAnalysis
from limnl.services.deck import find_card, load_deck
from limnl.services.exceptions import RecordNotFoundError
from limnl.services.record_store import Database
from limnl.utils.logging import get_logger


logger = get_logger(__name__)


async def analyze_dream(
    store: Database,
    dream_id: int,
    config: LLMConfig,
    deck: Optional[Sequence[Card]] = None,
) -> DreamAnalysis:
    """
    Generate, store and return the analysis of a dream.

    Unlike mind dump analysis this is awaited by the caller, so LLM and
    store errors propagate. Symbol cards whose names are not in the deck
    are skipped and logged.

    Args:
        store: Open record store
        dream_id: Dream to analyze
        config: Provider configuration
        deck: Card deck (defaults to the packaged deck)

    Returns:
        The stored analysis with its linked cards

    Raises:
        RecordNotFoundError: If the dream does not exist
        LLMError: If generation fails
    """
    loop = asyncio.get_running_loop()
    deck = tuple(deck) if deck is not None else load_deck()

    dream = await loop.run_in_executor(None, store.get_dream, dream_id)
    if dream is None:
        raise RecordNotFoundError("dreams", dream_id)

    result = await generate_dream_analysis(dream.title, dream.content, dream.sleep_quality, config, deck=deck)

    analysis_id = await loop.run_in_executor(None, store.save_dream_analysis, dream_id, result)
    for symbol in result.symbol_cards:
        card = find_card(deck, symbol.card_name)
        if card is None:
            logger.warning("dream_analysis_card_not_found", dream_id=dream_id, card_name=symbol.card_name)
            continue
        await loop.run_in_executor(
            None, partial(store.link_dream_analysis_card, analysis_id, card.id, symbol.relevance_note)
        )

    logger.info("dream_analysis_saved", dream_id=dream_id, analysis_id=analysis_id)
    return await loop.run_in_executor(None, store.get_dream_analysis, dream_id)


async def generate_dream_creative_prompts(
    store: Database,
    dream_id: int,
    config: LLMConfig,
) -> CreativePrompts:
    """
    Generate and store creative prompts from a dream's existing analysis.

    Raises:
        RecordNotFoundError: If the dream has no analysis yet
        LLMError: If generation fails
    """
    loop = asyncio.get_running_loop()
    analysis = await loop.run_in_executor(None, store.get_dream_analysis, dream_id)
    if analysis is None:
        raise RecordNotFoundError("dream_analyses", dream_id)

    result = await generate_creative_prompts(
        analysis.themes_patterns,
        analysis.emotional_analysis,
        analysis.narrative_summary,
        config,
    )
    await loop.run_in_executor(None, store.save_creative_prompts, analysis.id, result)
    logger.info("creative_prompts_saved", dream_id=dream_id, analysis_id=analysis.id)
    return await loop.run_in_executor(None, store.get_creative_prompts, analysis.id)
