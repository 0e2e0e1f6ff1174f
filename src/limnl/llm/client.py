"""Public LLM operations.

Every operation takes the provider configuration explicitly and raises
the first error it meets (`limnl.llm.exceptions`); nothing is retried.
Each operation resolves its adapter first, so a disabled provider fails
before any prompt is built.
"""

from typing import Optional, Sequence

from limnl.llm import prompts
from limnl.llm.decoders import (
    decode_card_commentaries,
    decode_creative_prompts,
    decode_dream_analysis,
    decode_mind_dump_analysis,
)
from limnl.llm.extraction import extract_json
from limnl.llm.transport import CompletionRequest, complete, get_adapter
from limnl.models.config import LLMConfig
from limnl.models.llm_inputs import CardPrompt, ChatMessage, SelectedCard, UserProfile
from limnl.models.records import Card
from limnl.models.results import (
    CreativePromptsResult,
    DreamAnalysisResult,
    MindDumpAnalysisResult,
)
from limnl.services.deck import load_deck
from limnl.utils.logging import get_logger


logger = get_logger(__name__)

# Completion length caps per operation
TITLE_MAX_TOKENS = 20
DESCRIPTION_MAX_TOKENS = 2000
CARD_COMMENTARY_MAX_TOKENS = 200
MULTIPLE_CARDS_MAX_TOKENS = 1000
CHAT_MAX_TOKENS = 300
DREAM_ANALYSIS_MAX_TOKENS = 1500
CREATIVE_PROMPTS_MAX_TOKENS = 2000
MIND_DUMP_ANALYSIS_MAX_TOKENS = 1024


async def generate_title(content: str, config: LLMConfig) -> str:
    """Generate a 2-6 word title for a dream."""
    get_adapter(config)
    return await complete(
        CompletionRequest(
            system=prompts.TITLE_GENERATION_PROMPT,
            prompt=content,
            max_tokens=TITLE_MAX_TOKENS,
            timeout=config.request_timeout,
            operation="generate_title",
        ),
        config,
    )


async def optimize_description(content: str, config: LLMConfig) -> str:
    """Rewrite a raw dream description for clarity, keeping the dreamer's voice."""
    get_adapter(config)
    return await complete(
        CompletionRequest(
            system=prompts.DESCRIPTION_OPTIMIZATION_PROMPT,
            prompt=content,
            max_tokens=DESCRIPTION_MAX_TOKENS,
            timeout=config.analysis_timeout,
            operation="optimize_description",
        ),
        config,
    )


async def _card_commentary(instructions: str, config: LLMConfig, operation: str) -> str:
    # The rendered template is self-contained; it is sent as the user turn.
    return await complete(
        CompletionRequest(
            system="",
            prompt=instructions,
            max_tokens=CARD_COMMENTARY_MAX_TOKENS,
            timeout=config.request_timeout,
            operation=operation,
        ),
        config,
    )


async def comment_on_card(card: CardPrompt, life_area: str, config: LLMConfig) -> str:
    """Short commentary on how one card relates to a life area."""
    get_adapter(config)
    instructions = prompts.build_card_commentary_prompt(card, life_area)
    return await _card_commentary(instructions, config, "comment_on_card")


async def comment_on_card_with_context(
    card: CardPrompt,
    life_area: str,
    selected_cards: Sequence[SelectedCard],
    config: LLMConfig,
) -> str:
    """
    Commentary on a card considered alongside cards already chosen.

    With no chosen cards the request is identical to `comment_on_card`.
    """
    get_adapter(config)
    instructions = prompts.build_card_commentary_with_context_prompt(card, life_area, selected_cards)
    return await _card_commentary(instructions, config, "comment_on_card_with_context")


async def _multiple_cards(
    instructions: str,
    config: LLMConfig,
    operation: str,
) -> dict[str, str]:
    completion = await complete(
        CompletionRequest(
            system="",
            prompt=instructions,
            max_tokens=MULTIPLE_CARDS_MAX_TOKENS,
            timeout=config.analysis_timeout,
            operation=operation,
        ),
        config,
    )
    return decode_card_commentaries(extract_json(completion))


async def comment_on_multiple_cards(
    cards: Sequence[CardPrompt],
    life_area: str,
    config: LLMConfig,
) -> dict[str, str]:
    """
    One commentary per card in a single call.

    Returns:
        Mapping of card ID (as a string) to commentary
    """
    get_adapter(config)
    instructions = prompts.build_multiple_cards_prompt(cards, life_area)
    return await _multiple_cards(instructions, config, "comment_on_multiple_cards")


async def comment_on_multiple_cards_with_context(
    cards: Sequence[CardPrompt],
    life_area: str,
    selected_cards: Sequence[SelectedCard],
    config: LLMConfig,
) -> dict[str, str]:
    get_adapter(config)
    instructions = prompts.build_multiple_cards_prompt(cards, life_area, selected_cards)
    return await _multiple_cards(instructions, config, "comment_on_multiple_cards_with_context")


async def chat_with_history(
    user_message: str,
    history: Sequence[ChatMessage],
    card: CardPrompt,
    life_area: str,
    config: LLMConfig,
    selected_cards: Sequence[SelectedCard] = (),
    card_insights: Optional[str] = None,
    profile: Optional[UserProfile] = None,
) -> str:
    """
    Next assistant reply in a card-guided discovery chat.

    Args:
        user_message: The user's new message
        history: Earlier turns in call order
        card: Card guiding the conversation
        life_area: Life area being explored
        config: Provider configuration
        selected_cards: Other cards chosen in this session
        card_insights: Commentary generated earlier for this life area
        profile: Optional personal context

    Returns:
        Assistant reply text
    """
    get_adapter(config)
    system = prompts.build_discovery_chat_system_prompt(
        card,
        life_area,
        selected_cards=selected_cards,
        card_insights=card_insights,
        profile=profile,
    )
    return await complete(
        CompletionRequest(
            system=system,
            prompt=user_message,
            history=tuple(history),
            max_tokens=CHAT_MAX_TOKENS,
            timeout=config.request_timeout,
            operation="chat_with_history",
        ),
        config,
    )


async def generate_dream_analysis(
    title: str,
    content: str,
    sleep_quality: Optional[int],
    config: LLMConfig,
    deck: Optional[Sequence[Card]] = None,
) -> DreamAnalysisResult:
    """
    Analyze a dream and pick the deck cards that echo its symbols.

    Raises:
        ConfigError: Provider disabled or credential missing
        TransportError: Network failure, timeout or HTTP error
        ProviderContractError: Unexpected response envelope
        ExtractionError: No JSON in the completion
        DecodeError: JSON missing required fields
    """
    get_adapter(config)
    completion = await complete(
        CompletionRequest(
            system=prompts.build_dream_analysis_prompt(deck or load_deck()),
            prompt=prompts.build_dream_analysis_input(title, content, sleep_quality),
            max_tokens=DREAM_ANALYSIS_MAX_TOKENS,
            timeout=config.analysis_timeout,
            operation="generate_dream_analysis",
        ),
        config,
    )
    return decode_dream_analysis(extract_json(completion))


async def generate_creative_prompts(
    themes_patterns: str,
    emotional_analysis: str,
    narrative_summary: str,
    config: LLMConfig,
) -> CreativePromptsResult:
    """Three image, music and story prompts from a dream analysis."""
    get_adapter(config)
    completion = await complete(
        CompletionRequest(
            system=prompts.CREATIVE_PROMPTS_PROMPT,
            prompt=prompts.build_creative_prompts_input(
                themes_patterns, emotional_analysis, narrative_summary
            ),
            max_tokens=CREATIVE_PROMPTS_MAX_TOKENS,
            timeout=config.analysis_timeout,
            json_mode=True,
            operation="generate_creative_prompts",
        ),
        config,
    )
    return decode_creative_prompts(extract_json(completion))


async def generate_mind_dump_analysis(
    content: str,
    config: LLMConfig,
    deck: Optional[Sequence[Card]] = None,
) -> MindDumpAnalysisResult:
    """Cards, tasks, mood tags and blocker patterns for a mind dump."""
    get_adapter(config)
    completion = await complete(
        CompletionRequest(
            system=prompts.build_mind_dump_analysis_prompt(deck or load_deck()),
            prompt=content,
            max_tokens=MIND_DUMP_ANALYSIS_MAX_TOKENS,
            timeout=config.analysis_timeout,
            operation="generate_mind_dump_analysis",
        ),
        config,
    )
    return decode_mind_dump_analysis(extract_json(completion))
