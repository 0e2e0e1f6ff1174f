"""Prompt templates and builders.

Templates carry `{name}` placeholders that are filled by `render()` in a
single pass, so substituted values are never re-scanned. The blocker
pattern taxonomy is rendered once and spliced into both the discovery
chat and the mind dump analysis prompts; both must see the same text so
the identifiers the model returns can be validated against one list.
"""

import re
from functools import cache
from textwrap import dedent
from typing import Mapping, Optional, Sequence

from limnl.models.llm_inputs import CardPrompt, ChatMessage, SelectedCard, UserProfile
from limnl.models.records import Card
from limnl.services.deck import card_summaries, card_summaries_with_tags


_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render(template: str, substitutions: Mapping[str, str]) -> str:
    """
    Substitute `{key}` placeholders in one pass.

    Placeholders without a substitution are left as-is. Values may
    contain braces; they are inserted literally.

    Args:
        template: Template text
        substitutions: Placeholder name to value

    Returns:
        Rendered text

    Example:
        >>> render("{a} and {b}", {"a": "{b}", "b": "x"})
        '{b} and x'
    """
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in substitutions:
            return substitutions[key]
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


# Blocker pattern taxonomy: (category, ((id, description), ...))
BLOCKER_PATTERNS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    ("Epistemological Obstacles", (
        ("substantialist_thinking", "Treating dynamic processes as fixed traits"),
        ("obstacle_of_experience", "Over-reliance on past experience"),
        ("verbal_obstacle", "Getting trapped in language/metaphors"),
        ("unitary_knowledge", "Resistance to complexity"),
        ("pragmatic_knowledge", "Quick-fix seeking over deep understanding"),
        ("quantitative_obstacle", "Over-focus on metrics"),
        ("animistic_thinking", "External attribution patterns"),
        ("mythical_valorization", "Idealization of approaches"),
        ("circular_reasoning", "Self-reinforcing thought loops"),
        ("false_precision", "Pseudo-accuracy masking uncertainty"),
        ("cognitive_rigidity", "Difficulty shifting perspectives"),
        ("avoidance_pattern", "Systematic topic avoidance"),
    )),
    ("Cognitive Biases", (
        ("confirmation_bias", "Seeking confirming information"),
        ("dunning_kruger_effect", "Overconfidence in low-competence areas"),
        ("sunk_cost_fallacy", "Continuing due to past investment"),
        ("choice_overload_paralysis", "Decision avoidance"),
    )),
    ("Attachment Patterns", (
        ("avoidant_attachment_block", "Emotional discomfort"),
        ("anxious_attachment_block", "Validation seeking"),
        ("disorganized_attachment_block", "Chaotic engagement"),
    )),
    ("Psychological Reactance", (
        ("autonomy_threat_response", "Resistance to perceived control"),
    )),
    ("Cognitive Distortions", (
        ("catastrophic_thinking", "Worst-case scenario focus"),
        ("all_or_nothing_thinking", "Black-and-white patterns"),
        ("mental_filtering", "Negative focus"),
        ("personalization_bias", "Excessive self-blame"),
    )),
)

BLOCKER_PATTERN_IDS: frozenset[str] = frozenset(
    pattern_id for _, patterns in BLOCKER_PATTERNS for pattern_id, _ in patterns
)


@cache
def blocker_patterns_taxonomy() -> str:
    """Render the taxonomy as category headers followed by `- id: description` lines."""
    sections = []
    for category, patterns in BLOCKER_PATTERNS:
        lines = [f"{category}:"]
        lines.extend(f"- {pattern_id}: {description}" for pattern_id, description in patterns)
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


TITLE_GENERATION_PROMPT = dedent("""
    You write short, evocative titles for dream journal entries.

    Read the dream below and give it a title of 2 to 6 words that captures
    its central image or theme, so the dreamer can recognize it later.

    Rules:
    - 2 to 6 words
    - No quotation marks
    - Reply with the title only
""").strip()

DESCRIPTION_OPTIMIZATION_PROMPT = dedent("""
    You tidy up dream journal descriptions so they are easier to reread and analyze.

    Rewrite the raw description below:
    - Put the events in a clear, coherent order
    - Clarify vague passages without inventing details
    - Bring out the key symbols, emotions and themes
    - Keep the dreamer's own voice and first-person perspective

    Reply with the rewritten description only.
""").strip()

CARD_COMMENTARY_PROMPT = dedent("""
    You help people find what is really bothering them through reflective, card-based inquiry.

    The person is looking at an issue in the {life_area} area of their life and has drawn this card:

    Card: {card_name}
    Question: {card_question}
    Meaning: {card_meaning}

    In one or two short sentences, suggest how this card's meaning might connect
    to what is happening in their {life_area} area. Point at possibilities; do not prescribe.

    Reply with the commentary only.
""").strip()

CARD_COMMENTARY_WITH_CONTEXT_PROMPT = dedent("""
    You help people find what is really bothering them through reflective, card-based inquiry.

    The person is looking at an issue in the {life_area} area of their life. They have
    already chosen some cards and are now considering another one.

    Cards already chosen:
    {selected_cards_list}

    Card under consideration:
    Card: {card_name}
    Question: {card_question}
    Meaning: {card_meaning}

    In one or two short sentences, comment on:
    1. How this card's meaning might connect to their {life_area} area
    2. Whether it echoes or pulls against the cards already chosen

    Point at patterns; do not prescribe. Reply with the commentary only.
""").strip()

MULTIPLE_CARDS_COMMENTARY_PROMPT = dedent("""
    You help people find what is really bothering them through reflective, card-based inquiry.

    The person is looking at an issue in the {life_area} area of their life and has drawn
    the cards below. For each card, write one or two short sentences on how its meaning
    might connect to their {life_area} area.

    Cards:
    {cards_list}

    Reply with a JSON object whose keys are the card IDs (as strings) and whose values
    are the commentaries, for example:
    {"1": "commentary for card 1", "2": "commentary for card 2", "3": "commentary for card 3"}

    Reply with the JSON object only.
""").strip()

DISCOVERY_CHAT_SYSTEM_PROMPT = dedent("""
    You are a warm, perceptive guide helping someone work out what is really bothering them
    through reflective conversation.

    They are using a card-based process to uncover a "bug", a recurring issue or pattern,
    in the {life_area} area of their life. The "{card_name}" card is guiding this exploration.

    PRIMARY LENS - THE CARD:
    Ground every reply in the card and in how it relates to what they share.

    Card context:
    - Card: {card_name}
    - Question: {card_question}
    - Meaning: {card_meaning}

    SUPPORTING CARDS:
    They have also chosen these cards:
    {selected_cards_context}

    Treat these as extra perspectives; the primary card stays your main lens.

    In each reply:
    - Ask open questions rooted in the card's meaning
    - Reflect back what they said through the card's lens
    - Help them link their experience to the card's insight
    - Stay curious and non-judgmental
    - Keep it short, usually one to three sentences

    SUPPORTING FRAMEWORK - BLOCKER PATTERNS:
    You can recognize psychological and cognitive patterns that keep people stuck. Use them
    only when they sharpen what the card is already pointing at:

    {blocker_patterns}

    Never force a pattern onto them or let it replace the card's message.

    Your aim is to help them reach their own insight through the card, not to diagnose them.
""").strip()

DREAM_ANALYSIS_PROMPT = dedent("""
    You are a thoughtful dream analyst. You help people understand their dreams through
    themes, emotional patterns, narrative structure and symbols.

    Analyze the dream you are given and pick the 2 cards from the deck below whose
    meanings best match its symbols and themes. Treat the cards as lenses on the dream.

    ## Card Deck

    The 36 cards and their core meanings:

    {CARDS_JSON}

    ## Response

    Return a JSON object with exactly this structure:

    ```json
    {
      "themes_patterns": "2-3 sentences on recurring symbols, metaphors and themes",
      "emotional_analysis": "2-3 sentences on the emotional tone and what it may reflect",
      "narrative_summary": "2-3 sentences retracing the dream's narrative arc",
      "symbol_cards": [
        {
          "card_name": "Exact card name from the deck above",
          "relevance_note": "1-2 sentences linking the card to the dream"
        }
      ]
    }
    ```

    ## Guidelines

    - Speak to the dreamer as "you", warmly and supportively
    - Be insightful without over-interpreting
    - Use card names exactly as written in the deck
    - The reply MUST be valid JSON with nothing before or after it

    ---

    Dream to analyze:
""").strip()

CREATIVE_PROMPTS_PROMPT = dedent("""
    You turn dream analyses into prompts for creative work.

    From the dream analysis below, write 3 prompts in each category:
    1. Image: detailed visual prompts for image generators, covering mood, palette and composition
    2. Music: prompts for music generators describing atmosphere, tempo, genre and instrumentation
    3. Story: narrative directions that continue, precede or reframe the dream

    Each prompt in a category should explore a different interpretation.

    Return a JSON object with exactly this structure:

    ```json
    {
      "image_prompts": ["...", "...", "..."],
      "music_prompts": ["...", "...", "..."],
      "story_prompts": ["...", "...", "..."]
    }
    ```

    - Every array holds exactly 3 prompts
    - Draw directly on the analysis
    - The reply MUST be valid JSON with nothing before or after it

    ---

    Dream analysis:
""").strip()

MOOD_TAGS = (
    "angry", "anxious", "apathetic", "calm", "confused", "content", "disappointed",
    "excited", "fearful", "frustrated", "grateful", "guilty", "happy", "hopeful",
    "hype", "indifferent", "lonely", "nostalgic", "overwhelmed", "peaceful", "proud",
    "relieved", "sad", "satisfied", "stressed", "thankful", "worried", "completion",
    "accomplishment", "determined", "motivated", "exhausted", "energized", "reflective",
    "contemplative", "uncertain", "confident", "insecure", "optimistic", "pessimistic",
    "regretful", "joyful", "melancholic", "serene", "agitated", "focused", "scattered",
)

MIND_DUMP_ANALYSIS_PROMPT = dedent("""
    You analyze a mind dump: pick 1-2 matching cards, pull out actionable tasks,
    name the mood, and spot blocker patterns.

    ## Card Deck:

    {CARDS_SIMPLIFIED}

    ## Mood Tags:

    Choose from: {mood_tags}

    ## Blocker Patterns:

    Look for psychological and cognitive patterns that may be keeping the writer stuck.
    Use these identifiers:

    {blocker_patterns}

    Return valid JSON only:

    ```json
    {
      "relevant_cards": [
        {"card_name": "Exact card name", "relevance_note": "One sentence why"}
      ],
      "tasks": [
        {"title": "Clear, actionable task", "description": "Optional short context"}
      ],
      "mood_tags": ["mood1", "mood2"],
      "blocker_patterns": ["pattern_id"]
    }
    ```

    - relevant_cards: 1-2 cards whose themes match the mind dump
    - tasks: only concrete things the writer can do, understandable out of context;
      an empty array if there are none
    - mood_tags: 1-3 tags from the list above; an empty array if the mood is unclear
    - blocker_patterns: 0-3 identifiers from the list above; an empty array if none clearly apply

    ---

    Mind dump:
""").strip()


def format_cards_list(cards: Sequence[CardPrompt]) -> str:
    """Render cards for the multi-card commentary prompt."""
    return "".join(
        f"\nCard {card.id}: {card.name}\nQuestion: {card.question}\nMeaning: {card.meaning}\n"
        for card in cards
    )


def format_selected_cards_list(cards: Sequence[SelectedCard]) -> str:
    """Render already-chosen cards for contextual commentary."""
    return "".join(
        f"- {card.name}\n  Question: {card.question}\n  Meaning: {card.meaning}\n"
        for card in cards
    )


def format_selected_cards_context(cards: Sequence[SelectedCard]) -> str:
    """Render already-chosen cards, with their commentary, for the discovery chat."""
    if not cards:
        return "No other cards selected yet."
    return "".join(
        f"- {card.name}: {card.question}\n  Commentary: {card.commentary or ''}\n"
        for card in cards
    )


def format_history(history: Sequence[ChatMessage]) -> str:
    """Render chat history as `User:`/`Assistant:` lines in call order."""
    return "".join(
        f"{'User' if message.role == 'user' else 'Assistant'}: {message.content}\n"
        for message in history
    )


def _card_substitutions(card: CardPrompt, life_area: str) -> dict[str, str]:
    return {
        "life_area": life_area,
        "card_name": card.name,
        "card_question": card.question,
        "card_meaning": card.meaning,
    }


def build_card_commentary_prompt(card: CardPrompt, life_area: str) -> str:
    return render(CARD_COMMENTARY_PROMPT, _card_substitutions(card, life_area))


def build_card_commentary_with_context_prompt(
    card: CardPrompt,
    life_area: str,
    selected_cards: Sequence[SelectedCard],
) -> str:
    """
    Build the commentary prompt for a card considered alongside earlier picks.

    With no earlier picks this is exactly the plain commentary prompt.
    """
    if not selected_cards:
        return build_card_commentary_prompt(card, life_area)

    substitutions = _card_substitutions(card, life_area)
    substitutions["selected_cards_list"] = format_selected_cards_list(selected_cards)
    return render(CARD_COMMENTARY_WITH_CONTEXT_PROMPT, substitutions)


def build_multiple_cards_prompt(
    cards: Sequence[CardPrompt],
    life_area: str,
    selected_cards: Sequence[SelectedCard] = (),
) -> str:
    """
    Build the prompt asking for one commentary per card, keyed by card ID.

    Earlier picks, when given, are appended as a context block.
    """
    prompt = render(
        MULTIPLE_CARDS_COMMENTARY_PROMPT,
        {"life_area": life_area, "cards_list": format_cards_list(cards)},
    )
    if selected_cards:
        prompt += (
            "\n\nCards already chosen (relate the new cards to these where it helps):\n"
            + format_selected_cards_list(selected_cards)
        )
    return prompt


def build_discovery_chat_system_prompt(
    card: CardPrompt,
    life_area: str,
    selected_cards: Sequence[SelectedCard] = (),
    card_insights: Optional[str] = None,
    profile: Optional[UserProfile] = None,
) -> str:
    """
    Build the system prompt for the discovery chat.

    The card insights and user profile blocks are appended only when
    they have content.

    Args:
        card: The card guiding the conversation
        life_area: Life area being explored
        selected_cards: Other cards chosen in this session
        card_insights: Commentary generated earlier for this life area
        profile: Optional personal context

    Returns:
        System prompt text
    """
    substitutions = _card_substitutions(card, life_area)
    substitutions["selected_cards_context"] = format_selected_cards_context(selected_cards)
    substitutions["blocker_patterns"] = blocker_patterns_taxonomy()
    system_prompt = render(DISCOVERY_CHAT_SYSTEM_PROMPT, substitutions)

    if card_insights:
        system_prompt += f"\n\nCard Insights (generated for this life area):\n{card_insights}"

    if profile is not None and not profile.is_empty():
        system_prompt += "\n\nUser Profile:"
        if profile.name:
            system_prompt += f"\n- Name: {profile.name}"
        if profile.zodiac_sign:
            system_prompt += f"\n- Zodiac Sign: {profile.zodiac_sign}"
        if profile.mbti_type:
            system_prompt += f"\n- MBTI Type: {profile.mbti_type}"

    return system_prompt


def build_dream_analysis_prompt(deck: Sequence[Card]) -> str:
    return render(DREAM_ANALYSIS_PROMPT, {"CARDS_JSON": card_summaries(deck)})


def build_dream_analysis_input(title: str, content: str, sleep_quality: Optional[int]) -> str:
    if sleep_quality is not None:
        quality = f"Sleep Quality: {sleep_quality}/5"
    else:
        quality = "Sleep Quality: Not specified"
    return f"Title: {title}\n{quality}\n\nContent:\n{content}"


def build_creative_prompts_input(
    themes_patterns: str,
    emotional_analysis: str,
    narrative_summary: str,
) -> str:
    return (
        f"Themes & Patterns:\n{themes_patterns}\n\n"
        f"Emotional Analysis:\n{emotional_analysis}\n\n"
        f"Narrative Summary:\n{narrative_summary}"
    )


def build_mind_dump_analysis_prompt(deck: Sequence[Card]) -> str:
    return render(
        MIND_DUMP_ANALYSIS_PROMPT,
        {
            "CARDS_SIMPLIFIED": card_summaries_with_tags(deck),
            "mood_tags": ", ".join(MOOD_TAGS),
            "blocker_patterns": blocker_patterns_taxonomy(),
        },
    )
