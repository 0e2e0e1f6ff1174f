"""Model alias resolution for each provider."""

from limnl.models.config import ProviderKind


MODEL_ALIASES: dict[ProviderKind, dict[str, str]] = {
    ProviderKind.OLLAMA: {
        "llama": "llama3.2",
        "mistral": "mistral",
        "phi": "phi3",
        "deepseek": "deepseek-coder",
    },
    ProviderKind.OPENAI: {
        "gpt4-mini": "gpt-4o-mini",
        "gpt4-turbo": "gpt-4-turbo",
        "gpt4": "gpt-4",
        "gpt4o": "gpt-4o",
    },
    ProviderKind.ANTHROPIC: {
        "claude-haiku": "claude-haiku-4-5",
        "claude-sonnet": "claude-sonnet-4-5",
    },
}


def normalize_model_name(alias: str, provider: ProviderKind) -> str:
    """
    Map a short model alias to the vendor's model identifier.

    Unknown aliases are returned unchanged, so full identifiers
    (e.g., "llama3.1:70b") can be configured directly.

    Args:
        alias: Configured model name
        provider: Provider the model belongs to

    Returns:
        Vendor model identifier

    Example:
        >>> normalize_model_name("gpt4-mini", ProviderKind.OPENAI)
        'gpt-4o-mini'
        >>> normalize_model_name("qwen2.5", ProviderKind.OLLAMA)
        'qwen2.5'
    """
    return MODEL_ALIASES.get(provider, {}).get(alias, alias)
