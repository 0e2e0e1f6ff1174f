"""Unit tests for record and configuration models."""

import pytest
from pydantic import ValidationError

from limnl.llm.models import normalize_model_name
from limnl.models.config import LLMConfig, ProviderKind
from limnl.models.llm_inputs import UserProfile
from limnl.models.records import MAX_MIND_DUMP_LENGTH, DreamInput, MindDumpInput


class TestMindDumpInput:
    """Test mind dump input validation."""

    def test_valid_input(self):
        """Test content with a matching character count."""
        data = MindDumpInput(content="too many tabs", character_count=13)

        assert data.title is None
        assert data.character_count == 13

    def test_whitespace_only_content(self):
        """Test blank content is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            MindDumpInput(content="   \n", character_count=4)

        assert "Content cannot be empty" in str(exc_info.value)

    def test_content_at_limit(self):
        """Test content of exactly the maximum length is accepted."""
        content = "x" * MAX_MIND_DUMP_LENGTH

        assert MindDumpInput(content=content, character_count=len(content)).content == content

    def test_content_over_limit(self):
        """Test content one character over the limit is rejected."""
        content = "x" * (MAX_MIND_DUMP_LENGTH + 1)

        with pytest.raises(ValidationError) as exc_info:
            MindDumpInput(content=content, character_count=len(content))

        assert "Content exceeds maximum length of 2000 characters" in str(exc_info.value)

    def test_character_count_mismatch(self):
        """Test a stale character count is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            MindDumpInput(content="hello", character_count=3)

        assert "Character count mismatch: expected 5, got 3" in str(exc_info.value)


class TestDreamInput:
    """Test dream input validation."""

    def test_sleep_quality_range(self):
        """Test sleep quality must be between 1 and 5."""
        assert DreamInput(title="Flood", content="Water", sleep_quality=5).sleep_quality == 5

        with pytest.raises(ValidationError):
            DreamInput(title="Flood", content="Water", sleep_quality=6)

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            DreamInput(title="", content="Water")


class TestLLMConfig:
    """Test LLM provider configuration."""

    def test_defaults(self):
        """Test the provider is disabled by default."""
        config = LLMConfig()

        assert config.provider == ProviderKind.DISABLED
        assert config.ollama_url == "http://localhost:11434"
        assert config.request_timeout == 6.0

    def test_camel_case_aliases(self):
        """Test settings stored with camelCase keys validate directly."""
        config = LLMConfig.model_validate({
            "provider": "openai",
            "openaiApiKey": "sk-test",
            "openaiModel": "gpt4o",
        })

        assert config.provider == ProviderKind.OPENAI
        assert config.openai_api_key == "sk-test"
        assert config.openai_model == "gpt4o"

    def test_config_immutable(self):
        """Test that LLM config is frozen (immutable)."""
        config = LLMConfig()

        with pytest.raises(ValidationError):
            config.provider = ProviderKind.OLLAMA

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError):
            LLMConfig(provider="gemini")


class TestModelAliases:
    """Test model alias normalization."""

    @pytest.mark.parametrize("provider,alias,expected", [
        (ProviderKind.OLLAMA, "llama", "llama3.2"),
        (ProviderKind.OPENAI, "gpt4-mini", "gpt-4o-mini"),
        (ProviderKind.ANTHROPIC, "claude-haiku", "claude-haiku-4-5"),
    ])
    def test_known_aliases(self, provider, alias, expected):
        assert normalize_model_name(alias, provider) == expected

    def test_unknown_alias_passes_through(self):
        """Test full model identifiers are used unchanged."""
        assert normalize_model_name("llama3.1:70b", ProviderKind.OLLAMA) == "llama3.1:70b"

    def test_alias_is_provider_specific(self):
        """Test an alias from one provider is not translated for another."""
        assert normalize_model_name("llama", ProviderKind.OPENAI) == "llama"


class TestUserProfile:

    def test_is_empty(self):
        assert UserProfile().is_empty()
        assert not UserProfile(zodiac_sign="Leo").is_empty()
