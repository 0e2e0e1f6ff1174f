"""Configuration models for Limnl."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    """LLM backend selected by the user."""

    DISABLED = "disabled"
    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class LLMConfig(BaseModel):
    """
    Provider settings passed explicitly to every LLM operation.

    Only the fields belonging to `provider` are read at call time. The
    camelCase aliases match the settings object stored by the desktop
    frontend, so its JSON can be validated directly.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: ProviderKind = Field(
        default=ProviderKind.DISABLED,
        description="Active provider; 'disabled' fails every operation before any network call"
    )

    ollama_url: str = Field(
        default="http://localhost:11434",
        alias="ollamaUrl",
        description="Base URL of the local Ollama server"
    )

    ollama_model: str = Field(
        default="llama",
        alias="ollamaModel",
        description="Ollama model alias or full tag (e.g., 'llama', 'mistral:7b')"
    )

    openai_api_key: str = Field(default="", alias="openaiApiKey")

    openai_model: str = Field(
        default="gpt4-mini",
        alias="openaiModel",
        description="OpenAI model alias or identifier"
    )

    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        alias="openaiBaseUrl",
        description="OpenAI API base URL (override for proxies)"
    )

    anthropic_api_key: str = Field(default="", alias="anthropicApiKey")

    anthropic_model: str = Field(
        default="claude-haiku",
        alias="anthropicModel",
        description="Anthropic model alias or identifier"
    )

    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1",
        alias="anthropicBaseUrl",
        description="Anthropic API base URL (override for proxies)"
    )

    request_timeout: float = Field(
        default=6.0,
        gt=0,
        description="Timeout in seconds for short completions (titles, commentary, chat)"
    )

    analysis_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Timeout in seconds for completions that produce structured JSON"
    )


class DatabaseConfig(BaseModel):
    """Location of the SQLite journal database."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / "limnl" / "dreams.db",
        description="Path to the SQLite database file"
    )


class AppConfig(BaseModel):
    """Root configuration for the Limnl command-line tools."""

    model_config = ConfigDict(frozen=True)

    llm: LLMConfig = Field(default_factory=LLMConfig, description="LLM provider settings")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig, description="Database settings")
