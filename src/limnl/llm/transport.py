"""HTTP transport adapters for the supported LLM providers.

Each adapter turns a `CompletionRequest` into its vendor's request
envelope, posts it with httpx, and pulls the completion text out of the
vendor's response envelope. Response envelopes are validated against
small pydantic schemas; a 2xx body that does not match is a
`ProviderContractError`, never a partial result.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, Field, ValidationError

from limnl.llm.exceptions import ConfigError, ProviderContractError, TransportError
from limnl.llm.models import normalize_model_name
from limnl.llm.prompts import format_history
from limnl.models.config import LLMConfig, ProviderKind
from limnl.models.llm_inputs import ChatMessage
from limnl.utils.logging import get_logger


logger = get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

R = TypeVar("R", bound=BaseModel)


@dataclass(frozen=True)
class CompletionRequest:
    """
    Provider-agnostic description of one completion call.

    Attributes:
        system: Instruction text (system prompt)
        prompt: User input for this turn
        max_tokens: Completion length cap sent to hosted providers
        timeout: Request timeout in seconds
        history: Earlier chat turns, or None for single-shot prompts
        json_mode: Request a JSON-only reply (OpenAI response_format)
        operation: Name used in log events
    """

    system: str
    prompt: str
    max_tokens: int
    timeout: float
    history: Optional[Sequence[ChatMessage]] = None
    json_mode: bool = False
    operation: str = "completion"


# Response envelopes

class OllamaGenerateResponse(BaseModel):
    response: str


class OpenAIMessage(BaseModel):
    content: str


class OpenAIChoice(BaseModel):
    message: OpenAIMessage


class OpenAIChatResponse(BaseModel):
    choices: list[OpenAIChoice] = Field(..., min_length=1)


class AnthropicContentBlock(BaseModel):
    text: str


class AnthropicMessagesResponse(BaseModel):
    content: list[AnthropicContentBlock] = Field(..., min_length=1)


class ProviderAdapter(ABC):
    """Shared request/response handling; subclasses supply the envelopes."""

    kind: ProviderKind
    display_name: str

    def check_config(self, config: LLMConfig) -> None:
        """Raise ConfigError if the provider cannot be called with this config."""
        pass

    @abstractmethod
    def model_for(self, config: LLMConfig) -> str:
        pass

    @abstractmethod
    def build(self, request: CompletionRequest, config: LLMConfig) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, JSON body) for the request."""
        pass

    @abstractmethod
    def extract_text(self, body: bytes) -> str:
        pass

    def _parse(self, body: bytes, schema: Type[R]) -> R:
        try:
            return schema.model_validate_json(body)
        except ValidationError as e:
            raise ProviderContractError(
                f"Invalid {self.display_name} response format: {e}"
            ) from e

    async def complete(self, request: CompletionRequest, config: LLMConfig) -> str:
        """
        Send the request and return the trimmed completion text.

        Raises:
            ConfigError: If a required credential is missing or the URL cannot be parsed
            TransportError: On network failure, timeout or non-2xx status
            ProviderContractError: If the response body has the wrong shape
        """
        self.check_config(config)
        url, headers, payload = self.build(request, config)

        logger.info(
            "llm_request_started",
            provider=self.kind.value,
            model=payload.get("model"),
            operation=request.operation,
            prompt_length=len(request.prompt),
            system_prompt_length=len(request.system),
            timeout=request.timeout,
        )
        logger.debug("llm_request_payload", operation=request.operation, payload=payload)

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(request.timeout)) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(
                "llm_request_timeout",
                provider=self.kind.value,
                operation=request.operation,
                timeout=request.timeout,
            )
            raise TransportError(
                f"{self.display_name} request timed out after {request.timeout}s"
            ) from e
        except httpx.InvalidURL as e:
            logger.error(
                "llm_request_invalid_url",
                provider=self.kind.value,
                operation=request.operation,
                url=url,
                error=str(e),
            )
            raise ConfigError(f"Invalid {self.display_name} URL {url!r}: {e}") from e
        except httpx.HTTPError as e:
            logger.error(
                "llm_request_failed",
                provider=self.kind.value,
                operation=request.operation,
                error=str(e),
            )
            raise TransportError(f"{self.display_name} request failed: {e}") from e

        if not response.is_success:
            preview = response.text[:500]
            logger.error(
                "llm_http_error",
                provider=self.kind.value,
                operation=request.operation,
                status_code=response.status_code,
                body=preview,
            )
            raise TransportError(
                f"{self.display_name} API error {response.status_code}: {preview}",
                status_code=response.status_code,
            )

        text = self.extract_text(response.content).strip()
        logger.info(
            "llm_request_completed",
            provider=self.kind.value,
            operation=request.operation,
            response_length=len(text),
        )
        logger.debug("llm_raw_completion", operation=request.operation, completion=text)
        return text


class OllamaAdapter(ProviderAdapter):
    """Local Ollama server, `/api/generate` with a single flattened prompt."""

    kind = ProviderKind.OLLAMA
    display_name = "Ollama"

    def model_for(self, config: LLMConfig) -> str:
        return normalize_model_name(config.ollama_model, self.kind)

    def build(self, request, config):
        if request.history is None:
            prompt = f"{request.system}\n\n{request.prompt}" if request.system else request.prompt
        else:
            prompt = (
                f"{request.system}\n\nConversation history:\n"
                f"{format_history(request.history)}\n"
                f"User: {request.prompt}\n\nAssistant:"
            )
        payload = {
            "model": self.model_for(config),
            "prompt": prompt,
            "stream": False,
        }
        url = config.ollama_url.rstrip("/") + "/api/generate"
        return url, {}, payload

    def extract_text(self, body: bytes) -> str:
        return self._parse(body, OllamaGenerateResponse).response


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions with role-tagged messages."""

    kind = ProviderKind.OPENAI
    display_name = "OpenAI"

    def check_config(self, config: LLMConfig) -> None:
        if not config.openai_api_key:
            raise ConfigError("OpenAI API key is not configured")

    def model_for(self, config: LLMConfig) -> str:
        return normalize_model_name(config.openai_model, self.kind)

    def build(self, request, config):
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        for message in request.history or ():
            role = "user" if message.role == "user" else "assistant"
            messages.append({"role": role, "content": message.content})
        messages.append({"role": "user", "content": request.prompt})

        payload: dict[str, Any] = {
            "model": self.model_for(config),
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": request.max_tokens,
        }
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {"Authorization": f"Bearer {config.openai_api_key}"}
        url = config.openai_base_url.rstrip("/") + "/chat/completions"
        return url, headers, payload

    def extract_text(self, body: bytes) -> str:
        return self._parse(body, OpenAIChatResponse).choices[0].message.content


class AnthropicAdapter(ProviderAdapter):
    """Anthropic messages API with a separate system field."""

    kind = ProviderKind.ANTHROPIC
    display_name = "Anthropic"

    def check_config(self, config: LLMConfig) -> None:
        if not config.anthropic_api_key:
            raise ConfigError("Anthropic API key is not configured")

    def model_for(self, config: LLMConfig) -> str:
        return normalize_model_name(config.anthropic_model, self.kind)

    def build(self, request, config):
        messages = []
        for message in request.history or ():
            role = "user" if message.role == "user" else "assistant"
            messages.append({"role": role, "content": message.content})
        messages.append({"role": "user", "content": request.prompt})

        payload = {
            "model": self.model_for(config),
            "max_tokens": request.max_tokens,
            "messages": messages,
        }
        if request.system:
            payload["system"] = request.system
        headers = {
            "x-api-key": config.anthropic_api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        url = config.anthropic_base_url.rstrip("/") + "/messages"
        return url, headers, payload

    def extract_text(self, body: bytes) -> str:
        return self._parse(body, AnthropicMessagesResponse).content[0].text


ADAPTERS: dict[ProviderKind, ProviderAdapter] = {
    adapter.kind: adapter
    for adapter in (OllamaAdapter(), OpenAIAdapter(), AnthropicAdapter())
}


def get_adapter(config: LLMConfig) -> ProviderAdapter:
    """
    Pick the adapter for the configured provider.

    Raises:
        ConfigError: If the provider is disabled
    """
    if config.provider == ProviderKind.DISABLED:
        raise ConfigError("LLM is disabled")
    try:
        return ADAPTERS[config.provider]
    except KeyError:
        raise ConfigError(f"Unsupported LLM provider: {config.provider}") from None


async def complete(request: CompletionRequest, config: LLMConfig) -> str:
    """Run one completion through the configured provider."""
    return await get_adapter(config).complete(request, config)
