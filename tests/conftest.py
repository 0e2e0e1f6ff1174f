"""Shared test fixtures for all test modules."""

import json
from unittest.mock import patch

import httpx
import pytest

from limnl.models.config import LLMConfig, ProviderKind
from limnl.services.deck import load_deck
from limnl.services.record_store import Database


def completion_envelope(request: httpx.Request, text: str) -> dict:
    """Wrap completion text in the response shape of the provider `request` targets."""
    path = request.url.path
    if path.endswith("/api/generate"):
        return {"model": "llama3.2", "response": text, "done": True}
    if path.endswith("/chat/completions"):
        return {
            "id": "chatcmpl-test",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
        }
    if path.endswith("/messages"):
        return {"id": "msg_test", "type": "message", "content": [{"type": "text", "text": text}]}
    raise AssertionError(f"unexpected provider path: {path}")


class FakeLLMServer:
    """
    Stands in for every provider endpoint while `llm_server` is active.

    Tests set `handler` (or call `reply`) to decide the response; every
    request that reaches the transport is recorded.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(500, text="no handler configured")

    def reply(self, body, status_code=200):
        self.handler = lambda request: httpx.Response(status_code, json=body)

    def reply_text(self, text, status_code=200):
        self.handler = lambda request: httpx.Response(status_code, text=text)

    def complete_with(self, text: str):
        """Answer with `text` wrapped in the envelope of whichever provider was called."""
        self.handler = lambda request: httpx.Response(200, json=completion_envelope(request, text))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self) -> dict:
        return json.loads(self.last_request.content)


@pytest.fixture
def llm_server():
    """Route every httpx.AsyncClient through an in-process mock transport."""
    server = FakeLLMServer()
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(server._handle)
        return real_client(*args, **kwargs)

    with patch("httpx.AsyncClient", side_effect=client_factory):
        yield server


@pytest.fixture
def ollama_config():
    return LLMConfig(provider=ProviderKind.OLLAMA, ollama_url="http://ollama.test:11434")


@pytest.fixture
def openai_config():
    return LLMConfig(
        provider=ProviderKind.OPENAI,
        openai_api_key="sk-test-key",
        openai_base_url="https://openai.test/v1",
    )


@pytest.fixture
def anthropic_config():
    return LLMConfig(
        provider=ProviderKind.ANTHROPIC,
        anthropic_api_key="sk-ant-test",
        anthropic_base_url="https://anthropic.test/v1",
    )


@pytest.fixture
def disabled_config():
    return LLMConfig()


@pytest.fixture
def deck():
    return load_deck()


@pytest.fixture
def db(tmp_path):
    """Fresh on-disk database with the deck seeded."""
    database = Database(tmp_path / "journal.db")
    yield database
    database.close()
