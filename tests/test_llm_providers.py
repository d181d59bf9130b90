"""
LLM provider wiring.

The factory and client tests run offline. The provider tests at the bottom make
REAL API calls and are skipped unless credentials are configured.

Run with:
    pytest tests/test_llm_providers.py -v
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import AIMessage

from src.config import settings
from src.llm import factory
from src.llm.clients import CompletionClient, EmbeddingClient, JSON_OBJECT
from src.llm.factory import (
    _create_chat_model,
    _create_embeddings,
    clear_llm_cache,
    get_chat_llm,
    get_embeddings,
    model_name,
)
from src.shared.exceptions import ExternalServiceError
from fakes import FailingEmbeddings, HashingEmbeddings


# ---------------------------------------------------------------------------
# Guards: skip if credentials aren't set
# ---------------------------------------------------------------------------

openai_configured = pytest.mark.skipif(
    not settings.OPENAI_API_KEY,
    reason="OPENAI_API_KEY not set",
)

azure_openai_configured = pytest.mark.skipif(
    not settings.AZURE_OPENAI_API_KEY or not settings.AZURE_OPENAI_ENDPOINT,
    reason="AZURE_OPENAI_API_KEY / AZURE_OPENAI_ENDPOINT not set",
)


@pytest.fixture(autouse=True)
def _clear_cache():
    """Ensure each test gets a fresh LLM instance."""
    clear_llm_cache()
    yield
    clear_llm_cache()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestFactory:
    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown chat role"):
            get_chat_llm("summarizing", temperature=0.2)

    def test_unknown_provider_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            _create_chat_model("watson", model="x", temperature=0.2)

    def test_anthropic_has_no_embeddings(self):
        with pytest.raises(ValueError, match="not supported"):
            _create_embeddings("anthropic")

    def test_chat_models_are_cached_per_parameters(self, monkeypatch):
        created = MagicMock(side_effect=lambda provider, **kwargs: object())
        monkeypatch.setattr(factory, "_create_chat_model", created)

        first = get_chat_llm("analysis", temperature=0.2, max_tokens=4000, json_mode=True)
        again = get_chat_llm("analysis", temperature=0.2, max_tokens=4000, json_mode=True)
        other = get_chat_llm("drafting", temperature=0.3, max_tokens=3000)

        assert first is again
        assert other is not first
        assert created.call_count == 2
        assert created.call_args_list[0].kwargs["json_mode"] is True

    def test_embeddings_are_cached(self, monkeypatch):
        created = MagicMock(side_effect=lambda provider: HashingEmbeddings())
        monkeypatch.setattr(factory, "_create_embeddings", created)

        assert get_embeddings() is get_embeddings()
        created.assert_called_once_with(settings.LLM_PROVIDER_EMBEDDING)

    def test_model_name_follows_role_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "LLM_PROVIDER_DRAFTING", "ollama")
        assert model_name("drafting") == settings.OLLAMA_MODEL_DRAFTING

    def test_ollama_json_mode(self):
        llm = _create_chat_model("ollama", model="llama3", temperature=0.1, max_tokens=500, json_mode=True)
        assert llm.format == "json"
        assert llm.num_predict == 500


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

class TestCompletionClient:
    @pytest.mark.asyncio
    async def test_returns_text_and_requests_json_mode(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=AIMessage(content='{"sections": []}'))
        llm_factory = MagicMock(return_value=llm)

        content = await CompletionClient("analysis", llm_factory=llm_factory).complete(
            "system", "user", response_format=JSON_OBJECT, temperature=0.2, max_tokens=4000
        )

        assert json.loads(content) == {"sections": []}
        llm_factory.assert_called_once_with("analysis", temperature=0.2, max_tokens=4000, json_mode=True)
        messages = llm.ainvoke.await_args.args[0]
        assert [m.content for m in messages] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_content_blocks_are_joined(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=AIMessage(content=[{"type": "text", "text": "Part one. "},
                                                                 {"type": "text", "text": "Part two."}]))

        content = await CompletionClient("drafting", llm_factory=MagicMock(return_value=llm)).complete("s", "u")

        assert content == "Part one. Part two."

    @pytest.mark.asyncio
    async def test_provider_errors_are_wrapped(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=TimeoutError("read timeout"))

        with pytest.raises(ExternalServiceError) as exc:
            await CompletionClient("drafting", llm_factory=MagicMock(return_value=llm)).complete("s", "u")

        assert exc.value.service == "completion"

    @pytest.mark.asyncio
    async def test_missing_credentials_are_wrapped(self):
        with patch.object(settings, "LLM_PROVIDER_ANALYSIS", "openai"), \
                patch.object(settings, "OPENAI_API_KEY", None):
            with pytest.raises(ExternalServiceError):
                await CompletionClient("analysis").complete("s", "u")


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_input_is_truncated(self):
        embeddings = HashingEmbeddings()

        await EmbeddingClient(embeddings=embeddings, max_chars=10).embed("x" * 50)

        assert embeddings.calls == ["x" * 10]

    @pytest.mark.asyncio
    async def test_failures_are_wrapped(self):
        with pytest.raises(ExternalServiceError) as exc:
            await EmbeddingClient(embeddings=FailingEmbeddings()).embed("text")
        assert exc.value.service == "embedding"


# ---------------------------------------------------------------------------
# OpenAI: real calls
# ---------------------------------------------------------------------------

@openai_configured
@pytest.mark.asyncio
async def test_openai_json_mode():
    """OpenAI returns valid JSON when json_mode is enabled."""
    llm = _create_chat_model(
        "openai",
        model=settings.OPENAI_MODEL_ANALYSIS,
        temperature=0.0,
        json_mode=True,
    )
    response = await llm.ainvoke(
        'Return a JSON object with keys "greeting" and "language". '
        'Example: {"greeting": "hello", "language": "en"}'
    )
    data = json.loads(response.content)
    assert "greeting" in data
    print(f"\n[OpenAI JSON] {data}")


@openai_configured
@pytest.mark.asyncio
async def test_openai_embeddings():
    """OpenAI embeddings return a vector of the configured dimensionality."""
    embeddings = _create_embeddings("openai")
    vectors = await embeddings.aembed_documents(["The position requires a bachelor's degree."])
    assert len(vectors) == 1
    assert len(vectors[0]) == settings.EMBEDDING_DIMENSIONS
    print(f"\n[OpenAI Embeddings] dim={len(vectors[0])}")


# ---------------------------------------------------------------------------
# Azure OpenAI: real calls
# ---------------------------------------------------------------------------

@azure_openai_configured
@pytest.mark.asyncio
async def test_azure_openai_chat():
    """Azure OpenAI chat completion returns a non-empty response."""
    llm = _create_chat_model(
        "azure_openai",
        model=settings.AZURE_OPENAI_MODEL_DRAFTING,
        temperature=1.0,
    )
    response = await llm.ainvoke("Say hello in exactly three words.")
    assert response.content, "Expected non-empty content from Azure OpenAI"
    print(f"\n[Azure OpenAI] {response.content}")


@azure_openai_configured
@pytest.mark.asyncio
async def test_azure_openai_embeddings():
    """Azure OpenAI embeddings return a high-dimensional vector."""
    embeddings = _create_embeddings("azure_openai")
    vectors = await embeddings.aembed_documents(["Specialty occupation RFE."])
    assert len(vectors) == 1
    assert len(vectors[0]) > 100, f"Expected high-dimensional vector, got {len(vectors[0])}"
    print(f"\n[Azure OpenAI Embeddings] dim={len(vectors[0])}")
