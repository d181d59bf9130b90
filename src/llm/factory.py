from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from src.config import settings

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_core.language_models.chat_models import BaseChatModel

# Valid provider identifiers
VALID_PROVIDERS = ("ollama", "openai", "azure_openai", "anthropic")
EMBEDDING_PROVIDERS = ("ollama", "openai", "azure_openai")
CHAT_ROLES = ("analysis", "drafting")

# Module-level caches, keyed by role + generation parameters
_llm_cache: dict[tuple, BaseChatModel] = {}
_embedding_cache: dict[str, Embeddings] = {}


def clear_llm_cache() -> None:
    """Drop all cached LLM / embedding instances so they're recreated on next call."""
    _llm_cache.clear()
    _embedding_cache.clear()


def _model_for(provider: str, role: str) -> str:
    return getattr(settings, f"{provider.upper()}_MODEL_{role.upper()}")


def model_name(role: str) -> str:
    """Configured model for a role, recorded as provenance on generated rows."""
    return _model_for(getattr(settings, f"LLM_PROVIDER_{role.upper()}"), role)


# ---------------------------------------------------------------------------
# Internal constructors (lazy imports to avoid hard dep on unused packages)
# ---------------------------------------------------------------------------

def _create_chat_model(
    provider: str,
    *,
    model: str,
    temperature: float,
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
) -> BaseChatModel:
    if provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs: dict = dict(
            base_url=settings.OLLAMA_BASE_URL,
            model=model,
            temperature=temperature,
        )
        if max_tokens:
            kwargs["num_predict"] = max_tokens
        if json_mode:
            kwargs["format"] = "json"
        return ChatOllama(**kwargs)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required when using the openai provider")
        kwargs = dict(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=settings.OPENAI_API_KEY,
        )
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        return ChatOpenAI(**kwargs)

    if provider == "azure_openai":
        from langchain_openai import AzureChatOpenAI

        if not settings.AZURE_OPENAI_API_KEY:
            raise ValueError("AZURE_OPENAI_API_KEY is required when using the azure_openai provider")
        if not settings.AZURE_OPENAI_ENDPOINT:
            raise ValueError("AZURE_OPENAI_ENDPOINT is required when using the azure_openai provider")
        kwargs = dict(
            azure_deployment=model,
            azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
            api_key=settings.AZURE_OPENAI_API_KEY,
            api_version=settings.AZURE_OPENAI_API_VERSION,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        return AzureChatOpenAI(**kwargs)

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if not settings.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY is required when using the anthropic provider")
        # Anthropic has no JSON response mode; the prompt asks for JSON instead
        return ChatAnthropic(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens or 4096,
            api_key=settings.ANTHROPIC_API_KEY,
        )

    raise ValueError(f"Unknown provider: {provider!r}. Valid: {VALID_PROVIDERS}")


def _create_embeddings(provider: str) -> Embeddings:
    if provider == "ollama":
        from langchain_ollama import OllamaEmbeddings

        return OllamaEmbeddings(base_url=settings.OLLAMA_BASE_URL, model=settings.OLLAMA_MODEL_EMBEDDING)

    if provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required when using openai embeddings")
        return OpenAIEmbeddings(
            model=settings.OPENAI_MODEL_EMBEDDING,
            api_key=settings.OPENAI_API_KEY,
        )

    if provider == "azure_openai":
        from langchain_openai import AzureOpenAIEmbeddings

        if not settings.AZURE_OPENAI_API_KEY:
            raise ValueError("AZURE_OPENAI_API_KEY is required when using azure_openai embeddings")
        if not settings.AZURE_OPENAI_ENDPOINT:
            raise ValueError("AZURE_OPENAI_ENDPOINT is required when using azure_openai embeddings")
        return AzureOpenAIEmbeddings(
            azure_deployment=settings.AZURE_OPENAI_MODEL_EMBEDDING,
            azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
            api_key=settings.AZURE_OPENAI_API_KEY,
            api_version=settings.AZURE_OPENAI_API_VERSION,
        )

    if provider == "anthropic":
        raise ValueError("Embeddings are not supported with the 'anthropic' provider. Use ollama, openai, or azure_openai.")

    raise ValueError(f"Unknown embedding provider: {provider!r}. Valid: {EMBEDDING_PROVIDERS}")


# ---------------------------------------------------------------------------
# Public factory functions
# ---------------------------------------------------------------------------

def get_chat_llm(
    role: str,
    *,
    temperature: float,
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
) -> BaseChatModel:
    """Chat model for a role. ``analysis``: RFE issue extraction. ``drafting``: response drafts."""
    if role not in CHAT_ROLES:
        raise ValueError(f"Unknown chat role: {role!r}. Valid: {CHAT_ROLES}")
    key = (role, temperature, max_tokens, json_mode)
    if key not in _llm_cache:
        provider = getattr(settings, f"LLM_PROVIDER_{role.upper()}")
        _llm_cache[key] = _create_chat_model(
            provider,
            model=_model_for(provider, role),
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
        )
    return _llm_cache[key]


def get_embeddings() -> Embeddings:
    """Embedding Engine. Used for: knowledge ingestion, RAG, similar cases."""
    key = "embedding"
    if key not in _embedding_cache:
        _embedding_cache[key] = _create_embeddings(settings.LLM_PROVIDER_EMBEDDING)
    return _embedding_cache[key]
