from src.llm.factory import (
    get_chat_llm,
    get_embeddings,
    clear_llm_cache,
)
from src.llm.clients import CompletionClient, EmbeddingClient
