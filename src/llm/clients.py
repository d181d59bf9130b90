"""Thin adapters over the LangChain chat and embedding models.

Every provider failure surfaces as ``ExternalServiceError`` so callers can
decide between retrying and degrading.
"""
import logging
from typing import List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from src.config import settings
from src.llm.factory import get_chat_llm, get_embeddings
from src.shared.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

JSON_OBJECT = "json_object"


class CompletionClient:
    def __init__(self, role: str, llm_factory=get_chat_llm):
        self.role = role
        self._llm_factory = llm_factory

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Returns the raw text of the first choice."""
        try:
            llm = self._llm_factory(
                self.role,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=response_format == JSON_OBJECT,
            )
            response = await llm.ainvoke([
                SystemMessage(content=system_prompt),
                HumanMessage(content=user_prompt),
            ])
        except Exception as e:
            logger.error(f"{self.role} completion failed: {e}")
            raise ExternalServiceError("completion", str(e)) from e

        content = response.content
        if isinstance(content, list):
            # Anthropic returns content blocks
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content or ""


class EmbeddingClient:
    def __init__(self, embeddings=None, max_chars: int = settings.EMBEDDING_MAX_CHARS):
        self._embeddings = embeddings
        self.max_chars = max_chars

    @property
    def embeddings(self):
        if self._embeddings is None:
            self._embeddings = get_embeddings()
        return self._embeddings

    async def embed(self, text: str) -> List[float]:
        """Embeds at most ``max_chars`` characters of ``text``."""
        try:
            vector = await self.embeddings.aembed_query(text[: self.max_chars])
        except Exception as e:
            logger.error(f"Embedding request failed: {e}")
            raise ExternalServiceError("embedding", str(e)) from e
        return list(vector)
