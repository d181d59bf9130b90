import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from src.config import settings
from src.knowledge.models import ChunkSourceType
from src.llm.clients import EmbeddingClient
from src.retrieval.vector_store import ChunkMatch, VectorStore

logger = logging.getLogger(__name__)


@dataclass
class RetrievedChunk:
    content: str
    metadata: Dict[str, Any]
    similarity: float
    source_type: ChunkSourceType
    source_id: UUID
    case_id: Optional[UUID] = None

    @classmethod
    def from_match(cls, match: ChunkMatch) -> "RetrievedChunk":
        return cls(
            content=match.content,
            metadata=match.metadata,
            similarity=round(1 - match.distance, 4),
            source_type=match.source_type,
            source_id=match.source_id,
            case_id=match.case_id,
        )


class RetrievalService:
    """Embeds a query and returns the nearest stored chunks for a tenant.

    Failures from the embedding service or the store are not retried here.
    """

    def __init__(self, embeddings: EmbeddingClient, store: VectorStore):
        self.embeddings = embeddings
        self.store = store

    async def retrieve(
        self,
        query: str,
        tenant_id: UUID,
        visa_type: Optional[str] = None,
        rfe_category: Optional[str] = None,
        limit: int = settings.RAG_CONTEXT_LIMIT,
        source_type: Optional[ChunkSourceType] = ChunkSourceType.KNOWLEDGE_DOC,
        exclude_case_id: Optional[UUID] = None,
    ) -> List[RetrievedChunk]:
        if not query or not query.strip():
            return []

        vector = await self.embeddings.embed(query)
        matches = await self.store.query(
            tenant_id,
            vector,
            limit,
            source_type=source_type,
            filters={"visa_type": visa_type, "category": rfe_category},
            exclude_case_id=exclude_case_id,
        )
        logger.debug(f"Retrieved {len(matches)} chunks for tenant {tenant_id}")
        return [RetrievedChunk.from_match(m) for m in matches]
