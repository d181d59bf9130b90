"""Vector store backends for embedded chunks.

Both backends answer the same query: the nearest chunks to a vector within a
tenant, by cosine distance, optionally narrowed by source type and metadata
filters. A metadata filter matches when the chunk's value equals the filter
value or the chunk has no value for that key.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

import numpy as np
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.knowledge.models import ChunkSourceType, KnowledgeChunk

logger = logging.getLogger(__name__)


@dataclass
class ChunkRecord:
    """A chunk ready to be stored."""
    chunk_index: int
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)
    case_id: Optional[UUID] = None


@dataclass
class ChunkMatch:
    content: str
    metadata: Dict[str, Any]
    distance: float
    source_type: ChunkSourceType
    source_id: UUID
    chunk_index: int
    case_id: Optional[UUID] = None


class VectorStore(ABC):
    @abstractmethod
    async def replace_chunks(
        self,
        tenant_id: UUID,
        source_type: ChunkSourceType,
        source_id: UUID,
        chunks: Sequence[ChunkRecord],
    ) -> int:
        """Atomically swaps every chunk of a source for ``chunks``."""

    @abstractmethod
    async def delete_chunks(self, tenant_id: UUID, source_type: ChunkSourceType, source_id: UUID) -> int:
        ...

    @abstractmethod
    async def query(
        self,
        tenant_id: UUID,
        vector: Sequence[float],
        limit: int,
        source_type: Optional[ChunkSourceType] = None,
        filters: Optional[Dict[str, Any]] = None,
        exclude_case_id: Optional[UUID] = None,
    ) -> List[ChunkMatch]:
        ...


def _active_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (filters or {}).items() if v is not None}


def cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 1.0
    return 1.0 - float(np.dot(a, b) / norm)


class InMemoryVectorStore(VectorStore):
    """Brute-force cosine scan, for tests and single-process deployments."""

    def __init__(self):
        self._chunks: Dict[tuple, List[ChunkMatch]] = {}
        self._vectors: Dict[tuple, List[np.ndarray]] = {}
        self._tenants: Dict[tuple, UUID] = {}

    async def replace_chunks(self, tenant_id, source_type, source_id, chunks):
        key = (source_type, source_id)
        self._chunks[key] = [
            ChunkMatch(
                content=c.content,
                metadata=dict(c.metadata),
                distance=0.0,
                source_type=source_type,
                source_id=source_id,
                chunk_index=c.chunk_index,
                case_id=c.case_id,
            )
            for c in chunks
        ]
        self._vectors[key] = [np.asarray(c.embedding, dtype=float) for c in chunks]
        self._tenants[key] = tenant_id
        return len(chunks)

    async def delete_chunks(self, tenant_id, source_type, source_id):
        key = (source_type, source_id)
        if self._tenants.get(key) != tenant_id:
            return 0
        self._tenants.pop(key)
        self._vectors.pop(key, None)
        return len(self._chunks.pop(key, []))

    async def query(self, tenant_id, vector, limit, source_type=None, filters=None, exclude_case_id=None):
        if limit <= 0:
            return []
        needle = np.asarray(vector, dtype=float)
        wanted = _active_filters(filters)
        scored = []
        for key, chunks in self._chunks.items():
            if self._tenants[key] != tenant_id:
                continue
            if source_type is not None and key[0] != source_type:
                continue
            for chunk, embedding in zip(chunks, self._vectors[key]):
                if exclude_case_id is not None and chunk.case_id == exclude_case_id:
                    continue
                if any(chunk.metadata.get(k) not in (None, v) for k, v in wanted.items()):
                    continue
                scored.append((cosine_distance(needle, embedding), chunk))

        scored.sort(key=lambda pair: pair[0])
        return [
            ChunkMatch(**{**chunk.__dict__, "metadata": dict(chunk.metadata), "distance": distance})
            for distance, chunk in scored[:limit]
        ]


class PgVectorStore(VectorStore):
    """Chunks persisted in ``knowledge_chunks`` and ranked by pgvector's ``<=>``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def replace_chunks(self, tenant_id, source_type, source_id, chunks):
        # Old rows are dropped and new rows added inside one transaction
        await self.db.execute(
            delete(KnowledgeChunk).where(
                KnowledgeChunk.tenant_id == tenant_id,
                KnowledgeChunk.source_type == source_type,
                KnowledgeChunk.source_id == source_id,
            )
        )
        for c in chunks:
            self.db.add(KnowledgeChunk(
                tenant_id=tenant_id,
                source_type=source_type,
                source_id=source_id,
                case_id=c.case_id,
                chunk_index=c.chunk_index,
                content=c.content,
                embedding=list(c.embedding),
                chunk_metadata=dict(c.metadata),
            ))
        await self.db.commit()
        return len(chunks)

    async def delete_chunks(self, tenant_id, source_type, source_id):
        result = await self.db.execute(
            delete(KnowledgeChunk).where(
                KnowledgeChunk.tenant_id == tenant_id,
                KnowledgeChunk.source_type == source_type,
                KnowledgeChunk.source_id == source_id,
            )
        )
        await self.db.commit()
        return result.rowcount or 0

    async def query(self, tenant_id, vector, limit, source_type=None, filters=None, exclude_case_id=None):
        if limit <= 0:
            return []
        distance = KnowledgeChunk.embedding.cosine_distance(list(vector)).label("distance")
        conditions = [
            KnowledgeChunk.tenant_id == tenant_id,
            KnowledgeChunk.embedding.is_not(None),
        ]
        if source_type is not None:
            conditions.append(KnowledgeChunk.source_type == source_type)
        if exclude_case_id is not None:
            conditions.append(or_(
                KnowledgeChunk.case_id.is_(None),
                KnowledgeChunk.case_id != exclude_case_id,
            ))
        for key, value in _active_filters(filters).items():
            field_value = KnowledgeChunk.chunk_metadata[key].as_string()
            conditions.append(or_(field_value == str(value), field_value.is_(None)))

        result = await self.db.execute(
            select(KnowledgeChunk, distance)
            .where(and_(*conditions))
            .order_by(distance)
            .limit(limit)
        )
        return [
            ChunkMatch(
                content=row.content,
                metadata=dict(row.chunk_metadata or {}),
                distance=float(dist),
                source_type=row.source_type,
                source_id=row.source_id,
                chunk_index=row.chunk_index,
                case_id=row.case_id,
            )
            for row, dist in result.all()
        ]


_memory_store: Optional[InMemoryVectorStore] = None


def get_vector_store(db: AsyncSession) -> VectorStore:
    """Backend selected by ``VECTOR_STORE_BACKEND``."""
    global _memory_store
    backend = settings.VECTOR_STORE_BACKEND
    if backend == "memory":
        if _memory_store is None:
            _memory_store = InMemoryVectorStore()
        return _memory_store
    if backend == "pgvector":
        return PgVectorStore(db)
    raise ValueError(f"Unknown vector store backend: {backend!r}. Valid: ('pgvector', 'memory')")
