import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.documents.models import SourceDocument
from src.ingestion.service import IngestionService
from src.knowledge.chunker import TextChunk, chunk_text
from src.knowledge.models import ChunkSourceType, KnowledgeDoc
from src.llm.clients import EmbeddingClient
from src.retrieval.service import RetrievalService
from src.retrieval.vector_store import ChunkRecord, VectorStore
from src.shared.exceptions import ExternalServiceError, RecordNotFound

logger = logging.getLogger(__name__)


async def _embed_chunks(
    embeddings: EmbeddingClient,
    chunks: List[TextChunk],
    metadata: dict,
    case_id: Optional[UUID] = None,
) -> List[ChunkRecord]:
    records = []
    for chunk in chunks:
        try:
            vector = await embeddings.embed(chunk.content)
        except ExternalServiceError as e:
            logger.warning(f"Skipping chunk {chunk.index}: {e}")
            continue
        records.append(ChunkRecord(
            chunk_index=chunk.index,
            content=chunk.content,
            embedding=vector,
            metadata=dict(metadata),
            case_id=case_id,
        ))
    return records


class KnowledgeEmbeddingService:
    """Chunks, embeds and stores a knowledge document.

    Previously stored chunks for the document are replaced in one step. A
    document without extractable text is left untouched.
    """

    def __init__(
        self,
        db: AsyncSession,
        embeddings: EmbeddingClient,
        store: VectorStore,
        ingestion: IngestionService | None = None,
    ):
        self.db = db
        self.embeddings = embeddings
        self.store = store
        self.ingestion = ingestion or IngestionService()

    async def call(self, doc_id: UUID, tenant_id: UUID) -> int:
        doc = await self._get_doc(doc_id, tenant_id)
        text = self._document_text(doc)
        if not text or not text.strip():
            logger.info(f"Knowledge doc {doc.id} has no extractable text; skipping")
            return 0

        metadata = {
            "doc_type": doc.doc_type.value if doc.doc_type else None,
            "visa_type": doc.visa_type,
            "category": doc.rfe_category,
            "title": doc.title,
        }
        records = await _embed_chunks(self.embeddings, chunk_text(text), metadata)
        stored = await self.store.replace_chunks(tenant_id, ChunkSourceType.KNOWLEDGE_DOC, doc.id, records)
        logger.info(f"Knowledge doc {doc.id} embedded: {stored} chunks")
        return stored

    def _document_text(self, doc: KnowledgeDoc) -> Optional[str]:
        if doc.content and doc.content.strip():
            return doc.content
        if not doc.file_content:
            return None
        try:
            return self.ingestion.extract_text(doc.file_content, doc.file_content_type)
        except Exception as e:
            logger.warning(f"Could not extract text from knowledge doc {doc.id}: {e}")
            return None

    async def _get_doc(self, doc_id: UUID, tenant_id: UUID) -> KnowledgeDoc:
        result = await self.db.execute(
            select(KnowledgeDoc).where(KnowledgeDoc.id == doc_id, KnowledgeDoc.tenant_id == tenant_id)
        )
        doc = result.scalars().first()
        if doc is None:
            raise RecordNotFound("KnowledgeDoc", doc_id)
        return doc


class CaseDocumentIndexer:
    """Indexes a case document's extracted text for similar-case discovery."""

    def __init__(self, embeddings: EmbeddingClient, store: VectorStore):
        self.embeddings = embeddings
        self.store = store

    async def call(self, document: SourceDocument, visa_type: Optional[str] = None) -> int:
        text = document.extracted_text
        if not text or not text.strip():
            return 0
        metadata = {
            "doc_type": document.document_type.value,
            "visa_type": visa_type,
            "title": document.filename,
        }
        records = await _embed_chunks(self.embeddings, chunk_text(text), metadata, case_id=document.case_id)
        return await self.store.replace_chunks(
            document.tenant_id, ChunkSourceType.RFE_DOCUMENT, document.id, records
        )


class KnowledgeSearchService:
    def __init__(self, db: AsyncSession, retrieval: RetrievalService):
        self.db = db
        self.retrieval = retrieval

    async def search(
        self,
        query: str,
        tenant_id: UUID,
        visa_type: Optional[str] = None,
        rfe_category: Optional[str] = None,
        limit: int = settings.KNOWLEDGE_SEARCH_LIMIT,
    ) -> dict:
        chunks = await self.retrieval.retrieve(
            query, tenant_id, visa_type=visa_type, rfe_category=rfe_category, limit=limit
        )

        doc_ids = {c.source_id for c in chunks}
        docs = {}
        if doc_ids:
            result = await self.db.execute(
                select(KnowledgeDoc).where(KnowledgeDoc.id.in_(doc_ids), KnowledgeDoc.tenant_id == tenant_id)
            )
            docs = {d.id: d for d in result.scalars().all()}

        results = []
        for chunk in chunks:
            doc = docs.get(chunk.source_id)
            results.append({
                "content": chunk.content,
                "relevance_score": chunk.similarity,
                "title": chunk.metadata.get("title") or (doc.title if doc else None),
                "doc_type": chunk.metadata.get("doc_type") or (doc.doc_type.value if doc else None),
                "visa_type": chunk.metadata.get("visa_type"),
                "knowledge_doc_id": str(doc.id) if doc else None,
            })
        return {"results": results, "query": query, "total": len(results)}

    async def list_documents(self, tenant_id: UUID) -> List[KnowledgeDoc]:
        result = await self.db.execute(
            select(KnowledgeDoc)
            .where(KnowledgeDoc.tenant_id == tenant_id)
            .order_by(KnowledgeDoc.created_at.desc())
        )
        return list(result.scalars().all())
