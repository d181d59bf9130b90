import logging
from uuid import UUID
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from src.cases.models import Case
from src.documents.models import DocumentType, ProcessingStatus, SourceDocument
from src.ingestion.service import IngestionService
from src.shared.exceptions import RecordNotFound

logger = logging.getLogger(__name__)


class DuplicateDocument(ValueError):
    pass


class DocumentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ingestion = IngestionService()

    async def upload(
        self,
        case_id: UUID,
        tenant_id: UUID,
        filename: str,
        content_type: str,
        content: bytes,
        document_type: DocumentType = DocumentType.RFE_NOTICE,
    ) -> SourceDocument:
        """Stores the raw bytes. Text is extracted later, by the analysis run."""
        case = await self.db.execute(
            select(Case.id).where(Case.id == case_id, Case.tenant_id == tenant_id)
        )
        if case.scalar_one_or_none() is None:
            raise RecordNotFound("Case", case_id)

        # Dedup check
        file_hash = self.ingestion.calculate_hash(content)
        existing = await self.db.execute(
            select(SourceDocument.id).where(
                SourceDocument.case_id == case_id,
                SourceDocument.file_hash == file_hash,
            )
        )
        if existing.scalars().first():
            raise DuplicateDocument(f"Document already uploaded (hash: {file_hash[:12]}...)")

        doc = SourceDocument(
            tenant_id=tenant_id,
            case_id=case_id,
            filename=filename,
            content_type=content_type or "application/octet-stream",
            document_type=document_type,
            file_hash=file_hash,
            content=content,
            processing_status=ProcessingStatus.PENDING,
            processing_metadata={},
        )
        self.db.add(doc)
        await self.db.commit()
        await self.db.refresh(doc)
        logger.info(f"Stored {document_type.value} {doc.id} for case {case_id} ({len(content)} bytes)")
        return doc

    async def list_documents(self, case_id: UUID, tenant_id: UUID) -> List[SourceDocument]:
        """List all documents for a case."""
        result = await self.db.execute(
            select(SourceDocument)
            .where(SourceDocument.case_id == case_id, SourceDocument.tenant_id == tenant_id)
            .order_by(SourceDocument.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_document(self, document_id: UUID, tenant_id: UUID) -> SourceDocument:
        result = await self.db.execute(
            select(SourceDocument).where(
                SourceDocument.id == document_id,
                SourceDocument.tenant_id == tenant_id,
            )
        )
        doc = result.scalars().first()
        if doc is None:
            raise RecordNotFound("SourceDocument", document_id)
        return doc
