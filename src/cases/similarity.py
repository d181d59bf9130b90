import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.analysis.models import Issue
from src.cases.models import Case
from src.config import settings
from src.documents.models import SourceDocument
from src.knowledge.models import ChunkSourceType
from src.retrieval.service import RetrievalService
from src.shared.exceptions import RecordNotFound

logger = logging.getLogger(__name__)

QUERY_MAX_CHARS = 4000
SNIPPET_CHARS = 500
MATCHED_CONTENT_CHARS = 200
MAX_QUERY_DOCUMENTS = 3


class CaseSimilarityService:
    """Finds other cases of the same tenant whose documents resemble a case.

    Candidates are over-fetched by ``overfetch_factor`` and collapsed to the
    best match per case, so a result can be shorter than ``limit``.
    """

    def __init__(
        self,
        db: AsyncSession,
        retrieval: RetrievalService,
        overfetch_factor: int = settings.SIMILAR_CASES_OVERFETCH_FACTOR,
    ):
        self.db = db
        self.retrieval = retrieval
        self.overfetch_factor = overfetch_factor

    async def find_similar(self, case_id: UUID, tenant_id: UUID, limit: int = settings.SIMILAR_CASES_LIMIT) -> List[dict]:
        case = await self._get_case(case_id, tenant_id)
        query = await self.build_query(case)
        if not query:
            return []

        chunks = await self.retrieval.retrieve(
            query,
            tenant_id,
            limit=limit * self.overfetch_factor,
            source_type=ChunkSourceType.RFE_DOCUMENT,
            exclude_case_id=case.id,
        )

        best = {}
        for chunk in chunks:
            if chunk.case_id is None or chunk.case_id == case.id or chunk.case_id in best:
                continue
            best[chunk.case_id] = chunk
            if len(best) >= limit:
                break
        if not best:
            return []

        result = await self.db.execute(
            select(Case).where(Case.id.in_(best.keys()), Case.tenant_id == tenant_id)
        )
        cases = {c.id: c for c in result.scalars().all()}

        similar = []
        for matched_case_id, chunk in best.items():
            other = cases.get(matched_case_id)
            if other is None:
                # chunk outlived its case
                continue
            similar.append({
                "id": str(other.id),
                "case_number": other.case_number,
                "petitioner_name": other.petitioner_name,
                "visa_type": other.visa_type,
                "status": other.status.value,
                "similarity_score": chunk.similarity,
                "matched_content": chunk.content[:MATCHED_CONTENT_CHARS],
            })
        return similar

    async def build_query(self, case: Case) -> str:
        parts = [case.visa_type, case.petitioner_name, case.notes]

        issues = await self.db.execute(
            select(Issue).where(Issue.case_id == case.id).order_by(Issue.position)
        )
        for issue in issues.scalars().all():
            text = (issue.original_text or issue.summary or "")[:SNIPPET_CHARS]
            parts.append(text)

        docs = await self.db.execute(
            select(SourceDocument)
            .where(SourceDocument.case_id == case.id, SourceDocument.extracted_text.is_not(None))
            .order_by(SourceDocument.created_at)
            .limit(MAX_QUERY_DOCUMENTS)
        )
        for doc in docs.scalars().all():
            parts.append(doc.extracted_text[:SNIPPET_CHARS])

        return " ".join(p for p in parts if p and p.strip())[:QUERY_MAX_CHARS].strip()

    async def _get_case(self, case_id: UUID, tenant_id: UUID) -> Case:
        result = await self.db.execute(
            select(Case).where(Case.id == case_id, Case.tenant_id == tenant_id)
        )
        case = result.scalars().first()
        if case is None:
            raise RecordNotFound("Case", case_id)
        return case
