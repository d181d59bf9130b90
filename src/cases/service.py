import logging
from typing import List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.analysis.models import Issue
from src.audit.models import AuditEventType
from src.audit.service import record_event
from src.cases import state_machine
from src.cases.models import Case
from src.cases.schemas import CaseCreate
from src.cases.state_machine import CaseAction
from src.documents.models import DocumentType, SourceDocument
from src.shared.exceptions import RecordNotFound
from src.shared.models import utcnow

logger = logging.getLogger(__name__)


class CaseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_case(self, case_in: CaseCreate, tenant_id: UUID, user_id: UUID) -> Case:
        case = Case(
            **case_in.model_dump(),
            tenant_id=tenant_id,
            created_by_id=user_id,
            progress={},
        )
        self.db.add(case)
        await self.db.commit()
        await self.db.refresh(case)
        return case

    async def get_case(self, case_id: UUID, tenant_id: UUID) -> Case:
        result = await self.db.execute(
            select(Case).where(Case.id == case_id, Case.tenant_id == tenant_id)
        )
        case = result.scalars().first()
        if case is None:
            raise RecordNotFound("Case", case_id)
        return case

    async def list_cases(self, tenant_id: UUID, skip: int = 0, limit: int = 100) -> List[Case]:
        result = await self.db.execute(
            select(Case)
            .where(Case.tenant_id == tenant_id)
            .order_by(Case.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def transition(self, case: Case, action: CaseAction, actor_id: UUID | None = None) -> Case:
        """Applies a status action or raises ``InvalidTransition``."""
        previous = case.status
        case.status = state_machine.apply(case.status, action)
        record_event(
            self.db,
            case.tenant_id,
            AuditEventType.CASE_TRANSITIONED,
            case_id=case.id,
            actor_id=actor_id,
            artifact_id=case.id,
            artifact_type="case",
            detail={"action": CaseAction(action).value, "from": previous.value, "to": case.status.value},
        )
        await self.db.commit()
        logger.info(f"Case {case.id}: {previous.value} -> {case.status.value}")
        return case

    async def start_analysis(self, case_id: UUID, tenant_id: UUID, actor_id: UUID | None = None) -> Case:
        """Moves the case to ``analyzing``. The caller enqueues the analysis job."""
        case = await self.get_case(case_id, tenant_id)
        notices = await self.db.execute(
            select(func.count(SourceDocument.id)).where(
                SourceDocument.case_id == case.id,
                SourceDocument.document_type == DocumentType.RFE_NOTICE,
            )
        )
        if not notices.scalar_one():
            raise ValueError("Upload an RFE notice before starting analysis")

        case.progress = {
            "analysis_progress": "queued",
            "analysis_updated_at": utcnow().isoformat(),
        }
        return await self.transition(case, CaseAction.START_ANALYSIS, actor_id)

    async def analysis_status(self, case_id: UUID, tenant_id: UUID) -> dict:
        case = await self.get_case(case_id, tenant_id)
        sections = await self.db.execute(
            select(func.count(Issue.id)).where(Issue.case_id == case.id)
        )
        progress = case.progress or {}
        return {
            "status": case.status.value,
            "progress": progress.get("analysis_progress"),
            "sections_count": sections.scalar_one(),
            "error": progress.get("analysis_error"),
        }
