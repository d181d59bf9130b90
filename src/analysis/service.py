"""Case analysis pipeline: extracting -> analyzing -> saving -> complete.

Each stage is written to ``Case.progress`` before it starts so polling
clients can follow along. Handled halts (no text, model unavailable, bad
JSON) end in stage ``failed`` and return a failed result; anything
unexpected is recorded the same way and re-raised for the job runner.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.agents.analysis.agent import SERVICE_FAILURE, run_analysis_agent
from src.analysis.models import EvidenceRequirement, Issue
from src.analysis.schemas import NoticeAnalysis
from src.audit.models import AuditEventType
from src.audit.service import record_event
from src.cases import state_machine
from src.cases.models import Case
from src.cases.state_machine import CaseAction
from src.core.websockets.manager import case_updates_topic, manager
from src.documents.models import DocumentType, ProcessingStatus, SourceDocument
from src.drafting.models import DraftResponse
from src.ingestion.service import TextExtractionService
from src.llm.clients import CompletionClient
from src.llm.factory import model_name
from src.shared.exceptions import (
    ExternalServiceError,
    ExtractionFailure,
    MalformedResponse,
    NoExtractableText,
    RecordNotFound,
    RfeAssistError,
)
from src.shared.models import utcnow

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "\n\n---\n\n"

NO_TEXT_ERROR = "No text could be extracted from uploaded documents"
SERVICE_ERROR = "AI service unavailable"
MALFORMED_ERROR = "AI returned invalid JSON"


class Stage:
    QUEUED = "queued"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    SAVING = "saving"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class AnalysisResult:
    case_id: UUID
    stage: str
    sections_count: int = 0
    error: Optional[str] = None
    failure: Optional[RfeAssistError] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == Stage.COMPLETE


class CaseAnalysisService:
    def __init__(
        self,
        db: AsyncSession,
        completion: CompletionClient | None = None,
        extractor: TextExtractionService | None = None,
        publisher=manager,
    ):
        self.db = db
        self.completion = completion or CompletionClient("analysis")
        self.extractor = extractor or TextExtractionService(db)
        self.publisher = publisher

    async def call(self, case_id: UUID, tenant_id: UUID) -> AnalysisResult:
        case = await self._get_case(case_id, tenant_id)
        try:
            return await self._run(case)
        except (NoExtractableText, MalformedResponse, ExternalServiceError) as e:
            error = SERVICE_ERROR if isinstance(e, ExternalServiceError) else str(e)
            logger.error(f"Analysis halted for case {case.id}: {e}")
            await self._update_progress(case, Stage.FAILED, error=error)
            return AnalysisResult(case_id=case.id, stage=Stage.FAILED, error=error, failure=e)
        except Exception as e:
            logger.error(f"RFE analysis failed for case {case.id}: {e}")
            await self.db.rollback()
            await self.db.refresh(case)
            await self._update_progress(case, Stage.FAILED, error=str(e))
            raise

    async def _run(self, case: Case) -> AnalysisResult:
        await self._update_progress(case, Stage.EXTRACTING)
        notices = await self._notice_documents(case)
        notice_text = await self._extract_all_text(notices)
        if not notice_text.strip():
            raise NoExtractableText(NO_TEXT_ERROR)

        await self._update_progress(case, Stage.ANALYZING)
        state = await run_analysis_agent(notice_text, self.completion)
        if state.get("errors"):
            detail = "; ".join(state["errors"])
            if state.get("failure") == SERVICE_FAILURE:
                raise ExternalServiceError("completion", detail)
            logger.warning(f"Unparseable analysis reply for case {case.id}: {detail}")
            raise MalformedResponse(MALFORMED_ERROR)

        await self._update_progress(case, Stage.SAVING)
        issues = await self._replace_issues(
            case,
            state["analysis"],
            state.get("raw_sections") or [],
            notices[0].id if notices else None,
        )

        if state_machine.can_apply(case.status, CaseAction.COMPLETE_ANALYSIS):
            case.status = state_machine.apply(case.status, CaseAction.COMPLETE_ANALYSIS)
        await self._update_progress(case, Stage.COMPLETE)

        await self.publisher.publish(case_updates_topic(case.tenant_id), {
            "id": str(uuid.uuid4()),
            "type": "analysis_complete",
            "case_id": str(case.id),
            "case_number": case.case_number,
            "message": f"Analysis complete: {len(issues)} issues identified",
            "created_at": utcnow().isoformat(),
        })
        return AnalysisResult(case_id=case.id, stage=Stage.COMPLETE, sections_count=len(issues))

    async def _extract_all_text(self, documents: List[SourceDocument]) -> str:
        texts = []
        for doc in documents:
            doc.processing_status = ProcessingStatus.PROCESSING
            await self.db.commit()
            try:
                text = await self.extractor.call(doc)
            except ExtractionFailure as e:
                logger.warning(f"Failed to extract text from document {doc.id}: {e}")
                continue
            if text and text.strip():
                texts.append(text)
        return DOCUMENT_SEPARATOR.join(texts)

    async def _replace_issues(
        self,
        case: Case,
        analysis: NoticeAnalysis,
        raw_sections: List[dict],
        document_id: Optional[UUID],
    ) -> List[Issue]:
        """Swaps the case's issues, evidence and drafts in one transaction."""
        await self.db.execute(delete(DraftResponse).where(DraftResponse.case_id == case.id))
        await self.db.execute(delete(EvidenceRequirement).where(EvidenceRequirement.case_id == case.id))
        await self.db.execute(delete(Issue).where(Issue.case_id == case.id))

        analyzed_at = utcnow().isoformat()
        model = model_name("analysis")
        issues = []
        for position, section in enumerate(analysis.sections):
            raw = raw_sections[position] if position < len(raw_sections) else section.model_dump(mode="json")
            issue = Issue(
                tenant_id=case.tenant_id,
                case_id=case.id,
                document_id=document_id,
                position=position,
                section_type=section.section_type,
                title=section.title or f"Issue {position + 1}",
                original_text=section.original_text,
                summary=section.summary,
                cfr_reference=section.cfr_reference,
                confidence_score=section.confidence_score,
                ai_analysis={"model": model, "analyzed_at": analyzed_at, "raw_section": raw},
            )
            self.db.add(issue)
            await self.db.flush()

            for index, item in enumerate(section.evidence_needed):
                self.db.add(EvidenceRequirement(
                    tenant_id=case.tenant_id,
                    case_id=case.id,
                    issue_id=issue.id,
                    position=index,
                    priority=item.priority,
                    document_name=item.document_name or f"Evidence {index + 1}",
                    description=item.description,
                    guidance=item.guidance,
                    is_collected=False,
                ))
            issues.append(issue)

        record_event(
            self.db,
            case.tenant_id,
            AuditEventType.ANALYSIS_COMPLETED,
            case_id=case.id,
            artifact_id=case.id,
            artifact_type="case",
            detail={"sections_count": len(issues), "model": model},
        )
        await self.db.commit()
        return issues

    async def _update_progress(self, case: Case, stage: str, error: Optional[str] = None):
        progress = {k: v for k, v in (case.progress or {}).items() if k != "analysis_error"}
        progress["analysis_progress"] = stage
        progress["analysis_updated_at"] = utcnow().isoformat()
        if error:
            progress["analysis_error"] = error
        case.progress = progress
        await self.db.commit()

    async def _notice_documents(self, case: Case) -> List[SourceDocument]:
        result = await self.db.execute(
            select(SourceDocument)
            .where(
                SourceDocument.case_id == case.id,
                SourceDocument.document_type == DocumentType.RFE_NOTICE,
            )
            .order_by(SourceDocument.created_at)
        )
        return list(result.scalars().all())

    async def _get_case(self, case_id: UUID, tenant_id: UUID) -> Case:
        result = await self.db.execute(
            select(Case).where(Case.id == case_id, Case.tenant_id == tenant_id)
        )
        case = result.scalars().first()
        if case is None:
            raise RecordNotFound("Case", case_id)
        return case
