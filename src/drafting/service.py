import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.agents.drafting.agent import DraftingAgentState, create_drafting_agent
from src.analysis.models import EvidenceRequirement, Issue
from src.audit.models import AuditEventType
from src.audit.service import record_event
from src.auth.models import User
from src.cases.models import Case
from src.config import settings
from src.drafting.locks import DraftLockManager
from src.drafting.models import DraftResponse, DraftStatus
from src.llm.clients import CompletionClient
from src.retrieval.service import RetrievalService
from src.shared.exceptions import RecordNotFound

logger = logging.getLogger(__name__)


class DraftGenerationService:
    """Produces versioned draft responses, one issue at a time.

    A failed completion for one issue leaves that issue without a new draft
    and does not affect the others. Existing versions are never modified by
    generation.
    """

    def __init__(
        self,
        db: AsyncSession,
        retrieval: RetrievalService,
        completion: CompletionClient | None = None,
        locks: DraftLockManager | None = None,
    ):
        self.db = db
        self.retrieval = retrieval
        self.agent = create_drafting_agent(completion or CompletionClient("drafting"))
        self.locks = locks or DraftLockManager(db)

    async def generate_all(self, case_id: UUID, tenant_id: UUID) -> List[DraftResponse]:
        """Version 1 for every issue that has no draft yet, in position order."""
        case = await self._get_case(case_id, tenant_id)
        result = await self.db.execute(
            select(Issue).where(Issue.case_id == case.id).order_by(Issue.position)
        )
        issues = list(result.scalars().all())

        drafted = await self.db.execute(
            select(DraftResponse.issue_id).where(DraftResponse.case_id == case.id).distinct()
        )
        drafted_ids = set(drafted.scalars().all())

        created = []
        for issue in issues:
            if issue.id in drafted_ids:
                continue
            draft = await self._generate(case, issue, version=1)
            if draft is not None:
                created.append(draft)
        logger.info(f"Generated {len(created)} drafts for case {case.id}")
        return created

    async def regenerate_for_issue(self, issue_id: UUID, tenant_id: UUID) -> Optional[DraftResponse]:
        """Appends a new version after the highest existing one."""
        issue = await self._get_issue(issue_id, tenant_id)
        case = await self._get_case(issue.case_id, tenant_id)
        result = await self.db.execute(
            select(func.max(DraftResponse.version)).where(DraftResponse.issue_id == issue.id)
        )
        new_version = (result.scalar_one_or_none() or 0) + 1
        return await self._generate(case, issue, version=new_version)

    async def approve(
        self,
        draft_id: UUID,
        tenant_id: UUID,
        user: User | None = None,
        feedback: Optional[str] = None,
    ) -> DraftResponse:
        draft = await self.get_draft(draft_id, tenant_id)
        draft.status = DraftStatus.APPROVED
        draft.final_content = draft.edited_content or draft.ai_generated_content
        if feedback:
            draft.attorney_feedback = feedback
        record_event(
            self.db,
            draft.tenant_id,
            AuditEventType.DRAFT_APPROVED,
            case_id=draft.case_id,
            actor_id=user.id if user else None,
            artifact_id=draft.id,
            artifact_type="draft",
            detail={"version": draft.version},
        )
        await self.db.commit()
        return draft

    async def update_content(
        self,
        draft_id: UUID,
        tenant_id: UUID,
        user: User,
        edited_content: str,
        feedback: Optional[str] = None,
    ) -> DraftResponse:
        """Stores an edit. Rejected with ``LockConflict`` while another user holds the lock."""
        draft = await self.get_draft(draft_id, tenant_id)
        await self.locks.ensure_can_edit(draft, user)

        draft.edited_content = edited_content
        if feedback is not None:
            draft.attorney_feedback = feedback
        if draft.status == DraftStatus.DRAFT:
            draft.status = DraftStatus.EDITING
        record_event(
            self.db,
            draft.tenant_id,
            AuditEventType.DRAFT_EDITED,
            case_id=draft.case_id,
            actor_id=user.id,
            artifact_id=draft.id,
            artifact_type="draft",
        )
        await self.db.commit()
        return draft

    async def list_drafts(self, case_id: UUID, tenant_id: UUID) -> List[DraftResponse]:
        result = await self.db.execute(
            select(DraftResponse)
            .where(DraftResponse.case_id == case_id, DraftResponse.tenant_id == tenant_id)
            .order_by(DraftResponse.position, DraftResponse.version)
        )
        return list(result.scalars().all())

    async def get_draft(self, draft_id: UUID, tenant_id: UUID) -> DraftResponse:
        result = await self.db.execute(
            select(DraftResponse).where(DraftResponse.id == draft_id, DraftResponse.tenant_id == tenant_id)
        )
        draft = result.scalars().first()
        if draft is None:
            raise RecordNotFound("DraftResponse", draft_id)
        return draft

    async def _generate(self, case: Case, issue: Issue, version: int) -> Optional[DraftResponse]:
        evidence = await self.db.execute(
            select(EvidenceRequirement)
            .where(EvidenceRequirement.issue_id == issue.id)
            .order_by(EvidenceRequirement.position)
        )
        knowledge = await self._retrieve_knowledge(case, issue)

        state: DraftingAgentState = {
            "issue": {
                "section_type": issue.section_type.value,
                "title": issue.title,
                "cfr_reference": issue.cfr_reference,
                "original_text": issue.original_text,
                "summary": issue.summary,
            },
            "evidence": [
                {
                    "document_name": item.document_name,
                    "priority": item.priority.value,
                    "description": item.description,
                }
                for item in evidence.scalars().all()
            ],
            "case": {"visa_type": case.visa_type, "petitioner_name": case.petitioner_name},
            "knowledge": knowledge,
            "user_prompt": None,
            "content": None,
            "errors": [],
        }
        final_state = await self.agent.ainvoke(state)
        if final_state.get("errors"):
            logger.error(f"Draft generation failed for issue {issue.id}: {final_state['errors']}")
            return None

        draft = DraftResponse(
            tenant_id=case.tenant_id,
            case_id=case.id,
            issue_id=issue.id,
            position=issue.position,
            title=f"Response: {issue.title}",
            ai_generated_content=final_state["content"],
            status=DraftStatus.DRAFT,
            version=version,
        )
        self.db.add(draft)
        await self.db.flush()
        record_event(
            self.db,
            case.tenant_id,
            AuditEventType.DRAFT_GENERATED,
            case_id=case.id,
            artifact_id=draft.id,
            artifact_type="draft",
            detail={"issue_id": str(issue.id), "version": version},
        )
        await self.db.commit()
        return draft

    async def _retrieve_knowledge(self, case: Case, issue: Issue) -> List[dict]:
        """RAG context for one issue. Retrieval problems only cost the context."""
        query = " ".join(p for p in (issue.title, issue.original_text, issue.summary) if p).strip()
        try:
            chunks = await self.retrieval.retrieve(
                query,
                case.tenant_id,
                visa_type=case.visa_type,
                limit=settings.RAG_CONTEXT_LIMIT,
            )
        except Exception as e:
            logger.warning(f"RAG retrieval failed for issue {issue.id}: {e}")
            return []
        return [{"content": c.content, "metadata": c.metadata} for c in chunks]

    async def _get_case(self, case_id: UUID, tenant_id: UUID) -> Case:
        result = await self.db.execute(
            select(Case).where(Case.id == case_id, Case.tenant_id == tenant_id)
        )
        case = result.scalars().first()
        if case is None:
            raise RecordNotFound("Case", case_id)
        return case

    async def _get_issue(self, issue_id: UUID, tenant_id: UUID) -> Issue:
        result = await self.db.execute(
            select(Issue).where(Issue.id == issue_id, Issue.tenant_id == tenant_id)
        )
        issue = result.scalars().first()
        if issue is None:
            raise RecordNotFound("Issue", issue_id)
        return issue
