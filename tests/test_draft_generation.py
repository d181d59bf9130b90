"""Versioned draft generation with knowledge-base context."""
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select

from src.agents.drafting.agent import build_user_prompt, format_knowledge_context
from src.analysis.models import EvidencePriority, EvidenceRequirement, Issue, SectionType
from src.audit.models import AuditEvent, AuditEventType
from src.drafting.locks import DraftLockManager
from src.drafting.models import DraftResponse, DraftStatus
from src.drafting.service import DraftGenerationService
from src.knowledge.models import ChunkSourceType
from src.retrieval.service import RetrievalService
from src.retrieval.vector_store import ChunkRecord
from src.llm.clients import EmbeddingClient
from src.shared.exceptions import LockConflict, RecordNotFound
from fakes import FailingEmbeddings, RecordingPublisher, ScriptedCompletion, service_error


async def add_issue(db, case, position, title, section_type=SectionType.SPECIALTY_OCCUPATION, evidence=()):
    issue = Issue(
        tenant_id=case.tenant_id,
        case_id=case.id,
        position=position,
        section_type=section_type,
        title=title,
        original_text=f"USCIS questions {title.lower()}.",
        summary=f"Summary of {title.lower()}",
        cfr_reference="8 CFR 214.2(h)",
        confidence_score=0.8,
        ai_analysis={},
    )
    db.add(issue)
    await db.flush()
    for index, name in enumerate(evidence):
        db.add(EvidenceRequirement(
            tenant_id=case.tenant_id,
            case_id=case.id,
            issue_id=issue.id,
            position=index,
            priority=EvidencePriority.REQUIRED,
            document_name=name,
            description=f"{name} description",
        ))
    await db.commit()
    return issue


@pytest_asyncio.fixture
async def issues(db_session, case):
    return [
        await add_issue(db_session, case, 0, "Specialty Occupation", evidence=["Expert opinion letter"]),
        await add_issue(db_session, case, 1, "Employer Employee", SectionType.EMPLOYER_EMPLOYEE),
    ]


def drafting_service(db_session, retrieval, *replies, publisher=None):
    locks = DraftLockManager(db_session, publisher=publisher or RecordingPublisher())
    completion = ScriptedCompletion(*replies)
    return DraftGenerationService(db_session, retrieval, completion=completion, locks=locks), completion


async def versions(db_session, issue):
    result = await db_session.execute(
        select(DraftResponse.version).where(DraftResponse.issue_id == issue.id).order_by(DraftResponse.version)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------

class TestPromptAssembly:
    def test_knowledge_sources_are_numbered(self):
        block = format_knowledge_context([
            {"content": "Template body", "metadata": {"title": "Brief template", "doc_type": "template"}},
            {"content": "Reg text", "metadata": {}},
        ])
        assert "RELEVANT KNOWLEDGE BASE CONTEXT:" in block
        assert "--- Source 1: Brief template (template) ---\nTemplate body" in block
        assert "--- Source 2: Knowledge Doc (unknown) ---\nReg text" in block

    def test_no_knowledge_means_no_block(self):
        assert format_knowledge_context([]) == ""

    def test_user_prompt_fields(self):
        prompt = build_user_prompt({
            "issue": {"section_type": "beneficiary_qualifications", "title": "Degree", "cfr_reference": None,
                      "original_text": "Stated", "summary": "Summary"},
            "evidence": [],
            "case": {"visa_type": "H-1B", "petitioner_name": "Acme"},
            "knowledge": [],
            "user_prompt": None,
            "content": None,
            "errors": [],
        })
        assert "ISSUE TYPE: Beneficiary qualifications" in prompt
        assert "CFR REFERENCE: N/A" in prompt
        assert "No specific evidence items listed yet." in prompt
        assert "RELEVANT KNOWLEDGE BASE CONTEXT" not in prompt


# ---------------------------------------------------------------------------
# DraftGenerationService
# ---------------------------------------------------------------------------

class TestGenerateAll:
    @pytest.mark.asyncio
    async def test_version_one_for_each_issue(self, db_session, case, issues, retrieval):
        service, completion = drafting_service(db_session, retrieval, "Draft A", "Draft B")

        drafts = await service.generate_all(case.id, case.tenant_id)

        assert [d.ai_generated_content for d in drafts] == ["Draft A", "Draft B"]
        assert [d.version for d in drafts] == [1, 1]
        assert [d.title for d in drafts] == ["Response: Specialty Occupation", "Response: Employer Employee"]
        assert all(d.status == DraftStatus.DRAFT for d in drafts)
        assert completion.calls[0]["temperature"] == 0.3
        assert completion.calls[0]["max_tokens"] == 3000
        assert "Expert opinion letter (required)" in completion.calls[0]["user_prompt"]

        audit = await db_session.execute(
            select(AuditEvent).where(AuditEvent.event_type == AuditEventType.DRAFT_GENERATED)
        )
        assert len(audit.scalars().all()) == 2

    @pytest.mark.asyncio
    async def test_issues_with_drafts_are_skipped(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "First pass")
        await service.generate_all(case.id, case.tenant_id)

        service, completion = drafting_service(db_session, retrieval, "Second pass")
        assert await service.generate_all(case.id, case.tenant_id) == []
        assert completion.calls == []

    @pytest.mark.asyncio
    async def test_completion_failure_skips_only_that_issue(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, service_error(), "Employer draft")

        drafts = await service.generate_all(case.id, case.tenant_id)

        assert [d.issue_id for d in drafts] == [issues[1].id]
        assert await versions(db_session, issues[0]) == []

    @pytest.mark.asyncio
    async def test_empty_completion_is_a_failure(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "   ")
        assert await service.generate_all(case.id, case.tenant_id) == []

    @pytest.mark.asyncio
    async def test_unknown_case(self, db_session, tenant, retrieval):
        service, _ = drafting_service(db_session, retrieval, "x")
        with pytest.raises(RecordNotFound):
            await service.generate_all(uuid4(), tenant.id)


class TestKnowledgeContext:
    @pytest.mark.asyncio
    async def test_prompt_carries_matching_knowledge(
        self, db_session, case, issues, retrieval, embedding_client, vector_store
    ):
        text = "Specialty occupation argument citing Innova Solutions v. Baran."
        await vector_store.replace_chunks(case.tenant_id, ChunkSourceType.KNOWLEDGE_DOC, uuid4(), [
            ChunkRecord(0, text, await embedding_client.embed(text),
                        {"title": "Winning H-1B brief", "doc_type": "sample_response", "visa_type": "H-1B"}),
        ])
        await vector_store.replace_chunks(case.tenant_id, ChunkSourceType.KNOWLEDGE_DOC, uuid4(), [
            ChunkRecord(0, "O-1 awards criteria", await embedding_client.embed("O-1 awards criteria"),
                        {"title": "O-1 guide", "visa_type": "O-1"}),
        ])
        service, completion = drafting_service(db_session, retrieval, "Draft")

        await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        prompt = completion.calls[0]["user_prompt"]
        assert "--- Source 1: Winning H-1B brief (sample_response) ---" in prompt
        assert text in prompt
        assert "O-1 guide" not in prompt

    @pytest.mark.asyncio
    async def test_retrieval_failure_drafts_without_context(self, db_session, case, issues, vector_store):
        broken = RetrievalService(EmbeddingClient(embeddings=FailingEmbeddings()), vector_store)
        service, completion = drafting_service(db_session, broken, "Draft without context")

        draft = await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        assert draft.ai_generated_content == "Draft without context"
        assert "RELEVANT KNOWLEDGE BASE CONTEXT" not in completion.calls[0]["user_prompt"]


class TestRegenerate:
    @pytest.mark.asyncio
    async def test_versions_increase_and_old_rows_are_untouched(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "v1", "v2", "v3")
        first = await service.regenerate_for_issue(issues[0].id, case.tenant_id)
        second = await service.regenerate_for_issue(issues[0].id, case.tenant_id)
        third = await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        assert (first.version, second.version, third.version) == (1, 2, 3)
        assert await versions(db_session, issues[0]) == [1, 2, 3]
        await db_session.refresh(first)
        assert first.ai_generated_content == "v1"

    @pytest.mark.asyncio
    async def test_failed_regeneration_adds_no_version(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "v1", service_error())
        await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        assert await service.regenerate_for_issue(issues[0].id, case.tenant_id) is None
        assert await versions(db_session, issues[0]) == [1]

    @pytest.mark.asyncio
    async def test_issue_from_other_tenant(self, db_session, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "x")
        with pytest.raises(RecordNotFound):
            await service.regenerate_for_issue(issues[0].id, uuid4())


class TestEditingAndApproval:
    @pytest.mark.asyncio
    async def test_update_moves_draft_to_editing(self, db_session, case, issues, retrieval, user):
        service, _ = drafting_service(db_session, retrieval, "AI text")
        draft = await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        updated = await service.update_content(draft.id, case.tenant_id, user, "Attorney text", feedback="tighten")

        assert updated.status == DraftStatus.EDITING
        assert updated.edited_content == "Attorney text"
        assert updated.attorney_feedback == "tighten"
        assert updated.ai_generated_content == "AI text"

    @pytest.mark.asyncio
    async def test_update_rejected_while_locked_by_other(
        self, db_session, case, issues, retrieval, user, other_user
    ):
        service, _ = drafting_service(db_session, retrieval, "AI text")
        draft = await service.regenerate_for_issue(issues[0].id, case.tenant_id)
        await service.locks.acquire(draft, other_user)

        with pytest.raises(LockConflict) as exc:
            await service.update_content(draft.id, case.tenant_id, user, "Sneaky edit")

        assert exc.value.holder_id == other_user.id
        assert exc.value.holder_name == "Ben Okafor"
        await db_session.refresh(draft)
        assert draft.edited_content is None

    @pytest.mark.asyncio
    async def test_approve_prefers_edited_content(self, db_session, case, issues, retrieval, user):
        service, _ = drafting_service(db_session, retrieval, "AI text")
        draft = await service.regenerate_for_issue(issues[0].id, case.tenant_id)
        await service.update_content(draft.id, case.tenant_id, user, "Edited text")

        approved = await service.approve(draft.id, case.tenant_id, user, feedback="Looks good")

        assert approved.status == DraftStatus.APPROVED
        assert approved.final_content == "Edited text"
        assert approved.attorney_feedback == "Looks good"

    @pytest.mark.asyncio
    async def test_approve_falls_back_to_ai_content(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "AI text")
        draft = await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        approved = await service.approve(draft.id, case.tenant_id)

        assert approved.final_content == "AI text"

    @pytest.mark.asyncio
    async def test_list_orders_by_position_then_version(self, db_session, case, issues, retrieval):
        service, _ = drafting_service(db_session, retrieval, "text")
        await service.regenerate_for_issue(issues[1].id, case.tenant_id)
        await service.regenerate_for_issue(issues[0].id, case.tenant_id)
        await service.regenerate_for_issue(issues[0].id, case.tenant_id)

        drafts = await service.list_drafts(case.id, case.tenant_id)

        assert [(d.position, d.version) for d in drafts] == [(0, 1), (0, 2), (1, 1)]
