from typing import List
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.auth.models import User
from src.auth.dependencies import get_current_active_user
from src.cases.service import CaseService
from src.drafting.locks import DraftLockManager
from src.drafting.schemas import (
    ApproveDraftRequest, DraftResponseSchema, RegenerateRequest, UpdateDraftRequest,
)
from src.drafting.service import DraftGenerationService
from src.jobs.tasks import enqueue
from src.retrieval.dependencies import get_retrieval_service
from src.retrieval.service import RetrievalService
from src.shared.exceptions import LockConflict, RecordNotFound

router = APIRouter(tags=["drafting"])


def _lock_conflict(e: LockConflict) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"message": str(e), "locked_by_id": str(e.holder_id), "locked_by_name": e.holder_name},
    )


@router.post("/cases/{case_id}/drafts/generate", status_code=202)
async def generate_drafts(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        case = await CaseService(db).get_case(case_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    enqueue(background_tasks, "generate_drafts", case_id=case.id, tenant_id=case.tenant_id)
    return {"status": "queued", "case_id": str(case.id)}


@router.post("/cases/{case_id}/drafts/regenerate", status_code=202)
async def regenerate_draft(
    case_id: UUID,
    request: RegenerateRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        case = await CaseService(db).get_case(case_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    enqueue(
        background_tasks,
        "generate_drafts",
        case_id=case.id,
        tenant_id=case.tenant_id,
        issue_id=request.issue_id,
    )
    return {"status": "queued", "case_id": str(case.id), "issue_id": str(request.issue_id)}


@router.get("/cases/{case_id}/drafts", response_model=List[DraftResponseSchema])
async def list_drafts(
    case_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = DraftGenerationService(db, retrieval)
    return await service.list_drafts(case_id, current_user.tenant_id)


@router.patch("/drafts/{draft_id}", response_model=DraftResponseSchema)
async def update_draft(
    draft_id: UUID,
    request: UpdateDraftRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = DraftGenerationService(db, retrieval)
    try:
        return await service.update_content(
            draft_id,
            current_user.tenant_id,
            current_user,
            request.edited_content,
            feedback=request.attorney_feedback,
        )
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LockConflict as e:
        raise _lock_conflict(e)


@router.post("/drafts/{draft_id}/approve", response_model=DraftResponseSchema)
async def approve_draft(
    draft_id: UUID,
    request: ApproveDraftRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = DraftGenerationService(db, retrieval)
    try:
        return await service.approve(
            draft_id, current_user.tenant_id, current_user, feedback=request.attorney_feedback
        )
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/drafts/{draft_id}/lock", response_model=DraftResponseSchema)
async def lock_draft(
    draft_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = DraftGenerationService(db, retrieval)
    try:
        draft = await service.get_draft(draft_id, current_user.tenant_id)
        return await DraftLockManager(db).acquire(draft, current_user)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LockConflict as e:
        raise _lock_conflict(e)


@router.delete("/drafts/{draft_id}/lock", response_model=DraftResponseSchema)
async def unlock_draft(
    draft_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = DraftGenerationService(db, retrieval)
    try:
        draft = await service.get_draft(draft_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    await DraftLockManager(db).release(draft, current_user)
    return draft
