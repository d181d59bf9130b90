from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.analysis.models import EvidenceRequirement, Issue
from src.analysis.schemas import EvidenceRequirementResponse, IssueResponse
from src.audit.models import AuditEventType
from src.audit.service import list_case_events
from src.auth.dependencies import get_current_active_user
from src.auth.models import User
from src.cases.schemas import (
    AnalysisStatusResponse, CaseCreate, CaseEventResponse, CaseResponse, CaseTransitionRequest,
    SimilarCasesResponse,
)
from src.cases.service import CaseService
from src.cases.similarity import CaseSimilarityService
from src.config import settings
from src.database import get_db
from src.jobs.tasks import enqueue
from src.retrieval.dependencies import get_retrieval_service
from src.retrieval.service import RetrievalService
from src.shared.exceptions import ExternalServiceError, InvalidTransition, RecordNotFound

router = APIRouter(prefix="/cases", tags=["cases"])


@router.post("", response_model=CaseResponse, status_code=201)
async def create_case(
    case_in: CaseCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = CaseService(db)
    return await service.create_case(case_in, current_user.tenant_id, current_user.id)


@router.get("", response_model=List[CaseResponse])
async def list_cases(
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = CaseService(db)
    return await service.list_cases(current_user.tenant_id, skip, limit)


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = CaseService(db)
    try:
        return await service.get_case(case_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{case_id}/transition", response_model=CaseResponse)
async def transition_case(
    case_id: UUID,
    request: CaseTransitionRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = CaseService(db)
    try:
        case = await service.get_case(case_id, current_user.tenant_id)
        return await service.transition(case, request.action, current_user.id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{case_id}/analyze", response_model=CaseResponse, status_code=202)
async def start_analysis(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = CaseService(db)
    try:
        case = await service.start_analysis(case_id, current_user.tenant_id, current_user.id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    enqueue(background_tasks, "analyze_case", case_id=case.id, tenant_id=case.tenant_id)
    return case


@router.get("/{case_id}/analysis_status", response_model=AnalysisStatusResponse)
async def analysis_status(
    case_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = CaseService(db)
    try:
        return await service.analysis_status(case_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{case_id}/issues", response_model=List[IssueResponse])
async def list_issues(
    case_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Issue)
        .where(Issue.case_id == case_id, Issue.tenant_id == current_user.tenant_id)
        .order_by(Issue.position)
    )
    return result.scalars().all()


@router.get("/{case_id}/evidence", response_model=List[EvidenceRequirementResponse])
async def list_evidence(
    case_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(EvidenceRequirement)
        .join(Issue, EvidenceRequirement.issue_id == Issue.id)
        .where(EvidenceRequirement.case_id == case_id, EvidenceRequirement.tenant_id == current_user.tenant_id)
        .order_by(Issue.position, EvidenceRequirement.position)
    )
    return result.scalars().all()


@router.get("/{case_id}/similar", response_model=SimilarCasesResponse)
async def similar_cases(
    case_id: UUID,
    limit: int = settings.SIMILAR_CASES_LIMIT,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = CaseSimilarityService(db, retrieval)
    try:
        results = await service.find_similar(case_id, current_user.tenant_id, limit=limit)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExternalServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"similar_cases": results}



@router.get("/{case_id}/audit", response_model=List[CaseEventResponse])
async def list_case_audit(
    case_id: UUID,
    event_type: Optional[AuditEventType] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        await CaseService(db).get_case(case_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return await list_case_events(db, current_user.tenant_id, case_id, event_type=event_type)
