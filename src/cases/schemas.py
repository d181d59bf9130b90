from datetime import date, datetime
from uuid import UUID
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from src.audit.models import AuditEventType
from src.cases.state_machine import CaseStatus, CaseAction

class CaseBase(BaseModel):
    case_number: str
    petitioner_name: Optional[str] = None
    beneficiary_name: Optional[str] = None
    visa_type: Optional[str] = None
    rfe_deadline: Optional[date] = None
    notes: Optional[str] = None

class CaseCreate(CaseBase):
    pass

class CaseResponse(CaseBase):
    id: UUID
    status: CaseStatus
    progress: Dict[str, Any] = {}
    tenant_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CaseTransitionRequest(BaseModel):
    action: CaseAction

class AnalysisStatusResponse(BaseModel):
    status: CaseStatus
    progress: Optional[str] = None
    sections_count: int
    error: Optional[str] = None

class SimilarCase(BaseModel):
    id: UUID
    case_number: str
    petitioner_name: Optional[str] = None
    visa_type: Optional[str] = None
    status: CaseStatus
    similarity_score: float
    matched_content: str

class SimilarCasesResponse(BaseModel):
    similar_cases: List[SimilarCase]

class CaseEventResponse(BaseModel):
    id: UUID
    event_type: AuditEventType
    actor_id: Optional[UUID] = None
    artifact_id: Optional[UUID] = None
    artifact_type: Optional[str] = None
    detail: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
