from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.drafting.models import DraftStatus


class DraftResponseSchema(BaseModel):
    id: UUID
    case_id: UUID
    issue_id: UUID
    position: int
    title: str
    status: DraftStatus
    version: int
    ai_generated_content: Optional[str] = None
    edited_content: Optional[str] = None
    final_content: Optional[str] = None
    attorney_feedback: Optional[str] = None
    locked_by_id: Optional[UUID] = None
    locked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UpdateDraftRequest(BaseModel):
    edited_content: str
    attorney_feedback: Optional[str] = None


class ApproveDraftRequest(BaseModel):
    attorney_feedback: Optional[str] = None


class RegenerateRequest(BaseModel):
    issue_id: UUID
