from uuid import UUID
from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from src.documents.models import DocumentType, ProcessingStatus


class DocumentResponse(BaseModel):
    id: UUID
    case_id: UUID
    filename: str
    content_type: str
    document_type: DocumentType
    processing_status: ProcessingStatus
    processing_metadata: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentDetailResponse(DocumentResponse):
    extracted_text: Optional[str] = None
