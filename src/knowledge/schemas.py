from datetime import datetime
from uuid import UUID
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

from src.knowledge.models import KnowledgeDocType


class KnowledgeDocCreate(BaseModel):
    title: str
    doc_type: KnowledgeDocType
    visa_type: Optional[str] = None
    rfe_category: Optional[str] = None
    content: Optional[str] = None


class KnowledgeDocResponse(BaseModel):
    id: UUID
    title: str
    doc_type: KnowledgeDocType
    visa_type: Optional[str] = None
    rfe_category: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class KnowledgeSearchResult(BaseModel):
    content: str
    relevance_score: float
    title: Optional[str] = None
    doc_type: Optional[str] = None
    visa_type: Optional[str] = None
    knowledge_doc_id: Optional[str] = None


class KnowledgeSearchResponse(BaseModel):
    results: List[KnowledgeSearchResult]
    query: str
    total: int
