from datetime import datetime
from uuid import UUID
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.analysis.models import SectionType, EvidencePriority

DEFAULT_CONFIDENCE = 0.5


def _as_text(v):
    # Scalars become strings; nested structures are dropped
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (int, float, bool)):
        return str(v)
    return None


# --- Model output ---

class EvidenceItem(BaseModel):
    document_name: Optional[str] = None
    description: Optional[str] = None
    guidance: Optional[str] = None
    priority: EvidencePriority = EvidencePriority.RECOMMENDED

    @field_validator("document_name", "description", "guidance", mode="before")
    @classmethod
    def text_fields(cls, v):
        return _as_text(v)

    @field_validator("priority", mode="before")
    @classmethod
    def known_priority(cls, v):
        valid = {p.value for p in EvidencePriority}
        return v if isinstance(v, str) and v in valid else EvidencePriority.RECOMMENDED


class AnalysisSection(BaseModel):
    title: Optional[str] = None
    section_type: SectionType = SectionType.GENERAL
    original_text: Optional[str] = None
    summary: Optional[str] = None
    cfr_reference: Optional[str] = None
    confidence_score: float = DEFAULT_CONFIDENCE
    evidence_needed: List[EvidenceItem] = Field(default_factory=list)

    @field_validator("title", "original_text", "summary", "cfr_reference", mode="before")
    @classmethod
    def text_fields(cls, v):
        return _as_text(v)

    @field_validator("section_type", mode="before")
    @classmethod
    def known_section_type(cls, v):
        valid = {t.value for t in SectionType}
        return v if isinstance(v, str) and v in valid else SectionType.GENERAL

    @field_validator("confidence_score", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None or isinstance(v, bool):
            return DEFAULT_CONFIDENCE
        try:
            score = float(v)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE
        if score != score:  # NaN
            return DEFAULT_CONFIDENCE
        return min(max(score, 0.0), 1.0)

    @field_validator("evidence_needed", mode="before")
    @classmethod
    def evidence_list(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]


class NoticeAnalysis(BaseModel):
    """The JSON object the analysis model is asked to return."""
    sections: List[AnalysisSection] = Field(default_factory=list)

    @field_validator("sections", mode="before")
    @classmethod
    def section_list(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]


# --- API ---

class EvidenceRequirementResponse(BaseModel):
    id: UUID
    issue_id: UUID
    position: int
    priority: EvidencePriority
    document_name: str
    description: Optional[str] = None
    guidance: Optional[str] = None
    is_collected: bool

    model_config = ConfigDict(from_attributes=True)


class IssueResponse(BaseModel):
    id: UUID
    case_id: UUID
    position: int
    section_type: SectionType
    title: str
    original_text: Optional[str] = None
    summary: Optional[str] = None
    cfr_reference: Optional[str] = None
    confidence_score: float
    ai_analysis: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
