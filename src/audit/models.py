from enum import Enum
from sqlalchemy import Column, String, ForeignKey, Uuid
from sqlalchemy import Enum as SAEnum
from src.database import Base, JSONType
from src.shared.models import AuditMixin


class AuditEventType(str, Enum):
    ANALYSIS_COMPLETED = "ANALYSIS_COMPLETED"
    CASE_TRANSITIONED = "CASE_TRANSITIONED"
    DRAFT_GENERATED = "DRAFT_GENERATED"
    DRAFT_EDITED = "DRAFT_EDITED"
    DRAFT_APPROVED = "DRAFT_APPROVED"
    DRAFT_LOCKED = "DRAFT_LOCKED"
    DRAFT_UNLOCKED = "DRAFT_UNLOCKED"


class AuditEvent(Base, AuditMixin):
    __tablename__ = "audit_events"

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    case_id = Column(ForeignKey("rfe_cases.id", ondelete="CASCADE"), nullable=True, index=True)
    event_type = Column(SAEnum(AuditEventType), nullable=False)
    actor_id = Column(ForeignKey("users.id"), nullable=True)
    artifact_id = Column(Uuid(as_uuid=True), nullable=True)
    artifact_type = Column(String, nullable=True)  # "case" | "issue" | "draft"
    detail = Column(JSONType, nullable=True)
