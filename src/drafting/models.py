from enum import Enum
from sqlalchemy import (
    Column, String, Text, Integer, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin


class DraftStatus(str, Enum):
    DRAFT = "draft"
    EDITING = "editing"
    REVIEWED = "reviewed"
    APPROVED = "approved"


class DraftResponse(Base, AuditMixin):
    """Versioned rebuttal for one issue. Rows are never rewritten by regeneration."""
    __tablename__ = "draft_responses"
    __table_args__ = (UniqueConstraint("issue_id", "version", name="uq_draft_responses_issue_version"),)

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    case_id = Column(ForeignKey("rfe_cases.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(ForeignKey("rfe_sections.id", ondelete="CASCADE"), nullable=False, index=True)

    position = Column(Integer, nullable=False, default=0)
    title = Column(String, nullable=False)
    status = Column(SAEnum(DraftStatus), default=DraftStatus.DRAFT, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    ai_generated_content = Column(Text, nullable=True)
    edited_content = Column(Text, nullable=True)
    final_content = Column(Text, nullable=True)
    attorney_feedback = Column(Text, nullable=True)

    # Advisory edit lock
    locked_by_id = Column(ForeignKey("users.id"), nullable=True)
    locked_at = Column(DateTime, nullable=True)

    locked_by = relationship("src.auth.models.User")
