from enum import Enum
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, ForeignKey, UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from src.database import Base, JSONType
from src.shared.models import AuditMixin


class SectionType(str, Enum):
    SPECIALTY_OCCUPATION = "specialty_occupation"
    BENEFICIARY_QUALIFICATIONS = "beneficiary_qualifications"
    EMPLOYER_EMPLOYEE = "employer_employee"
    GENERAL = "general"


class EvidencePriority(str, Enum):
    REQUIRED = "required"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"


class Issue(Base, AuditMixin):
    """One distinct problem raised by an RFE notice."""
    __tablename__ = "rfe_sections"
    __table_args__ = (UniqueConstraint("case_id", "position", name="uq_rfe_sections_case_position"),)

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    case_id = Column(ForeignKey("rfe_cases.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(ForeignKey("rfe_documents.id", ondelete="SET NULL"), nullable=True)

    position = Column(Integer, nullable=False)
    section_type = Column(SAEnum(SectionType), default=SectionType.GENERAL, nullable=False)
    title = Column(String, nullable=False)
    original_text = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    cfr_reference = Column(String, nullable=True)
    confidence_score = Column(Float, default=0.5, nullable=False)
    ai_analysis = Column(JSONType, default=dict, nullable=False)  # model, analyzed_at, raw_section

    case = relationship("src.cases.models.Case", back_populates="issues")
    evidence_requirements = relationship("EvidenceRequirement", back_populates="issue",
                                         cascade="all, delete-orphan",
                                         order_by="EvidenceRequirement.position")


class EvidenceRequirement(Base, AuditMixin):
    """Checklist item: one piece of evidence needed to rebut an issue."""
    __tablename__ = "evidence_checklists"

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    case_id = Column(ForeignKey("rfe_cases.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(ForeignKey("rfe_sections.id", ondelete="CASCADE"), nullable=False, index=True)

    position = Column(Integer, nullable=False, default=0)
    priority = Column(SAEnum(EvidencePriority), default=EvidencePriority.RECOMMENDED, nullable=False)
    document_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    guidance = Column(Text, nullable=True)
    is_collected = Column(Boolean, default=False, nullable=False)

    issue = relationship("Issue", back_populates="evidence_requirements")
