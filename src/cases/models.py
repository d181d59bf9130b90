from sqlalchemy import Column, String, Text, Date, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from src.database import Base, JSONType
from src.shared.models import AuditMixin
from src.cases.state_machine import CaseStatus


class Case(Base, AuditMixin):
    """An RFE response case."""
    __tablename__ = "rfe_cases"

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    created_by_id = Column(ForeignKey("users.id"), nullable=True)

    case_number = Column(String, nullable=False)
    petitioner_name = Column(String, nullable=True)
    beneficiary_name = Column(String, nullable=True)
    visa_type = Column(String, nullable=True)  # e.g. "H-1B"
    rfe_deadline = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(SAEnum(CaseStatus), default=CaseStatus.DRAFT, nullable=False)
    # Pipeline stage / last error, polled by clients. Last writer wins.
    progress = Column(JSONType, default=dict, nullable=False)

    documents = relationship("src.documents.models.SourceDocument", back_populates="case",
                             cascade="all, delete-orphan")
    issues = relationship("src.analysis.models.Issue", back_populates="case",
                          cascade="all, delete-orphan", order_by="Issue.position")
