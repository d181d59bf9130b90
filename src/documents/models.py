from enum import Enum
from sqlalchemy import Column, String, Text, LargeBinary, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from src.database import Base, JSONType
from src.shared.models import AuditMixin


class DocumentType(str, Enum):
    RFE_NOTICE = "rfe_notice"
    SUPPORTING_EVIDENCE = "supporting_evidence"
    EXHIBIT = "exhibit"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceDocument(Base, AuditMixin):
    """Uploaded file (notice, evidence, exhibit) owned by one case."""
    __tablename__ = "rfe_documents"

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    case_id = Column(ForeignKey("rfe_cases.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="application/pdf")
    document_type = Column(SAEnum(DocumentType), default=DocumentType.RFE_NOTICE, nullable=False)
    file_hash = Column(String(64), nullable=True)  # SHA-256
    content = Column(LargeBinary, nullable=False)

    extracted_text = Column(Text, nullable=True)
    processing_status = Column(SAEnum(ProcessingStatus), default=ProcessingStatus.PENDING, nullable=False)
    # {"error": ..., "failed_at": ...} once extraction fails
    processing_metadata = Column(JSONType, default=dict, nullable=False)

    case = relationship("src.cases.models.Case", back_populates="documents")
