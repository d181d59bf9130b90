from enum import Enum
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, LargeBinary, ForeignKey, Uuid, Enum as SAEnum,
)
from src.config import settings
from src.database import Base, JSONType, vector_type
from src.shared.models import AuditMixin


class KnowledgeDocType(str, Enum):
    TEMPLATE = "template"
    SAMPLE_RESPONSE = "sample_response"
    REGULATION = "regulation"
    FIRM_KNOWLEDGE = "firm_knowledge"


class ChunkSourceType(str, Enum):
    KNOWLEDGE_DOC = "knowledge_doc"
    RFE_DOCUMENT = "rfe_document"


class KnowledgeDoc(Base, AuditMixin):
    """Firm knowledge material: templates, past responses, regulations."""
    __tablename__ = "knowledge_docs"

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    uploaded_by_id = Column(ForeignKey("users.id"), nullable=True)
    title = Column(String, nullable=False)
    doc_type = Column(SAEnum(KnowledgeDocType), nullable=False)
    visa_type = Column(String, nullable=True)
    rfe_category = Column(String, nullable=True)
    content = Column(Text, nullable=True)
    file_content = Column(LargeBinary, nullable=True)
    file_content_type = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class KnowledgeChunk(Base, AuditMixin):
    """Embedded slice of a knowledge doc or case document (pgvector backend)."""
    __tablename__ = "knowledge_chunks"

    tenant_id = Column(ForeignKey("tenants.id"), nullable=False, index=True)
    source_type = Column(SAEnum(ChunkSourceType), nullable=False)
    source_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    case_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(vector_type(settings.EMBEDDING_DIMENSIONS), nullable=True)
    # doc_type, visa_type, category, title
    chunk_metadata = Column("metadata", JSONType, default=dict, nullable=False)
