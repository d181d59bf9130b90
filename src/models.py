# Import every model module so string relationships resolve and Base.metadata is complete.
from src.auth.models import Tenant, User  # noqa: F401
from src.cases.models import Case  # noqa: F401
from src.documents.models import SourceDocument  # noqa: F401
from src.analysis.models import Issue, EvidenceRequirement  # noqa: F401
from src.drafting.models import DraftResponse  # noqa: F401
from src.knowledge.models import KnowledgeDoc, KnowledgeChunk  # noqa: F401
from src.audit.models import AuditEvent  # noqa: F401
