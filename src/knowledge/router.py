from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_active_user
from src.auth.models import User
from src.config import settings
from src.database import get_db
from src.jobs.tasks import enqueue
from src.knowledge.models import KnowledgeDoc, KnowledgeDocType
from src.knowledge.schemas import KnowledgeDocCreate, KnowledgeDocResponse, KnowledgeSearchResponse
from src.knowledge.service import KnowledgeSearchService
from src.retrieval.dependencies import get_retrieval_service
from src.retrieval.service import RetrievalService
from src.shared.exceptions import ExternalServiceError

router = APIRouter(prefix="/knowledge", tags=["knowledge"])


@router.post("/docs", response_model=KnowledgeDocResponse, status_code=201)
async def create_knowledge_doc(
    doc_in: KnowledgeDocCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    doc = KnowledgeDoc(
        **doc_in.model_dump(),
        tenant_id=current_user.tenant_id,
        uploaded_by_id=current_user.id,
        is_active=True,
    )
    db.add(doc)
    await db.commit()
    await db.refresh(doc)

    enqueue(background_tasks, "embed_knowledge_doc", knowledge_doc_id=doc.id, tenant_id=doc.tenant_id)
    return doc


@router.post("/docs/upload", response_model=KnowledgeDocResponse, status_code=201)
async def upload_knowledge_doc(
    background_tasks: BackgroundTasks,
    title: str = Form(...),
    doc_type: KnowledgeDocType = Form(...),
    visa_type: Optional[str] = Form(None),
    rfe_category: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Knowledge material supplied as a file; text is extracted when it is embedded."""
    content = await file.read()
    if len(content) == 0:
        raise HTTPException(status_code=400, detail="Empty file")

    doc = KnowledgeDoc(
        title=title,
        doc_type=doc_type,
        visa_type=visa_type,
        rfe_category=rfe_category,
        file_content=content,
        file_content_type=file.content_type,
        tenant_id=current_user.tenant_id,
        uploaded_by_id=current_user.id,
        is_active=True,
    )
    db.add(doc)
    await db.commit()
    await db.refresh(doc)

    enqueue(background_tasks, "embed_knowledge_doc", knowledge_doc_id=doc.id, tenant_id=doc.tenant_id)
    return doc


@router.get("/docs", response_model=List[KnowledgeDocResponse])
async def list_knowledge_docs(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = KnowledgeSearchService(db, retrieval)
    return await service.list_documents(current_user.tenant_id)


@router.get("/search", response_model=KnowledgeSearchResponse)
async def search_knowledge(
    q: str,
    visa_type: Optional[str] = None,
    rfe_category: Optional[str] = None,
    limit: int = settings.KNOWLEDGE_SEARCH_LIMIT,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    retrieval: RetrievalService = Depends(get_retrieval_service),
):
    service = KnowledgeSearchService(db, retrieval)
    try:
        return await service.search(
            q, current_user.tenant_id, visa_type=visa_type, rfe_category=rfe_category, limit=limit
        )
    except ExternalServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
