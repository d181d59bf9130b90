from uuid import UUID
from typing import List
from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.auth.models import User
from src.auth.dependencies import get_current_active_user
from src.documents.service import DocumentService, DuplicateDocument
from src.documents.models import DocumentType
from src.documents.schemas import DocumentResponse, DocumentDetailResponse
from src.shared.exceptions import RecordNotFound

router = APIRouter(prefix="/cases/{case_id}/documents", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
async def upload_document(
    case_id: UUID,
    file: UploadFile = File(...),
    document_type: DocumentType = Form(DocumentType.RFE_NOTICE),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Upload a notice, evidence file or exhibit for a case."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    content = await file.read()
    if len(content) == 0:
        raise HTTPException(status_code=400, detail="Empty file")

    service = DocumentService(db)
    try:
        return await service.upload(
            case_id,
            current_user.tenant_id,
            file.filename,
            file.content_type,
            content,
            document_type=document_type,
        )
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateDocument as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    case_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """List all documents for a case."""
    service = DocumentService(db)
    return await service.list_documents(case_id, current_user.tenant_id)


@router.get("/{document_id}", response_model=DocumentDetailResponse)
async def get_document(
    case_id: UUID,
    document_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    service = DocumentService(db)
    try:
        doc = await service.get_document(document_id, current_user.tenant_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    if doc.case_id != case_id:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc
