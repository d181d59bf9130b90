from fastapi import APIRouter

from src.cases.router import router as cases_router
from src.documents.router import router as documents_router
from src.drafting.router import router as drafting_router
from src.knowledge.router import router as knowledge_router
from src.routes.v1.websockets import router as ws_router

api_router = APIRouter()

api_router.include_router(cases_router)
api_router.include_router(documents_router)
api_router.include_router(drafting_router)
api_router.include_router(knowledge_router)
api_router.include_router(ws_router, prefix="/ws")
