from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.llm.clients import EmbeddingClient
from src.retrieval.service import RetrievalService
from src.retrieval.vector_store import get_vector_store


async def get_retrieval_service(db: AsyncSession = Depends(get_db)) -> RetrievalService:
    return RetrievalService(EmbeddingClient(), get_vector_store(db))
