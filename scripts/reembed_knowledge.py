"""
Re-embed every active knowledge document with the current embedding provider.

Run after switching embedding models or changing the chunk window.

Usage:
    python -m scripts.reembed_knowledge
"""

import asyncio
import logging

from sqlalchemy import select

from src import models  # noqa: F401
from src.database import AsyncSessionLocal, engine
from src.knowledge.models import KnowledgeDoc
from src.knowledge.service import KnowledgeEmbeddingService
from src.llm.clients import EmbeddingClient
from src.retrieval.vector_store import get_vector_store

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def reembed_all():
    embeddings = EmbeddingClient()

    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(KnowledgeDoc.id, KnowledgeDoc.tenant_id)
            .where(KnowledgeDoc.is_active.is_(True))
            .order_by(KnowledgeDoc.created_at)
        )
        docs = result.all()
        total = len(docs)
        logger.info(f"Found {total} active knowledge documents")

        if total == 0:
            logger.info("Nothing to do")
            return

        service = KnowledgeEmbeddingService(db, embeddings, get_vector_store(db))
        chunks = 0
        for processed, (doc_id, tenant_id) in enumerate(docs, start=1):
            chunks += await service.call(doc_id, tenant_id)
            logger.info(f"Re-embedded {processed}/{total} documents")

        logger.info(f"Done. Stored {chunks} chunks total.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(reembed_all())
