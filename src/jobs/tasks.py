"""Background task registry and runner.

Tasks are dispatched through FastAPI ``BackgroundTasks`` and each attempt runs
on its own session. ``ExternalServiceError`` is retried with exponential
backoff up to ``JOB_MAX_ATTEMPTS``; ``RecordNotFound`` discards the task.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src import models  # noqa: F401
from src.analysis.service import CaseAnalysisService
from src.cases.models import Case
from src.config import settings
from src.database import AsyncSessionLocal
from src.documents.models import DocumentType, SourceDocument
from src.drafting.service import DraftGenerationService
from src.knowledge.service import CaseDocumentIndexer, KnowledgeEmbeddingService
from src.llm.clients import EmbeddingClient
from src.retrieval.service import RetrievalService
from src.retrieval.vector_store import get_vector_store
from src.shared.exceptions import ExternalServiceError, RecordNotFound

logger = logging.getLogger(__name__)

TaskFn = Callable[..., Awaitable[Any]]
TASKS: Dict[str, TaskFn] = {}


def task(name: str):
    def register(fn: TaskFn) -> TaskFn:
        TASKS[name] = fn
        return fn
    return register


@task("analyze_case")
async def analyze_case(db: AsyncSession, case_id: UUID, tenant_id: UUID):
    result = await CaseAnalysisService(db).call(case_id, tenant_id)
    if not result.succeeded:
        if isinstance(result.failure, ExternalServiceError):
            raise result.failure
        return result

    case = await db.get(Case, case_id)
    notices = await db.execute(
        select(SourceDocument).where(
            SourceDocument.case_id == case_id,
            SourceDocument.document_type == DocumentType.RFE_NOTICE,
            SourceDocument.extracted_text.is_not(None),
        )
    )
    indexer = CaseDocumentIndexer(EmbeddingClient(), get_vector_store(db))
    for doc in notices.scalars().all():
        await indexer.call(doc, visa_type=case.visa_type if case else None)
    return result


@task("generate_drafts")
async def generate_drafts(db: AsyncSession, case_id: UUID, tenant_id: UUID, issue_id: Optional[UUID] = None):
    retrieval = RetrievalService(EmbeddingClient(), get_vector_store(db))
    service = DraftGenerationService(db, retrieval)
    if issue_id:
        return await service.regenerate_for_issue(issue_id, tenant_id)
    return await service.generate_all(case_id, tenant_id)


@task("embed_knowledge_doc")
async def embed_knowledge_doc(db: AsyncSession, knowledge_doc_id: UUID, tenant_id: UUID):
    service = KnowledgeEmbeddingService(db, EmbeddingClient(), get_vector_store(db))
    return await service.call(knowledge_doc_id, tenant_id)


async def run_task(
    name: str,
    *,
    session_factory=None,
    max_attempts: int = settings.JOB_MAX_ATTEMPTS,
    base_delay: float = settings.JOB_RETRY_BASE_DELAY,
    sleep=asyncio.sleep,
    **kwargs,
):
    fn = TASKS[name]
    session_factory = session_factory or AsyncSessionLocal

    for attempt in range(1, max_attempts + 1):
        async with session_factory() as db:
            try:
                return await fn(db, **kwargs)
            except RecordNotFound as e:
                logger.warning(f"Discarding task {name}: {e}")
                return None
            except ExternalServiceError as e:
                if attempt >= max_attempts:
                    logger.error(f"Task {name} failed after {attempt} attempts: {e}")
                    raise
                delay = base_delay * 2 ** (attempt - 1)
                logger.warning(f"Task {name} attempt {attempt} failed ({e}); retrying in {delay}s")
        await sleep(delay)


def enqueue(background_tasks: BackgroundTasks, name: str, **kwargs) -> None:
    if name not in TASKS:
        raise ValueError(f"Unknown task: {name!r}")
    background_tasks.add_task(run_task, name, **kwargs)
    logger.info(f"Enqueued task {name} {kwargs}")
