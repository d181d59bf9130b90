from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src import models  # noqa: F401
from src.main import app
from src.database import get_db, Base
from src.auth.models import Tenant, User
from src.cases.models import Case
from src.cases.state_machine import CaseStatus
from src.documents.models import DocumentType, ProcessingStatus, SourceDocument
from src.llm.clients import EmbeddingClient
from src.retrieval.dependencies import get_retrieval_service
from src.retrieval.service import RetrievalService
from src.retrieval.vector_store import InMemoryVectorStore
from fakes import HashingEmbeddings, RecordingPublisher

# Tests run against in-memory SQLite; Postgres-only column types fall back to JSON.
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture
def embeddings() -> HashingEmbeddings:
    return HashingEmbeddings()


@pytest.fixture
def embedding_client(embeddings) -> EmbeddingClient:
    return EmbeddingClient(embeddings=embeddings)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def retrieval(embedding_client, vector_store) -> RetrievalService:
    return RetrievalService(embedding_client, vector_store)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest_asyncio.fixture
async def tenant(db_session: AsyncSession) -> Tenant:
    tenant = Tenant(name="Harbor Immigration LLP", domain="harbor.test")
    db_session.add(tenant)
    await db_session.commit()
    return tenant


async def make_user(db: AsyncSession, tenant: Tenant, email: str, first_name: str, last_name: str, is_admin=False) -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        tenant_id=tenant.id,
        is_admin=is_admin,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def user(db_session, tenant) -> User:
    return await make_user(db_session, tenant, "ana@harbor.test", "Ana", "Ruiz")


@pytest_asyncio.fixture
async def other_user(db_session, tenant) -> User:
    return await make_user(db_session, tenant, "ben@harbor.test", "Ben", "Okafor")


@pytest_asyncio.fixture
async def admin_user(db_session, tenant) -> User:
    return await make_user(db_session, tenant, "kim@harbor.test", "Kim", "Lee", is_admin=True)


async def make_case(db: AsyncSession, tenant: Tenant, case_number: str = "RFE-2024-001", **kwargs) -> Case:
    case = Case(
        tenant_id=tenant.id,
        case_number=case_number,
        petitioner_name=kwargs.pop("petitioner_name", "Acme Robotics Inc."),
        visa_type=kwargs.pop("visa_type", "H-1B"),
        status=kwargs.pop("status", CaseStatus.DRAFT),
        progress={},
        **kwargs,
    )
    db.add(case)
    await db.commit()
    return case


async def add_document(
    db: AsyncSession,
    case: Case,
    text: str = None,
    content: bytes = None,
    content_type: str = "text/plain",
    document_type: DocumentType = DocumentType.RFE_NOTICE,
    filename: str = "rfe_notice.txt",
) -> SourceDocument:
    doc = SourceDocument(
        tenant_id=case.tenant_id,
        case_id=case.id,
        filename=filename,
        content_type=content_type,
        document_type=document_type,
        content=content if content is not None else (text or "").encode("utf-8"),
        processing_status=ProcessingStatus.PENDING,
        processing_metadata={},
    )
    db.add(doc)
    await db.commit()
    return doc


@pytest_asyncio.fixture
async def case(db_session, tenant) -> Case:
    return await make_case(db_session, tenant)


@pytest.fixture
def case_factory(db_session, tenant):
    async def factory(case_number: str = "RFE-2024-001", **kwargs) -> Case:
        return await make_case(db_session, tenant, case_number, **kwargs)
    return factory


@pytest.fixture
def document_factory(db_session):
    async def factory(case: Case, **kwargs) -> SourceDocument:
        return await add_document(db_session, case, **kwargs)
    return factory


@pytest.fixture
def user_factory(db_session, tenant):
    async def factory(email: str, first_name: str, last_name: str, is_admin: bool = False) -> User:
        return await make_user(db_session, tenant, email, first_name, last_name, is_admin=is_admin)
    return factory


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession, retrieval: RetrievalService) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    # Override the get_db dependency to use our test session
    async def override_get_db():
        yield db_session

    async def override_retrieval():
        return retrieval

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_retrieval_service] = override_retrieval

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
