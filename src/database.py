from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from pgvector.sqlalchemy import Vector

from src.config import settings

engine = create_async_engine(settings.SQLALCHEMY_DATABASE_URI, echo=False)
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

Base = declarative_base()

# Postgres gets JSONB / pgvector; every other dialect (SQLite in tests) falls back to plain JSON.
JSONType = JSON().with_variant(JSONB(), "postgresql")


def vector_type(dimensions: int):
    return Vector(dimensions).with_variant(JSON(), "sqlite")


async def get_db():
    """Request-scoped session dependency."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
