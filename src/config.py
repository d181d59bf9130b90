from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "RFE Assist Backend"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "rfe_assist"
    POSTGRES_PORT: int = 5432
    # Full async DSN; wins over the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    # LLM providers per role: ollama | openai | azure_openai | anthropic
    LLM_PROVIDER_ANALYSIS: str = "openai"
    LLM_PROVIDER_DRAFTING: str = "openai"
    LLM_PROVIDER_EMBEDDING: str = "openai"

    # Ollama
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL_ANALYSIS: str = "gpt-oss:20b"
    OLLAMA_MODEL_DRAFTING: str = "gpt-oss:20b"
    OLLAMA_MODEL_EMBEDDING: str = "embeddinggemma"

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL_ANALYSIS: str = "gpt-4o"
    OPENAI_MODEL_DRAFTING: str = "gpt-4o"
    OPENAI_MODEL_EMBEDDING: str = "text-embedding-3-small"

    # Azure OpenAI
    AZURE_OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_ENDPOINT: Optional[str] = None
    AZURE_OPENAI_API_VERSION: str = "2024-10-21"
    AZURE_OPENAI_MODEL_ANALYSIS: str = "gpt-4o"
    AZURE_OPENAI_MODEL_DRAFTING: str = "gpt-4o"
    AZURE_OPENAI_MODEL_EMBEDDING: str = "text-embedding-3-small"

    # Anthropic (chat only, no embeddings)
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL_ANALYSIS: str = "claude-sonnet-4-5"
    ANTHROPIC_MODEL_DRAFTING: str = "claude-sonnet-4-5"

    # Embeddings & chunking
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_MAX_CHARS: int = 8000
    CHUNK_SIZE_WORDS: int = 800
    CHUNK_OVERLAP_WORDS: int = 200

    # Retrieval
    VECTOR_STORE_BACKEND: str = "pgvector"  # pgvector | memory
    RAG_CONTEXT_LIMIT: int = 5
    KNOWLEDGE_SEARCH_LIMIT: int = 10
    SIMILAR_CASES_LIMIT: int = 5
    SIMILAR_CASES_OVERFETCH_FACTOR: int = 3

    # Collaborative editing
    DRAFT_LOCK_STALE_SECONDS: int = 300

    # Background jobs
    JOB_MAX_ATTEMPTS: int = 3
    JOB_RETRY_BASE_DELAY: float = 5.0

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
