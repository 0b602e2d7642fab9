"""Application configuration and environment-driven settings.

Defines the Settings class based on pydantic-settings to centralize configuration for:
- API keys and model names (generation, naming, embeddings)
- Data stores (document database, Qdrant, Redis sessions)
- Chunking parameters and the hard chunk ceiling
- Retrieval/generation knobs (top-k, history window)
- Upload limits and logging

A light-weight local safety warning is logged if OPENAI_API_KEY is not set when not running in Docker.
"""
import logging
import os
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from environment variables.

    Uses pydantic-settings to populate fields from a .env file or process env.
    See individual field names for semantics and safe defaults.
    """
    # Required for generation
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")

    # Models
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_NAMING_MODEL: str = "gpt-4o-mini"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Embeddings
    EMBEDDING_PROVIDER: Literal["local", "openai"] = "local"
    LOCAL_EMBEDDING_MODEL: str = "BAAI/bge-small-en-v1.5"  # 384 dims
    EMBEDDING_BATCH_SIZE: int = 32

    # Vector index
    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: Optional[str] = None
    QDRANT_LOCATION: str = ""  # ":memory:" or a path switches to embedded mode
    QDRANT_COLLECTION: str = "docintel_docs"

    # Document store
    DATABASE_URL: str = "sqlite:///./data/docintel.db"

    # Sessions
    SESSION_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://redis:6379/0"

    # Chunking
    CHUNK_SIZE: int = 700
    CHUNK_OVERLAP: int = 80
    CHUNK_MAX_CHARS: int = 750

    # Retrieval/Generation
    TOP_K: int = 5
    HISTORY_MESSAGES: int = 6
    RECENT_HISTORY: int = 10
    MAX_OUTPUT_TOKENS: int = 4096
    TEMPERATURE: float = 0.7

    # Uploads
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()

# Safety check for local dev (inside API container this must be set)
if os.environ.get("RUNNING_IN_DOCKER", "0") == "0":
    if not settings.OPENAI_API_KEY:
        # Avoid raising to allow local scaffolding before setting .env
        logger.warning("OPENAI_API_KEY not set. Set it in .env before running /chat or /ask.")
