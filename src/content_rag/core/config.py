"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
"""

import json
from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from content_rag.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ============================================
    # Application
    # ============================================
    app_name: str = "Content RAG"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ============================================
    # Content store (PostgreSQL, read-only)
    # ============================================
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "content"

    # Explicit DATABASE_URL takes precedence if set
    database_url: str | None = None

    @property
    def get_database_url(self) -> str:
        """Get database URL - explicit or constructed from components."""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    # ============================================
    # Qdrant (Vector Database)
    # ============================================
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    qdrant_collection: str = "content_chunks"
    qdrant_timeout: int = 60  # seconds; batched upserts need more than the 5s default

    # ============================================
    # Embeddings (OpenAI-compatible endpoint)
    # ============================================
    embedding_api_key: str = ""
    embedding_base_url: str | None = Field(
        default=None, description="Override for OpenAI-compatible embedding servers"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model name"
    )
    embedding_dimensions: int = Field(
        default=1536, description="Embedding vector dimensions (must match model)"
    )
    embedding_batch_size: int = 100
    embedding_timeout: float = 120.0

    # ============================================
    # Chunking
    # ============================================
    chunk_max_size: int = 1000
    chunk_overlap: int = 200
    chunk_min_size: int = 100

    # ============================================
    # Retrieval
    # ============================================
    retrieval_top_k: int = 5
    retrieval_similarity_threshold: float = 0.5

    # ============================================
    # Google Drive folder sync
    # ============================================
    google_drive_folder_id: str = ""
    google_drive_service_account_key: str = ""  # Service account JSON, inline
    google_drive_timeout: float = 60.0

    # ============================================
    # Retries (embedding + vector store calls)
    # ============================================
    retry_max_attempts: int = 3

    @property
    def google_drive_enabled(self) -> bool:
        """Drive sync runs only when a folder is configured."""
        return bool(self.google_drive_folder_id)

    def get_service_account_info(self) -> dict[str, Any]:
        """Parse the inline service account key."""
        try:
            info = json.loads(self.google_drive_service_account_key)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"GOOGLE_DRIVE_SERVICE_ACCOUNT_KEY is not valid JSON: {e}"
            ) from None
        if not isinstance(info, dict) or "client_email" not in info or "private_key" not in info:
            raise ConfigurationError(
                "GOOGLE_DRIVE_SERVICE_ACCOUNT_KEY must contain client_email and private_key"
            )
        return info

    def validate_for_indexing(self) -> None:
        """Fail fast when a required credential or endpoint is missing.

        Raises:
            ConfigurationError: On the first missing or malformed setting
        """
        if not self.embedding_api_key:
            raise ConfigurationError("EMBEDDING_API_KEY is required")
        if not self.qdrant_url:
            raise ConfigurationError("QDRANT_URL is required")
        if self.google_drive_enabled:
            if not self.google_drive_service_account_key:
                raise ConfigurationError(
                    "GOOGLE_DRIVE_SERVICE_ACCOUNT_KEY is required when "
                    "GOOGLE_DRIVE_FOLDER_ID is set"
                )
            self.get_service_account_info()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
