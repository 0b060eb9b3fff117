from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# gemini-embedding-001 dimension; every emitted vector must have exactly this length
EXPECTED_EMBEDDING_DIM = 3072


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Embeddings (any OpenAI-compatible endpoint)
    embedding_api_key: str = Field(default="")
    embedding_model: str = "gemini-embedding-001"
    embedding_base_url: str | None = "https://generativelanguage.googleapis.com/v1beta/openai/"
    embedding_headers: dict[str, str] = Field(default_factory=dict)
    embedding_batch_size: int = Field(default=250, gt=0)
    embedding_concurrency: int = Field(default=10, gt=0)
    embedding_request_timeout: float | None = None

    # Chunking
    max_chunk_size: int = Field(default=8000, gt=0)
    include_file_context: bool = True

    # Discovery
    max_file_size: int = 10 * 1024 * 1024
    respect_gitignore: bool = True
    watch_debounce_seconds: float = Field(default=1.0, gt=0)

    # App
    log_level: str = "INFO"

    @field_validator("embedding_base_url", mode="before")
    @classmethod
    def empty_base_url_to_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()


settings = Settings()
