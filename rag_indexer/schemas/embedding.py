from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

from rag_indexer.config import Settings


class EmbeddingConfig(BaseModel):
    """Per-run embedding settings: credentials, model and batching overrides."""

    api_key: str
    model: str = "gemini-embedding-001"
    batch_size: int = Field(default=250, gt=0)
    base_url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    max_chunk_size: int = Field(default=8000, gt=0)
    include_file_context: bool = True
    request_timeout: float | None = Field(default=None, gt=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> EmbeddingConfig:
        return cls(
            api_key=settings.embedding_api_key,
            model=settings.embedding_model,
            batch_size=settings.embedding_batch_size,
            base_url=settings.embedding_base_url,
            headers=dict(settings.embedding_headers),
            max_chunk_size=settings.max_chunk_size,
            include_file_context=settings.include_file_context,
            request_timeout=settings.embedding_request_timeout,
        )


@dataclass
class FileEmbedding:
    relative_path: str
    chunk_index: int
    total_chunks: int
    start_line: int  # 1-indexed, inclusive
    end_line: int
    content: str  # raw chunk text, without the file-context header
    embedding: list[float]
