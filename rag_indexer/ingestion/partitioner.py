from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from rag_indexer.ingestion.chunker import TextChunk, chunk_text
from rag_indexer.ingestion.errors import ChunkingError, FileReadError
from rag_indexer.ingestion.file_system import FileSystem

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 250


@dataclass(frozen=True)
class Chunk:
    """A chunk tagged with where it came from, ready to be batched."""

    file_index: int
    relative_path: str
    chunk_index: int
    total_chunks_in_file: int
    text: str
    start_line: int
    end_line: int


@dataclass
class FileChunks:
    file_index: int  # position in the caller's path list
    relative_path: str
    chunks: list[TextChunk]


@dataclass(frozen=True)
class WorkItem:
    batch_id: int
    chunks: tuple[Chunk, ...]


async def load_file_chunks(
    relative_paths: Sequence[str],
    file_system: FileSystem,
    max_chunk_size: int,
    on_log_error: Callable[[Exception], None] | None = None,
) -> list[FileChunks]:
    """Read and chunk every file once, in input order.

    Unreadable files are skipped and reported. A chunking failure raises
    ChunkingError and aborts the whole call.
    TODO: confirm with the indexing owners whether chunking failures should be
    downgraded to per-file skips like read failures.
    """
    files: list[FileChunks] = []
    for file_index, relative_path in enumerate(relative_paths):
        if not relative_path:
            continue

        try:
            result = await file_system.read_file(relative_path)
        except OSError as exc:
            _report_skip(relative_path, str(exc), on_log_error)
            continue
        if not result.success:
            _report_skip(relative_path, result.message or "read failed", on_log_error)
            continue

        try:
            text_chunks = chunk_text(result.content or "", max_chunk_size)
        except Exception as exc:
            error = ChunkingError(f"Error chunking file {relative_path}: {exc}")
            if on_log_error is not None:
                on_log_error(error)
            raise error from exc

        non_empty = [c for c in text_chunks if c.text.strip()]
        if not non_empty:
            logger.debug("No content to embed in %s", relative_path)
            continue
        files.append(FileChunks(file_index=file_index, relative_path=relative_path, chunks=non_empty))
    return files


def _report_skip(
    relative_path: str,
    reason: str,
    on_log_error: Callable[[Exception], None] | None,
) -> None:
    logger.info("Skipping unreadable file %s: %s", relative_path, reason)
    if on_log_error is not None:
        on_log_error(FileReadError(relative_path, reason))


def flatten_chunks(files: Sequence[FileChunks]) -> list[Chunk]:
    """One stream in (file order, chunk order), each chunk tagged with its origin."""
    return [
        Chunk(
            file_index=f.file_index,
            relative_path=f.relative_path,
            chunk_index=chunk_index,
            total_chunks_in_file=len(f.chunks),
            text=c.text,
            start_line=c.start_line,
            end_line=c.end_line,
        )
        for f in files
        for chunk_index, c in enumerate(f.chunks)
    ]


def partition_work_items(chunks: Sequence[Chunk], batch_size: int = DEFAULT_BATCH_SIZE) -> list[WorkItem]:
    """Slice the flattened stream into batches of at most batch_size chunks.

    Batches are cut by global position, so one batch may span several files.
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [
        WorkItem(batch_id=i // batch_size, chunks=tuple(chunks[i : i + batch_size]))
        for i in range(0, len(chunks), batch_size)
    ]
