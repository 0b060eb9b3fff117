from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field

from rag_indexer.config import EXPECTED_EMBEDDING_DIM
from rag_indexer.core.providers.base import BaseEmbeddingProvider
from rag_indexer.core.providers.openai_provider import OpenAIEmbeddingProvider
from rag_indexer.ingestion.chunker import render_chunk_for_embedding
from rag_indexer.ingestion.errors import EmbeddingRequestError, EmbeddingValidationError
from rag_indexer.ingestion.file_system import FileSystem
from rag_indexer.ingestion.partitioner import (
    WorkItem,
    flatten_chunks,
    load_file_chunks,
    partition_work_items,
)
from rag_indexer.schemas.embedding import EmbeddingConfig, FileEmbedding

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10


@dataclass
class EmbeddingResult:
    """Embeddings collected so far for one file, in completion order."""

    file_index: int
    relative_path: str
    total_chunks: int
    embeddings: list[FileEmbedding] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return len(self.embeddings) >= self.total_chunks


class _EmbeddingRun:
    """Shared state of one pipeline invocation.

    Workers drain the queue and fill the result map; the emitter reads the map
    in file order and evicts each entry once it has been handed out. Every
    structural change happens under ``_changed`` so the emitter wakes on it
    instead of polling.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        provider: BaseEmbeddingProvider,
        work_items: Sequence[WorkItem],
        file_indices: Sequence[int],
        on_log_error: Callable[[Exception], None] | None,
    ) -> None:
        self._config = config
        self._provider = provider
        self._queue: deque[WorkItem] = deque(work_items)
        self._total_items = len(work_items)
        self._file_indices = list(file_indices)
        self._results: dict[int, EmbeddingResult] = {}
        self._completed_count = 0
        self._error: Exception | None = None
        self._changed = asyncio.Condition()
        self._on_log_error = on_log_error

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    async def worker(self, worker_id: int) -> None:
        while self._queue:
            item = self._queue.popleft()
            start = time.monotonic()
            try:
                vectors = await self._embed(item)
                self._validate(item, vectors)
            except Exception as exc:
                async with self._changed:
                    # counted even on failure so the emitter can never wait forever
                    self._completed_count += 1
                    if self._error is None:
                        self._error = exc
                    self._changed.notify_all()
                logger.warning("Worker %d error for batch %d: %s", worker_id, item.batch_id, exc)
                if self._on_log_error is not None:
                    self._on_log_error(exc)
                raise

            async with self._changed:
                self._store(item, vectors)
                self._completed_count += 1
                self._changed.notify_all()
            logger.debug(
                "Embedded batch %d (%d chunks) in %dms",
                item.batch_id,
                len(item.chunks),
                int((time.monotonic() - start) * 1000),
            )

    async def _embed(self, item: WorkItem) -> list[list[float]]:
        if self._config.include_file_context:
            texts = [render_chunk_for_embedding(c.relative_path, c.text) for c in item.chunks]
        else:
            texts = [c.text for c in item.chunks]

        timeout = self._config.request_timeout
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                return await self._provider.embed_batch(texts, self._config.model)
        except TimeoutError as exc:
            # only our own deadline gets the timeout message, not one raised by the provider
            if deadline.expired():
                raise EmbeddingRequestError(
                    f"Embedding request for batch {item.batch_id} timed out after {timeout}s"
                ) from exc
            raise EmbeddingRequestError(
                f"Embedding request for batch {item.batch_id} failed: {exc}"
            ) from exc
        except Exception as exc:
            raise EmbeddingRequestError(
                f"Embedding request for batch {item.batch_id} failed: {exc}"
            ) from exc

    @staticmethod
    def _validate(item: WorkItem, vectors: list[list[float]]) -> None:
        if len(vectors) != len(item.chunks):
            raise EmbeddingValidationError(
                f"Batch {item.batch_id} returned {len(vectors)} embeddings for {len(item.chunks)} chunks"
            )
        for chunk, vector in zip(item.chunks, vectors):
            if vector is None or len(vector) != EXPECTED_EMBEDDING_DIM:
                got = "none" if vector is None else len(vector)
                raise EmbeddingValidationError(
                    f"Invalid embedding for {chunk.relative_path} chunk {chunk.chunk_index}: "
                    f"expected {EXPECTED_EMBEDDING_DIM} dimensions, got {got}"
                )

    def _store(self, item: WorkItem, vectors: list[list[float]]) -> None:
        for chunk, vector in zip(item.chunks, vectors):
            result = self._results.get(chunk.file_index)
            if result is None:
                result = EmbeddingResult(
                    file_index=chunk.file_index,
                    relative_path=chunk.relative_path,
                    total_chunks=chunk.total_chunks_in_file,
                )
                self._results[chunk.file_index] = result
            result.embeddings.append(
                FileEmbedding(
                    relative_path=chunk.relative_path,
                    chunk_index=chunk.chunk_index,
                    total_chunks=chunk.total_chunks_in_file,
                    start_line=chunk.start_line,
                    end_line=chunk.end_line,
                    content=chunk.text,
                    embedding=list(vector),
                )
            )

    # ------------------------------------------------------------------
    # Ordered emission
    # ------------------------------------------------------------------

    def _is_ready(self, file_index: int) -> bool:
        result = self._results.get(file_index)
        return result is not None and result.is_complete

    def _can_emit(self, file_index: int) -> bool:
        if self._error is not None or self._is_ready(file_index):
            return True
        return self._completed_count >= self._total_items

    async def _take_file(self, file_index: int) -> EmbeddingResult | None:
        async with self._changed:
            await self._changed.wait_for(lambda: self._can_emit(file_index))
            # a finished file is still handed out when a later batch has failed
            if self._is_ready(file_index):
                return self._results.pop(file_index)
            self.raise_if_failed()
            return self._results.pop(file_index, None)

    async def emit(self) -> AsyncIterator[FileEmbedding]:
        """Yield every file's embeddings in input order, chunks ascending."""
        for file_index in self._file_indices:
            result = await self._take_file(file_index)
            if result is None:
                # every batch finished without producing this file
                logger.debug("No embeddings for file index %d", file_index)
                continue
            result.embeddings.sort(key=lambda e: e.chunk_index)
            for embedding in result.embeddings:
                yield embedding

    def raise_if_failed(self) -> None:
        if self._error is not None:
            raise self._error


async def generate_file_embeddings_parallel(
    config: EmbeddingConfig,
    relative_paths: Sequence[str],
    file_system: FileSystem,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_log_error: Callable[[Exception], None] | None = None,
    provider: BaseEmbeddingProvider | None = None,
) -> AsyncIterator[FileEmbedding]:
    """Embed every chunk of the given files with a pool of concurrent workers.

    Batches finish in any order, but embeddings are yielded strictly by input
    file order and, within a file, by chunk index. The first worker failure is
    raised as soon as the consumer next waits for a file; embeddings already
    yielded stay valid. Closing the generator early cancels outstanding calls.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")
    if not relative_paths:
        return

    files = await load_file_chunks(relative_paths, file_system, config.max_chunk_size, on_log_error)
    if not files:
        return
    chunks = flatten_chunks(files)
    work_items = partition_work_items(chunks, config.batch_size)

    owns_provider = provider is None
    if provider is None:
        provider = OpenAIEmbeddingProvider(config)

    run = _EmbeddingRun(
        config=config,
        provider=provider,
        work_items=work_items,
        file_indices=[f.file_index for f in files],
        on_log_error=on_log_error,
    )
    worker_count = min(concurrency, len(work_items))
    logger.info(
        "Embedding pipeline started: files=%d chunks=%d batches=%d workers=%d",
        len(files),
        len(chunks),
        len(work_items),
        worker_count,
    )

    workers = [
        asyncio.create_task(run.worker(worker_id), name=f"embedding-worker-{worker_id}")
        for worker_id in range(1, worker_count + 1)
    ]
    emitted = 0
    try:
        async with aclosing(run.emit()) as stream:
            async for embedding in stream:
                emitted += 1
                yield embedding
        run.raise_if_failed()
        await asyncio.gather(*workers)
        logger.info("Embedding pipeline finished: embeddings=%d", emitted)
    finally:
        for task in workers:
            if not task.done():
                task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if owns_provider:
            await provider.aclose()
