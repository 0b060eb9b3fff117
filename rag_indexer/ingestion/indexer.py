from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from rag_indexer.core.providers.base import BaseEmbeddingProvider
from rag_indexer.ingestion.errors import FileReadError
from rag_indexer.ingestion.file_system import FileSystem, LocalFileSystem
from rag_indexer.ingestion.manifests import build_manifest, build_manifests, diff_manifests
from rag_indexer.ingestion.pipeline import DEFAULT_CONCURRENCY, generate_file_embeddings_parallel
from rag_indexer.ingestion.scanner import DEFAULT_MAX_FILE_SIZE, scan_files
from rag_indexer.ingestion.store import BaseEmbeddingStore
from rag_indexer.schemas.embedding import EmbeddingConfig, FileEmbedding

logger = logging.getLogger(__name__)


@dataclass
class IndexProgress:
    progress: int
    total: int
    relative_path: str
    action: Literal["added", "updated", "removed"]


async def index_codebase(
    root: Path | str,
    store: BaseEmbeddingStore,
    config: EmbeddingConfig,
    *,
    file_system: FileSystem | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    respect_gitignore: bool = True,
    on_log_error: Callable[[Exception], None] | None = None,
    provider: BaseEmbeddingProvider | None = None,
) -> AsyncIterator[IndexProgress]:
    """Bring the store up to date with the files under root.

    Only new and changed files are embedded. A file's manifest is stored
    together with its embeddings, after its last chunk arrives, so a failed
    run leaves unfinished files to be picked up next time.
    """
    if file_system is None:
        file_system = LocalFileSystem(root)

    paths = await asyncio.to_thread(
        scan_files, root, max_file_size=max_file_size, respect_gitignore=respect_gitignore
    )
    local = await build_manifests(paths, file_system)
    diff = diff_manifests(local, await store.get_manifests())
    total = diff.total
    logger.info(
        "Index diff: add=%d update=%d remove=%d",
        len(diff.to_add),
        len(diff.to_update),
        len(diff.to_remove),
    )
    if total == 0:
        return

    pending = diff.to_add + diff.to_update
    manifests = {m.path: m for m in pending}
    actions: dict[str, Literal["added", "updated", "removed"]] = {m.path: "added" for m in diff.to_add}
    actions.update({m.path: "updated" for m in diff.to_update})

    unreadable: set[str] = set()

    def _on_log_error(error: Exception) -> None:
        if isinstance(error, FileReadError):
            unreadable.add(error.relative_path)
        if on_log_error is not None:
            on_log_error(error)

    progress = 0
    done: set[str] = set()
    current: list[FileEmbedding] = []
    stream = generate_file_embeddings_parallel(
        config,
        [m.path for m in pending],
        file_system,
        concurrency=concurrency,
        on_log_error=_on_log_error,
        provider=provider,
    )
    async with aclosing(stream) as embeddings:
        async for embedding in embeddings:
            current.append(embedding)
            if embedding.chunk_index < embedding.total_chunks - 1:
                continue
            path = embedding.relative_path
            await store.replace_file(path, current, manifests[path])
            current = []
            done.add(path)
            progress += 1
            yield IndexProgress(progress, total, path, actions[path])

    # Readable files with nothing to embed are recorded so they are not retried.
    for manifest in pending:
        if manifest.path in done or manifest.path in unreadable:
            continue
        await store.replace_file(manifest.path, [], manifest)
        progress += 1
        yield IndexProgress(progress, total, manifest.path, actions[manifest.path])

    for manifest in diff.to_remove:
        await store.remove_file(manifest.path)
        progress += 1
        yield IndexProgress(progress, total, manifest.path, "removed")

    logger.info("Indexing finished: %d of %d files processed", progress, total)


async def reindex_file(
    root: Path | str,
    relative_path: str,
    store: BaseEmbeddingStore,
    config: EmbeddingConfig,
    *,
    file_system: FileSystem | None = None,
    force: bool = False,
    on_log_error: Callable[[Exception], None] | None = None,
    provider: BaseEmbeddingProvider | None = None,
) -> AsyncIterator[IndexProgress]:
    """Re-embed a single file and replace its stored records.

    Yields one progress update when the file was stored. Nothing is yielded
    when the file cannot be read, or when its content and RAG version match
    the stored manifest and ``force`` is not set.
    """
    if file_system is None:
        file_system = LocalFileSystem(root)

    manifest = await build_manifest(relative_path, file_system)
    if manifest is None:
        logger.info("Skipping reindex of unreadable file %s", relative_path)
        if on_log_error is not None:
            on_log_error(FileReadError(relative_path, "file is missing or unreadable"))
        return

    stored = {m.path: m for m in await store.get_manifests()}
    previous = stored.get(relative_path)
    if (
        not force
        and previous is not None
        and previous.content_hash == manifest.content_hash
        and previous.rag_version == manifest.rag_version
    ):
        logger.debug("Skipping reindex of unchanged file %s", relative_path)
        return

    unreadable = False

    def _on_log_error(error: Exception) -> None:
        nonlocal unreadable
        if isinstance(error, FileReadError):
            unreadable = True
        if on_log_error is not None:
            on_log_error(error)

    stream = generate_file_embeddings_parallel(
        config,
        [relative_path],
        file_system,
        concurrency=1,
        on_log_error=_on_log_error,
        provider=provider,
    )
    async with aclosing(stream) as embeddings:
        collected = [embedding async for embedding in embeddings]
    if unreadable:
        # the file disappeared between hashing and chunking
        return

    await store.replace_file(relative_path, collected, manifest)
    logger.info("Reindexed %s (%d chunks)", relative_path, len(collected))
    yield IndexProgress(1, 1, relative_path, "updated" if previous is not None else "added")
