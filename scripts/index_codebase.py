"""index_codebase.py — Embed every indexable file under a project directory.

Usage:
    python scripts/index_codebase.py [ROOT] [--watch]

With --watch, keeps running after the initial pass and re-embeds files as
they change, until interrupted.

Requires:
  - EMBEDDING_API_KEY env var (or .env entry)
  - Optional: EMBEDDING_MODEL, EMBEDDING_BASE_URL, EMBEDDING_CONCURRENCY,
    WATCH_DEBOUNCE_SECONDS
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from pathlib import Path

from rag_indexer.config import settings
from rag_indexer.ingestion.errors import EmbeddingPipelineError
from rag_indexer.ingestion.indexer import IndexProgress, index_codebase
from rag_indexer.ingestion.store import InMemoryEmbeddingStore
from rag_indexer.ingestion.watcher import CodebaseWatcher
from rag_indexer.schemas.embedding import EmbeddingConfig


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _print_error(error: Exception) -> None:
    print(f"  ! {error}")


def _print_change(update: IndexProgress) -> None:
    print(f"  ~ {update.action:<7} {update.relative_path}")


async def _watch(root: Path, store: InMemoryEmbeddingStore, config: EmbeddingConfig) -> None:
    watcher = CodebaseWatcher(
        root,
        store,
        config,
        debounce_seconds=settings.watch_debounce_seconds,
        max_file_size=settings.max_file_size,
        respect_gitignore=settings.respect_gitignore,
        on_change=_print_change,
        on_log_error=_print_error,
    )
    print("\nWatching for changes (Ctrl+C to stop) …")
    async with watcher:
        await asyncio.Event().wait()


async def main() -> None:
    _configure_logging()
    if not settings.embedding_api_key:
        print("Error: EMBEDDING_API_KEY environment variable is not set.")
        sys.exit(1)

    args = sys.argv[1:]
    watch = "--watch" in args
    positional = [a for a in args if a != "--watch"]
    root = Path(positional[0]) if positional else Path.cwd()
    if not root.is_dir():
        print(f"Not a directory: {root}")
        sys.exit(1)

    config = EmbeddingConfig.from_settings(settings)
    store = InMemoryEmbeddingStore()
    print(f"Indexing {root.resolve()} with {config.model} …")

    started = time.monotonic()
    try:
        async for update in index_codebase(
            root,
            store,
            config,
            concurrency=settings.embedding_concurrency,
            max_file_size=settings.max_file_size,
            respect_gitignore=settings.respect_gitignore,
            on_log_error=_print_error,
        ):
            print(f"  [{update.progress}/{update.total}] {update.action:<7} {update.relative_path}")
    except EmbeddingPipelineError as exc:
        print(f"\n✗ Indexing failed after {len(store.manifests)} file(s): {exc}")
        sys.exit(1)

    chunks = sum(len(e) for e in store.embeddings.values())
    print("\n" + "=" * 60)
    print(f"Indexed {len(store.manifests)} file(s), {chunks} chunk(s) in {time.monotonic() - started:.1f}s")
    print("=" * 60)

    if watch:
        await _watch(root, store, config)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
