"""Keep the store in sync with the project while it is being edited."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path, PurePosixPath
from typing import Literal

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from rag_indexer.core.providers.base import BaseEmbeddingProvider
from rag_indexer.ingestion.file_system import FileSystem, LocalFileSystem
from rag_indexer.ingestion.indexer import IndexProgress, reindex_file
from rag_indexer.ingestion.scanner import DEFAULT_MAX_FILE_SIZE, is_indexable, load_ignore_spec
from rag_indexer.ingestion.store import BaseEmbeddingStore
from rag_indexer.schemas.embedding import EmbeddingConfig

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0

ChangeKind = Literal["changed", "deleted"]


class _Handler(FileSystemEventHandler):
    """Runs on the observer thread; forwards file events to the watcher."""

    def __init__(self, watcher: CodebaseWatcher) -> None:
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify("changed", os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify("changed", os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify("deleted", os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher.notify("deleted", os.fsdecode(event.src_path))
            self._watcher.notify("changed", os.fsdecode(event.dest_path))


class CodebaseWatcher:
    """Debounced file watcher that re-embeds changed files and drops deleted ones.

    Events for the same path within ``debounce_seconds`` collapse into one; the
    last kind wins. Updates are applied one at a time, in the order their
    debounce windows close. A failed update is logged and reported through
    ``on_log_error``; the watcher keeps running.
    """

    def __init__(
        self,
        root: Path | str,
        store: BaseEmbeddingStore,
        config: EmbeddingConfig,
        *,
        file_system: FileSystem | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        respect_gitignore: bool = True,
        extra_ignore: Iterable[str] = (),
        on_change: Callable[[IndexProgress], None] | None = None,
        on_log_error: Callable[[Exception], None] | None = None,
        provider: BaseEmbeddingProvider | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self._store = store
        self._config = config
        self._file_system = file_system or LocalFileSystem(self.root)
        self._debounce_seconds = debounce_seconds
        self._max_file_size = max_file_size
        self._ignore = load_ignore_spec(
            self.root, respect_gitignore=respect_gitignore, extra_ignore=extra_ignore
        )
        self._on_change = on_change
        self._on_log_error = on_log_error
        self._provider = provider

        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Observer | None = None
        self._pending: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    async def start(self) -> None:
        if self._observer is not None:
            return
        self._loop = asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_Handler(self), str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.root)

    async def stop(self) -> None:
        """Stop watching; pending debounced changes are dropped, running ones finish."""
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        if self._observer is not None:
            observer, self._observer = self._observer, None
            observer.stop()
            await asyncio.to_thread(observer.join)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Stopped watching %s", self.root)

    async def __aenter__(self) -> CodebaseWatcher:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def notify(self, kind: ChangeKind, path: str) -> None:
        """Record a change to an absolute path. Safe to call from any thread."""
        relative_path = self._relative_path(path)
        if relative_path is None:
            return
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule, kind, relative_path)

    def _relative_path(self, path: str) -> str | None:
        try:
            relative_path = Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return None
        if not is_indexable(PurePosixPath(relative_path).name):
            return None
        if self._ignore.match_file(relative_path):
            return None
        return relative_path

    def _schedule(self, kind: ChangeKind, relative_path: str) -> None:
        previous = self._pending.pop(relative_path, None)
        if previous is not None:
            previous.cancel()
        assert self._loop is not None
        self._pending[relative_path] = self._loop.call_later(
            self._debounce_seconds, self._fire, kind, relative_path
        )

    def _fire(self, kind: ChangeKind, relative_path: str) -> None:
        self._pending.pop(relative_path, None)
        task = asyncio.create_task(self._apply(kind, relative_path), name=f"reindex:{relative_path}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Applying changes
    # ------------------------------------------------------------------

    async def _apply(self, kind: ChangeKind, relative_path: str) -> None:
        async with self._lock:
            try:
                if kind == "deleted" or not await self._is_present(relative_path):
                    await self._store.remove_file(relative_path)
                    logger.info("Removed %s from index", relative_path)
                    self._report(IndexProgress(1, 1, relative_path, "removed"))
                    return
                async for update in reindex_file(
                    self.root,
                    relative_path,
                    self._store,
                    self._config,
                    file_system=self._file_system,
                    on_log_error=self._on_log_error,
                    provider=self._provider,
                ):
                    self._report(update)
            except Exception as exc:
                logger.exception("Failed to apply %s change for %s", kind, relative_path)
                if self._on_log_error is not None:
                    self._on_log_error(exc)

    async def _is_present(self, relative_path: str) -> bool:
        path = self.root / relative_path
        try:
            stat = await asyncio.to_thread(path.stat)
        except OSError:
            return False
        if stat.st_size > self._max_file_size:
            logger.debug("Ignoring change to %s: %d bytes exceeds limit", relative_path, stat.st_size)
            return False
        return True

    def _report(self, update: IndexProgress) -> None:
        if self._on_change is not None:
            self._on_change(update)
