"""Test doubles for the file system and embedding collaborators."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from rag_indexer.config import EXPECTED_EMBEDDING_DIM
from rag_indexer.core.providers.base import BaseEmbeddingProvider
from rag_indexer.ingestion.file_system import FileSystem, ReadFileResult


class FakeFileSystem(FileSystem):
    """Dict-backed file system; paths missing from the dict are unreadable."""

    def __init__(self, files: dict[str, str]) -> None:
        self.files = files
        self.reads: list[str] = []

    async def read_file(self, relative_path: str) -> ReadFileResult:
        self.reads.append(relative_path)
        if relative_path not in self.files:
            return ReadFileResult(success=False, message="ENOENT")
        return ReadFileResult(success=True, content=self.files[relative_path])


class FakeEmbeddingProvider(BaseEmbeddingProvider):
    """Scriptable embedding client that records calls and concurrency."""

    def __init__(
        self,
        delay: Callable[[list[str]], float] = lambda texts: 0.0,
        fail: Callable[[list[str]], bool] = lambda texts: False,
        respond: Callable[[list[str]], list[list[float]]] | None = None,
    ) -> None:
        self._delay = delay
        self._fail = fail
        self._respond = respond or (lambda texts: [[1.0] * EXPECTED_EMBEDDING_DIM for _ in texts])
        self.calls: list[list[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def embed_batch(self, texts: list[str], model: str) -> list[list[float]]:
        self.calls.append(list(texts))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay(texts))
            if self._fail(texts):
                raise RuntimeError("embedding service unavailable")
            return self._respond(texts)
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True
