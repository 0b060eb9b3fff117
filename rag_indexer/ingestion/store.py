from __future__ import annotations

from abc import ABC, abstractmethod

from rag_indexer.ingestion.manifests import FileManifest
from rag_indexer.schemas.embedding import FileEmbedding


class BaseEmbeddingStore(ABC):
    """Destination for a file's embeddings and the manifest they were built from."""

    @abstractmethod
    async def get_manifests(self) -> list[FileManifest]:
        ...

    @abstractmethod
    async def replace_file(
        self,
        relative_path: str,
        embeddings: list[FileEmbedding],
        manifest: FileManifest,
    ) -> None:
        """Swap out every stored record for the file. Called once per file."""
        ...

    @abstractmethod
    async def remove_file(self, relative_path: str) -> None:
        ...


class InMemoryEmbeddingStore(BaseEmbeddingStore):
    def __init__(self) -> None:
        self.embeddings: dict[str, list[FileEmbedding]] = {}
        self.manifests: dict[str, FileManifest] = {}

    async def get_manifests(self) -> list[FileManifest]:
        return list(self.manifests.values())

    async def replace_file(
        self,
        relative_path: str,
        embeddings: list[FileEmbedding],
        manifest: FileManifest,
    ) -> None:
        self.embeddings[relative_path] = list(embeddings)
        self.manifests[relative_path] = manifest

    async def remove_file(self, relative_path: str) -> None:
        self.embeddings.pop(relative_path, None)
        self.manifests.pop(relative_path, None)
