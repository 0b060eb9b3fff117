from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from rag_indexer.ingestion.file_system import FileSystem

logger = logging.getLogger(__name__)

# Bump when chunking or embedding input changes so every file is re-embedded.
RAG_VERSION = 1


@dataclass
class FileManifest:
    path: str
    content_hash: str
    rag_version: int
    indexed_at: float  # unix seconds


@dataclass
class ManifestDiff:
    to_add: list[FileManifest] = field(default_factory=list)
    to_update: list[FileManifest] = field(default_factory=list)
    to_remove: list[FileManifest] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.to_add) + len(self.to_update) + len(self.to_remove)


def compute_hash(content: str) -> str:
    """Return SHA-256 hex digest of the file's text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


async def build_manifest(relative_path: str, file_system: FileSystem) -> FileManifest | None:
    """Return a fresh manifest for the file, or None if it cannot be read."""
    result = await file_system.read_file(relative_path)
    if not result.success:
        return None
    return FileManifest(
        path=relative_path,
        content_hash=compute_hash(result.content or ""),
        rag_version=RAG_VERSION,
        indexed_at=time.time(),
    )


async def build_manifests(relative_paths: Sequence[str], file_system: FileSystem) -> list[FileManifest]:
    manifests: list[FileManifest] = []
    for relative_path in relative_paths:
        manifest = await build_manifest(relative_path, file_system)
        if manifest is None:
            logger.warning("Failed to get file manifest for %s", relative_path)
            continue
        manifests.append(manifest)
    return manifests


def diff_manifests(local: Sequence[FileManifest], stored: Sequence[FileManifest]) -> ManifestDiff:
    """Compare on-disk manifests with stored ones.

    A file is updated when its content hash or the RAG version differs.
    """
    stored_by_path = {m.path: m for m in stored}
    local_paths = {m.path for m in local}
    diff = ManifestDiff()

    for manifest in local:
        previous = stored_by_path.get(manifest.path)
        if previous is None:
            diff.to_add.append(manifest)
        elif previous.content_hash != manifest.content_hash or previous.rag_version != manifest.rag_version:
            diff.to_update.append(manifest)

    diff.to_remove = [m for m in stored if m.path not in local_paths]
    return diff
