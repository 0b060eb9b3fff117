from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass
class ReadFileResult:
    success: bool
    content: str | None = None
    message: str | None = None


class FileSystem(ABC):
    """Read access to the project being indexed, addressed by relative path."""

    @abstractmethod
    async def read_file(self, relative_path: str) -> ReadFileResult:
        """Return the file's text. Failures are reported, not raised."""
        ...


class LocalFileSystem(FileSystem):
    def __init__(self, root: Path | str, encoding: str = "utf-8") -> None:
        self.root = Path(root).resolve()
        self._encoding = encoding

    def _read_sync(self, relative_path: str) -> str:
        path = (self.root / relative_path).resolve()
        if not path.is_relative_to(self.root):
            raise PermissionError(f"{relative_path} is outside {self.root}")
        return path.read_text(encoding=self._encoding)

    async def read_file(self, relative_path: str) -> ReadFileResult:
        try:
            content = await asyncio.to_thread(self._read_sync, relative_path)
        except (OSError, UnicodeDecodeError) as exc:
            return ReadFileResult(success=False, message=str(exc))
        return ReadFileResult(success=True, content=content)
