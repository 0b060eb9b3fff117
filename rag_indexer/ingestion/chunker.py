from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

DEFAULT_MAX_CHUNK_SIZE = 8000

_FRONTEND_EXTENSIONS = {".tsx", ".jsx", ".vue", ".svelte", ".astro", ".html", ".htm"}
_STYLING_EXTENSIONS = {".css", ".scss", ".sass", ".less", ".styl"}
_DOCUMENTATION_EXTENSIONS = {".md", ".mdx"}

# lines end at "\n" only; str.splitlines would also break on form feeds and U+2028
_LINE_BREAK = re.compile(r"(?<=\n)")


@dataclass
class TextChunk:
    text: str
    start_line: int  # 1-indexed, inclusive
    end_line: int


def chunk_text(content: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[TextChunk]:
    """Split file content into line-bounded chunks of at most max_chunk_size characters.

    Lines keep their terminators, so joining every chunk's text reproduces the
    content exactly. A line longer than max_chunk_size is split at the character
    level; its pieces all report that line's number. Whitespace-only chunks are
    returned as-is; filtering them is the caller's job.
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")

    chunks: list[TextChunk] = []
    buffer: list[str] = []
    buffer_len = 0
    buffer_start = 1
    line_no = 0

    lines = [line for line in _LINE_BREAK.split(content) if line]
    for line_no, line in enumerate(lines, start=1):
        if buffer and buffer_len + len(line) > max_chunk_size:
            chunks.append(TextChunk("".join(buffer), buffer_start, line_no - 1))
            buffer, buffer_len = [], 0

        if len(line) > max_chunk_size:
            for i in range(0, len(line), max_chunk_size):
                chunks.append(TextChunk(line[i : i + max_chunk_size], line_no, line_no))
            continue

        if not buffer:
            buffer_start = line_no
        buffer.append(line)
        buffer_len += len(line)

    if buffer:
        chunks.append(TextChunk("".join(buffer), buffer_start, line_no))
    return chunks


def describe_file(relative_path: str) -> str:
    """One-line description of a file, prefixed with its broad category."""
    path = PurePosixPath(relative_path)
    extension = path.suffix.lower()
    description = f"A {extension} file with the name {path.name} from the file {relative_path}."
    if extension in _FRONTEND_EXTENSIONS:
        return f"FRONTEND FILE \n{description}"
    if extension in _STYLING_EXTENSIONS:
        return f"STYLING FILE \n{description}"
    if extension in _DOCUMENTATION_EXTENSIONS:
        return f"DOCUMENTATION FILE \n{description}"
    return description


def render_chunk_for_embedding(relative_path: str, text: str) -> str:
    """Text sent to the embedding API: file description plus the fenced chunk."""
    return f"{describe_file(relative_path)}\n\nCode:\n---\n{text}\n---"
