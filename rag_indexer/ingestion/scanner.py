"""Discovery of the project files worth embedding."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset(
    {
        ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts",
        ".vue", ".svelte", ".astro", ".html", ".htm",
        ".css", ".scss", ".sass", ".less", ".styl",
        ".json", ".md", ".mdx", ".yaml", ".yml", ".toml",
        ".py", ".go", ".rs", ".java", ".kt", ".rb", ".php", ".cs",
        ".c", ".h", ".cpp", ".hpp", ".swift", ".sql", ".graphql", ".sh",
    }
)
ALLOWED_FILENAMES = frozenset(
    {
        "package.json", "tsconfig.json", "Dockerfile", "Makefile",
        ".eslintrc", ".prettierrc", ".babelrc", ".stylelintrc",
        ".postcssrc", ".swcrc", ".browserslistrc",
    }
)
DEFAULT_IGNORE_PATTERNS = (
    "node_modules/",
    ".git/",
    ".stagewise/",
    "dist/",
    "build/",
    "coverage/",
    "*.log",
    ".DS_Store",
    ".env*",
)
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


def load_ignore_spec(
    root: Path | str,
    *,
    respect_gitignore: bool = True,
    extra_ignore: Iterable[str] = (),
) -> pathspec.GitIgnoreSpec:
    """Default ignores plus extra patterns and the root .gitignore, in gitignore syntax."""
    patterns = list(DEFAULT_IGNORE_PATTERNS) + list(extra_ignore)
    gitignore = Path(root) / ".gitignore"
    if respect_gitignore and gitignore.is_file():
        patterns.extend(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())
    return pathspec.GitIgnoreSpec.from_lines(patterns)


def is_indexable(name: str) -> bool:
    if name in ALLOWED_FILENAMES:
        return True
    return os.path.splitext(name)[1].lower() in ALLOWED_EXTENSIONS


def scan_files(
    root: Path | str,
    *,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    respect_gitignore: bool = True,
    extra_ignore: Iterable[str] = (),
) -> list[str]:
    """Return sorted POSIX paths, relative to root, of every indexable file."""
    root_path = Path(root).resolve()
    spec = load_ignore_spec(root_path, respect_gitignore=respect_gitignore, extra_ignore=extra_ignore)

    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        rel_dir = Path(dirpath).relative_to(root_path).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"

        dirnames[:] = sorted(d for d in dirnames if not spec.match_file(f"{prefix}{d}/"))
        for filename in sorted(filenames):
            relative_path = prefix + filename
            if spec.match_file(relative_path) or not is_indexable(filename):
                continue
            try:
                size = (Path(dirpath) / filename).stat().st_size
            except OSError as exc:
                logger.warning("Failed to stat %s: %s", relative_path, exc)
                continue
            if size > max_file_size:
                logger.debug("Skipping %s: %d bytes exceeds limit", relative_path, size)
                continue
            found.append(relative_path)

    found.sort()
    return found
