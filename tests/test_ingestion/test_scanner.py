from __future__ import annotations

from pathlib import Path

from rag_indexer.ingestion.scanner import scan_files


def _write(root: Path, relative_path: str, content: str = "x") -> None:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_finds_allowed_files_sorted(tmp_path: Path) -> None:
    _write(tmp_path, "src/b.ts")
    _write(tmp_path, "src/a.tsx")
    _write(tmp_path, "package.json")
    _write(tmp_path, "image.png")
    _write(tmp_path, "README.md")

    assert scan_files(tmp_path) == ["README.md", "package.json", "src/a.tsx", "src/b.ts"]


def test_default_ignores(tmp_path: Path) -> None:
    _write(tmp_path, "node_modules/lib/index.js")
    _write(tmp_path, "dist/bundle.js")
    _write(tmp_path, ".git/config.json")
    _write(tmp_path, ".env.local")
    _write(tmp_path, "src/main.ts")

    assert scan_files(tmp_path) == ["src/main.ts"]


def test_gitignore_respected(tmp_path: Path) -> None:
    _write(tmp_path, ".gitignore", "# generated\ngenerated/\n*.gen.ts\nsrc/secret.ts\n!keep.ts\n")
    _write(tmp_path, "generated/types.ts")
    _write(tmp_path, "src/api.gen.ts")
    _write(tmp_path, "src/secret.ts")
    _write(tmp_path, "src/app.ts")

    assert scan_files(tmp_path) == ["src/app.ts"]
    assert "src/secret.ts" in scan_files(tmp_path, respect_gitignore=False)


def test_dir_only_pattern_does_not_match_files(tmp_path: Path) -> None:
    _write(tmp_path, ".gitignore", "build/\n")
    _write(tmp_path, "scripts/build.sh")

    assert scan_files(tmp_path) == ["scripts/build.sh"]


def test_oversized_files_skipped(tmp_path: Path) -> None:
    _write(tmp_path, "big.ts", "x" * 200)
    _write(tmp_path, "small.ts", "x" * 10)

    assert scan_files(tmp_path, max_file_size=100) == ["small.ts"]


def test_extra_ignore_patterns(tmp_path: Path) -> None:
    _write(tmp_path, "a.ts")
    _write(tmp_path, "fixtures/b.ts")

    assert scan_files(tmp_path, extra_ignore=["fixtures/"]) == ["a.ts"]


def test_gitignore_negation_reincludes_file(tmp_path: Path) -> None:
    _write(tmp_path, ".gitignore", "src/*.ts\ngen*.ts\n!gen_keep.ts\n")
    _write(tmp_path, "src/a.ts")
    _write(tmp_path, "gen_a.ts")
    _write(tmp_path, "gen_keep.ts")
    _write(tmp_path, "src/deep/keep.ts")

    assert scan_files(tmp_path) == ["gen_keep.ts", "src/deep/keep.ts"]


def test_single_star_does_not_cross_directories(tmp_path: Path) -> None:
    _write(tmp_path, ".gitignore", "src/*.ts\n")
    _write(tmp_path, "src/top.ts")
    _write(tmp_path, "src/nested/inner.ts")

    assert scan_files(tmp_path) == ["src/nested/inner.ts"]


def test_double_star_prefix_matches_at_root(tmp_path: Path) -> None:
    _write(tmp_path, ".gitignore", "**/fixtures\n")
    _write(tmp_path, "fixtures/a.ts")
    _write(tmp_path, "pkg/fixtures/b.ts")
    _write(tmp_path, "pkg/main.ts")

    assert scan_files(tmp_path) == ["pkg/main.ts"]
