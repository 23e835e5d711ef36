from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from archconform.scan.files import _build_gitignore_matcher, find_source_files

if TYPE_CHECKING:
    from pathlib import Path


def _touch(root: Path, relative: str, content: str = "x = 1\n") -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _found(root: Path, **kwargs: object) -> list[str]:
    return [
        path.relative_to(root).as_posix()
        for path in find_source_files(root, **kwargs)  # type: ignore[arg-type]
    ]


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_find_source_files_skips_symlinked_dirs(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _touch(repo_root, "pkg/module.py")

    external_root = tmp_path / "external"
    external_root.mkdir()
    _touch(external_root, "leak.ts", "export const leak = 1;\n")

    symlink_dir = repo_root / "linked"
    symlink_dir.symlink_to(external_root, target_is_directory=True)

    results = _found(repo_root)

    assert "pkg/module.py" in results
    assert "linked/leak.ts" not in results


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_nested_gitignore_skips_symlinked_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _touch(repo_root, "pkg/module.py")
    (repo_root / ".gitignore").write_text("*.bin\n", encoding="utf-8")

    external_root = tmp_path / "external"
    external_root.mkdir()
    (external_root / "outside.gitignore").write_text(
        "pkg/module.py\n", encoding="utf-8"
    )

    symlink_gitignore = repo_root / "linked.gitignore"
    symlink_gitignore.symlink_to(external_root / "outside.gitignore")

    matcher = _build_gitignore_matcher(repo_root, nested_gitignore=True)
    assert matcher is not None
    assert matcher(str(repo_root / "pkg" / "module.py")) is False


def test_find_source_files_covers_every_language_in_path_order(tmp_path: Path) -> None:
    for relative in (
        "web/app.tsx",
        "web/util.mjs",
        "pkg/core.py",
        "README.md",
        "web/styles.css",
        "types.d.ts",
    ):
        _touch(tmp_path, relative)

    assert _found(tmp_path) == [
        "pkg/core.py",
        "types.d.ts",
        "web/app.tsx",
        "web/util.mjs",
    ]


def test_default_skip_dirs_are_never_scanned(tmp_path: Path) -> None:
    _touch(tmp_path, "node_modules/react/index.js")
    _touch(tmp_path, ".venv/lib/site.py")
    _touch(tmp_path, "pkg/__pycache__/mod.py")
    _touch(tmp_path, "pkg/mod.py")

    assert _found(tmp_path) == ["pkg/mod.py"]


def test_include_and_exclude_patterns(tmp_path: Path) -> None:
    _touch(tmp_path, "src/app/core.py")
    _touch(tmp_path, "src/vendor/lib.py")
    _touch(tmp_path, "scripts/tool.py")

    results = _found(
        tmp_path, include_patterns=["src/*"], exclude_patterns=["src/vendor/*"]
    )

    assert results == ["src/app/core.py"]


def test_root_gitignore_is_respected(tmp_path: Path) -> None:
    _touch(tmp_path, "pkg/mod.py")
    _touch(tmp_path, "build/generated.py")
    (tmp_path / ".gitignore").write_text("build\n", encoding="utf-8")

    assert _found(tmp_path) == ["pkg/mod.py"]


def test_nested_gitignore_only_applies_when_enabled(tmp_path: Path) -> None:
    _touch(tmp_path, "pkg/mod.py")
    _touch(tmp_path, "pkg/generated.py")
    (tmp_path / "pkg" / ".gitignore").write_text("generated.py\n", encoding="utf-8")

    assert _found(tmp_path) == ["pkg/generated.py", "pkg/mod.py"]
    assert _found(tmp_path, nested_gitignore=True) == ["pkg/mod.py"]


def test_undecodable_gitignore_is_skipped(tmp_path: Path) -> None:
    _touch(tmp_path, "pkg/mod.py")
    (tmp_path / ".gitignore").write_bytes(b"caf\xe9/\n")

    assert _found(tmp_path) == ["pkg/mod.py"]
