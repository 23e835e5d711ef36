"""Source tree enumeration.

The walk never follows symbolic links, so every yielded file lies inside the
analyzed root. Tool and dependency directories are pruned before descent;
what remains is filtered by language, ``.gitignore`` and the configured
include/exclude globs.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import TYPE_CHECKING

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

from archconform.parse.languages import detect_language

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)

# Directories that never hold first-party source.
DEFAULT_SKIP_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
        ".mypy_cache",
        ".pytest_cache",
        ".tox",
    }
)


def _gitignore_files(root: Path, *, nested: bool) -> list[Path]:
    """Regular (non-symlinked) .gitignore files that apply, shallowest first."""
    candidates = [root / ".gitignore"]
    if nested:
        candidates.extend(root.rglob(".gitignore"))
    found = {path for path in candidates if path.is_file() and not path.is_symlink()}
    return sorted(
        found,
        key=lambda path: (
            len(path.relative_to(root).parts),
            path.relative_to(root).as_posix(),
        ),
    )


def _build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
) -> Callable[[str], bool] | None:
    """Compose the applicable .gitignore files into one predicate over paths."""
    matchers: list[Callable[[str], bool]] = []
    for path in _gitignore_files(root, nested=nested_gitignore):
        try:
            matchers.append(parse_gitignore(path))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable %s: %s", path, exc)
    if not matchers:
        return None

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                # The path is outside this .gitignore's directory.
                continue
        return False

    return matches


@dataclass(frozen=True)
class _PathFilter:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    ignored: Callable[[str], bool] | None = None

    def accepts(self, path: Path, rel_path: str) -> bool:
        if self.ignored is not None and self.ignored(str(path)):
            return False
        if self.include and not any(fnmatch(rel_path, pat) for pat in self.include):
            return False
        return not any(fnmatch(rel_path, pat) for pat in self.exclude)


def _walk(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in DEFAULT_SKIP_DIRS and not (current / name).is_symlink()
        )
        for name in filenames:
            path = current / name
            if path.is_file() and not path.is_symlink():
                yield path


def find_source_files(
    directory: Path,
    *,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    nested_gitignore: bool = False,
) -> Iterator[Path]:
    """Find all analyzable source files in a directory, respecting .gitignore.

    Args:
        directory: Directory to search
        include_patterns: Optional list of fnmatch patterns; if provided,
            files must match at least one pattern to be included
        exclude_patterns: Optional list of fnmatch patterns (vendored or
            generated paths); files matching any pattern are excluded
        nested_gitignore: Compose every .gitignore under the root instead
            of only the root one

    Yields:
        Path objects sorted lexicographically by relative path for
        deterministic ordering.
    """
    path_filter = _PathFilter(
        include=tuple(include_patterns or ()),
        exclude=tuple(exclude_patterns or ()),
        ignored=_build_gitignore_matcher(directory, nested_gitignore=nested_gitignore),
    )

    matched: list[tuple[str, Path]] = []
    for path in _walk(directory):
        if detect_language(path.name) is None:
            continue
        rel_path = path.relative_to(directory).as_posix()
        if path_filter.accepts(path, rel_path):
            matched.append((rel_path, path))

    matched.sort()
    logger.debug("Scanned %s: %d source files", directory, len(matched))

    yield from (path for _, path in matched)


__all__ = ["DEFAULT_SKIP_DIRS", "find_source_files"]
