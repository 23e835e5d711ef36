"""Shared utilities for archconform."""

from __future__ import annotations

import time
from pathlib import PurePosixPath

from archconform.errors import DeadlineExceeded


def normalize_path(path: str) -> str:
    """Normalize a relative path to posix form without ``.`` or ``..`` parts.

    Returns an empty string when the path climbs above its starting point
    (see ``escapes_root``).

    Examples:
        >>> normalize_path("pkg/./sub/../mod.py")
        'pkg/mod.py'
        >>> normalize_path("a\\\\b.ts")
        'a/b.ts'
        >>> normalize_path("../outside.py")
        ''
    """
    parts: list[str] = []
    for part in path.replace("\\", "/").split("/"):
        if part in {"", "."}:
            continue
        if part == "..":
            if not parts:
                return ""
            parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


def escapes_root(path: str) -> bool:
    """Return True when ``..`` parts climb above the path's starting point."""
    depth = 0
    for part in path.replace("\\", "/").split("/"):
        if part == "..":
            depth -= 1
            if depth < 0:
                return True
        elif part not in {"", "."}:
            depth += 1
    return False


def parent_dir(path: str) -> str:
    """Return the posix parent directory of a relative path ('' at the root)."""
    parent = PurePosixPath(path).parent.as_posix()
    return "" if parent == "." else parent


def join_path(*parts: str) -> str:
    """Join relative path fragments, ignoring empty ones."""
    return normalize_path("/".join(part for part in parts if part))


class Deadline:
    """Wall-clock budget for a run, measured on the monotonic clock."""

    def __init__(self, seconds: float | None) -> None:
        self.seconds = seconds
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    def remaining(self) -> float | None:
        """Seconds left, ``None`` for an unbounded run, never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, phase: str) -> None:
        """Raise DeadlineExceeded if the budget is spent."""
        if self.expired():
            raise DeadlineExceeded(phase)


__all__ = ["Deadline", "escapes_root", "join_path", "normalize_path", "parent_dir"]
