"""Determinism verification for archconform reports."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from archconform.analyzer import analyze
from archconform.report.reporter import dump_report

if TYPE_CHECKING:
    from pathlib import Path

    from archconform.rules.config import ArchConformConfig


@dataclass(frozen=True)
class DeterminismResult:
    ok: bool
    first: bytes
    second: bytes

    @property
    def first_digest(self) -> str:
        return hashlib.sha256(self.first).hexdigest()

    @property
    def second_digest(self) -> str:
        return hashlib.sha256(self.second).hexdigest()

    def first_difference(self) -> int | None:
        """1-based line number of the first differing report line, if any."""
        if self.ok:
            return None
        first_lines = self.first.splitlines()
        second_lines = self.second.splitlines()
        for number, (left, right) in enumerate(zip(first_lines, second_lines), 1):
            if left != right:
                return number
        return min(len(first_lines), len(second_lines)) + 1


def verify_determinism(
    *,
    root: Path,
    config: ArchConformConfig | None = None,
    config_path: Path | None = None,
) -> DeterminismResult:
    """Verify that analyzing an unchanged tree twice yields identical reports.

    Both runs serialize their reports with the canonical JSON encoding and
    the bytes are compared exactly. No deadline is applied, since a timeout
    in one run only would be a false mismatch.

    Args:
        root: Directory to analyze.
        config: Optional configuration shared by both runs.
        config_path: Explicit config file, used when ``config`` is omitted.

    Returns:
        DeterminismResult with ok status and both serialized reports.
    """
    first = dump_report(analyze(root, config, config_path=config_path))
    second = dump_report(analyze(root, config, config_path=config_path))
    return DeterminismResult(ok=first == second, first=first, second=second)


__all__ = ["DeterminismResult", "verify_determinism"]
