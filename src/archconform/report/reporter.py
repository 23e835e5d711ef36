"""Violation aggregation and report serialization."""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import TYPE_CHECKING

import orjson
from pydantic import BaseModel, ConfigDict, Field

from archconform.rules.models import Severity, Violation

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from archconform.parse.models import FileFacts


class RunStatus(str, Enum):
    CLEAN = "clean"
    VIOLATIONS_FOUND = "violations-found"
    TIMEOUT = "timeout"
    CONFIG_ERROR = "config-error"
    INTERNAL_ERROR = "internal-error"


EXIT_CODES: dict[RunStatus, int] = {
    RunStatus.CLEAN: 0,
    RunStatus.VIOLATIONS_FOUND: 1,
    RunStatus.CONFIG_ERROR: 2,
    RunStatus.TIMEOUT: 3,
    RunStatus.INTERNAL_ERROR: 4,
}


class ParseFailure(BaseModel):
    """A file whose facts are partial or missing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    language: str
    error: str | None = None


class RunError(BaseModel):
    """Why a run ended without a verdict."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str
    message: str
    details: dict[str, str] = Field(default_factory=dict)


class Report(BaseModel):
    """Outcome of one analyzer run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: RunStatus
    violations: tuple[Violation, ...] = ()
    counts_by_rule: dict[str, int] = Field(default_factory=dict)
    counts_by_severity: dict[str, int] = Field(default_factory=dict)
    parse_failures: tuple[ParseFailure, ...] = ()
    files_analyzed: int = 0
    module_count: int = 0
    edge_count: int = 0
    error: RunError | None = None

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]


def dedupe_and_sort(violations: Iterable[Violation]) -> list[Violation]:
    """Drop duplicates on (rule_id, path, line_range) and apply the total order.

    When two violations share a key, the one that sorts first survives, so
    the outcome does not depend on the order rules produced them in.
    """
    kept: dict[tuple[str, str, tuple[int, int] | None], Violation] = {}
    for violation in sorted(violations, key=Violation.sort_key):
        kept.setdefault(violation.dedupe_key, violation)
    return sorted(kept.values(), key=Violation.sort_key)


def build_report(
    violations: Iterable[Violation],
    *,
    facts: Iterable[FileFacts] = (),
    module_count: int = 0,
    edge_count: int = 0,
) -> Report:
    """Aggregate rule output into a finished report."""
    ordered = dedupe_and_sort(violations)
    facts = list(facts)

    by_rule = Counter(violation.rule_id for violation in ordered)
    by_severity = Counter(violation.severity.value for violation in ordered)

    failures = tuple(
        ParseFailure(path=item.path, language=item.language, error=item.error)
        for item in sorted(facts, key=lambda item: item.path)
        if not item.parse_ok
    )

    return Report(
        status=RunStatus.VIOLATIONS_FOUND if ordered else RunStatus.CLEAN,
        violations=tuple(ordered),
        counts_by_rule=dict(sorted(by_rule.items())),
        counts_by_severity={
            severity.value: by_severity.get(severity.value, 0)
            for severity in sorted(Severity, key=lambda s: s.rank, reverse=True)
        },
        parse_failures=failures,
        files_analyzed=len(facts),
        module_count=module_count,
        edge_count=edge_count,
    )


def failed_report(
    status: RunStatus,
    kind: str,
    message: str,
    details: dict[str, str] | None = None,
) -> Report:
    """A report for a run that ended without a verdict; it carries no violations."""
    return Report(
        status=status,
        error=RunError(kind=kind, message=message, details=details or {}),
    )


def dump_report(report: Report) -> bytes:
    """Serialize a report to canonical JSON bytes."""
    opts = orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2
    return orjson.dumps(report.model_dump(mode="json"), option=opts)


def write_report(path: Path, report: Report) -> None:
    path.write_bytes(dump_report(report) + b"\n")


def _format_location(violation: Violation) -> str:
    if violation.line_range is None:
        return violation.path
    start, end = violation.line_range
    if start == end:
        return f"{violation.path}:{start}"
    return f"{violation.path}:{start}-{end}"


def render_text(report: Report) -> str:
    """Render a report as one line per violation plus a summary line."""
    lines = [
        f"{_format_location(violation)}: {violation.severity.value} "
        f"[{violation.rule_id}] {violation.message}"
        for violation in report.violations
    ]
    for failure in report.parse_failures:
        lines.append(f"{failure.path}: parse failure: {failure.error or 'unknown'}")

    if report.error is not None:
        lines.append(f"{report.status.value}: {report.error.message}")
        for key, value in sorted(report.error.details.items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)

    severities = ", ".join(
        f"{count} {name}" for name, count in report.counts_by_severity.items() if count
    )
    breakdown = f" ({severities})" if severities else ""
    lines.append(
        f"{report.status.value}: {len(report.violations)} violations{breakdown} "
        f"in {report.files_analyzed} files"
    )
    return "\n".join(lines)


__all__ = [
    "EXIT_CODES",
    "ParseFailure",
    "Report",
    "RunError",
    "RunStatus",
    "build_report",
    "dedupe_and_sort",
    "dump_report",
    "failed_report",
    "render_text",
    "write_report",
]
