"""Violation model shared by every rule and the reporter."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.INFO: 1, Severity.WARNING: 2, Severity.ERROR: 3}


class Category(str, Enum):
    """Closed set of violation categories."""

    DIRECTION = "direction"
    IO_ISOLATION = "io-isolation"
    BOUNDARY = "boundary"
    ERROR_SHAPE = "error-shape"
    CYCLE = "cycle"
    CONFIGURATION = "configuration"
    RESOLUTION = "resolution"


# Rule identifiers.
LAYER_DIRECTION = "layer-direction"
LAYER_UNCLASSIFIED = "layer-unclassified"
IO_ISOLATION = "io-isolation"
MODULE_BOUNDARY = "module-boundary"
ERROR_HANDLING_SHAPE = "error-handling-shape"
CIRCULAR_DEPENDENCY = "circular-dependency"
AMBIGUOUS_IMPORT = "ambiguous-import"

RULE_IDS = frozenset(
    {
        LAYER_DIRECTION,
        LAYER_UNCLASSIFIED,
        IO_ISOLATION,
        MODULE_BOUNDARY,
        ERROR_HANDLING_SHAPE,
        CIRCULAR_DEPENDENCY,
        AMBIGUOUS_IMPORT,
    }
)

LineRange = tuple[int, int]


class Violation(BaseModel):
    """A located rule violation. Immutable once produced."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rule_id: str
    category: Category
    severity: Severity
    path: str
    line_range: LineRange | None = Field(
        default=None, description="Inclusive 1-based (start, end) lines"
    )
    message: str

    @property
    def dedupe_key(self) -> tuple[str, str, LineRange | None]:
        return (self.rule_id, self.path, self.line_range)

    def sort_key(self) -> tuple[int, str, tuple[int, int, int], str, str]:
        """Severity descending, then path, then line range (None first)."""
        if self.line_range is None:
            lines = (0, 0, 0)
        else:
            lines = (1, self.line_range[0], self.line_range[1])
        return (-self.severity.rank, self.path, lines, self.rule_id, self.message)


def line_range(line: int | None) -> LineRange | None:
    """Single-line range for a located fact, or None when unknown."""
    return None if line is None else (line, line)


__all__ = [
    "AMBIGUOUS_IMPORT",
    "CIRCULAR_DEPENDENCY",
    "ERROR_HANDLING_SHAPE",
    "IO_ISOLATION",
    "LAYER_DIRECTION",
    "LAYER_UNCLASSIFIED",
    "MODULE_BOUNDARY",
    "RULE_IDS",
    "Category",
    "LineRange",
    "Severity",
    "Violation",
    "line_range",
]
