"""Per-file fact models produced by source ingestion.

These records are immutable once produced: a worker builds one ``FileFacts``
per file and hands it back to the collection point by value.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Language = Literal["python", "javascript", "typescript"]

SymbolKind = Literal[
    "function",
    "class",
    "interface",
    "type",
    "constant",
    "variable",
    "unknown",
]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Symbol(_FrozenModel):
    """A public name declared by a file."""

    name: str
    kind: SymbolKind = "unknown"


class CallSite(_FrozenModel):
    """A located call (or handler construct) of interest."""

    name: str = Field(description="Normalized callee expression or handler construct")
    primitive: str | None = Field(
        default=None,
        description="Deny-list pattern that matched the callee",
    )
    line: int
    column: int = 1


class ImportRef(_FrozenModel):
    """A single import/require statement target."""

    raw_specifier: str
    resolved_path: str | None = None
    symbols: frozenset[str] = Field(default_factory=frozenset)
    line: int | None = None


class FileFacts(_FrozenModel):
    """Everything the analyzer knows about one source file."""

    path: str
    language: Language
    imports: tuple[ImportRef, ...] = ()
    exports: frozenset[Symbol] = Field(default_factory=frozenset)
    io_call_sites: frozenset[CallSite] = Field(default_factory=frozenset)
    empty_handler_sites: frozenset[CallSite] = Field(default_factory=frozenset)
    call_count: int = 0
    parse_ok: bool = True
    error: str | None = None

    def sorted_io_call_sites(self) -> list[CallSite]:
        return sorted(self.io_call_sites, key=_call_site_key)

    def sorted_empty_handler_sites(self) -> list[CallSite]:
        return sorted(self.empty_handler_sites, key=_call_site_key)


def _call_site_key(site: CallSite) -> tuple[int, int, str, str]:
    return (site.line, site.column, site.name, site.primitive or "")


__all__ = [
    "CallSite",
    "FileFacts",
    "ImportRef",
    "Language",
    "Symbol",
    "SymbolKind",
]
