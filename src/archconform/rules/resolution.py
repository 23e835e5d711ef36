"""Ambiguous-import rule."""

from __future__ import annotations

from typing import TYPE_CHECKING

from archconform.rules.models import (
    AMBIGUOUS_IMPORT,
    Category,
    Severity,
    Violation,
    line_range,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archconform.graph.model import ModuleGraph
    from archconform.rules.context import RuleContext


class AmbiguousImportRule:
    rule_id = AMBIGUOUS_IMPORT
    category = Category.RESOLUTION
    severity = Severity.WARNING

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        for ambiguity in graph.ambiguities:
            module = graph.modules[ambiguity.module]
            yield Violation(
                rule_id=self.rule_id,
                category=self.category,
                severity=self.severity,
                path=module.path,
                line_range=line_range(ambiguity.ref.line),
                message=(
                    f"Import {ambiguity.ref.raw_specifier!r} matches several files "
                    f"({', '.join(ambiguity.candidates)}); treated as external"
                ),
            )


__all__ = ["AmbiguousImportRule"]
