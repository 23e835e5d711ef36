"""Error-handling-shape rule."""

from __future__ import annotations

from typing import TYPE_CHECKING

from archconform.rules.models import (
    ERROR_HANDLING_SHAPE,
    Category,
    Severity,
    Violation,
    line_range,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archconform.graph.model import ModuleGraph
    from archconform.rules.context import RuleContext


class ErrorHandlingShapeRule:
    """Flag error handlers whose body does nothing."""

    rule_id = ERROR_HANDLING_SHAPE
    category = Category.ERROR_SHAPE
    severity = Severity.WARNING

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        for module in graph.modules:
            for site in module.facts.sorted_empty_handler_sites():
                yield Violation(
                    rule_id=self.rule_id,
                    category=self.category,
                    severity=self.severity,
                    path=module.path,
                    line_range=line_range(site.line),
                    message=f"Empty {site.name} block silently discards the error",
                )


__all__ = ["ErrorHandlingShapeRule"]
