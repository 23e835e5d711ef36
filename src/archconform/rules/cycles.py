"""Circular-dependency rule over precomputed cycle groups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from archconform.rules.models import (
    CIRCULAR_DEPENDENCY,
    Category,
    Severity,
    Violation,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archconform.graph.model import ModuleGraph
    from archconform.rules.context import RuleContext


class CircularDependencyRule:
    """Report every module of every cycle group, naming the whole group."""

    rule_id = CIRCULAR_DEPENDENCY
    category = Category.CYCLE
    severity = Severity.ERROR

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        for cycle in graph.cycles:
            paths = [graph.modules[index].path for index in cycle]
            members = ", ".join(paths)
            for path in paths:
                yield Violation(
                    rule_id=self.rule_id,
                    category=self.category,
                    severity=self.severity,
                    path=path,
                    message=f"Part of a dependency cycle of {len(paths)} modules: {members}",
                )


__all__ = ["CircularDependencyRule"]
