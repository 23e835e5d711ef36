"""I/O-isolation rule: business logic must not touch the outside world."""

from __future__ import annotations

from typing import TYPE_CHECKING

from archconform.parse.languages import match_import
from archconform.rules.models import (
    IO_ISOLATION,
    Category,
    Severity,
    Violation,
    line_range,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archconform.graph.model import ModuleGraph
    from archconform.rules.context import RuleContext


class IoIsolationRule:
    """One violation per deny-listed call site or I/O import in an isolated layer."""

    rule_id = IO_ISOLATION
    category = Category.IO_ISOLATION
    severity = Severity.ERROR

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        if not context.isolated_layers:
            return

        for module in graph.modules:
            if module.layer not in context.isolated_layers:
                continue

            for site in module.facts.sorted_io_call_sites():
                yield Violation(
                    rule_id=self.rule_id,
                    category=self.category,
                    severity=self.severity,
                    path=module.path,
                    line_range=line_range(site.line),
                    message=(
                        f"{module.layer} module calls I/O primitive "
                        f"{site.primitive or site.name!r} ({site.name})"
                    ),
                )

            patterns = context.io_import_patterns.get(module.facts.language, ())
            for dependency in graph.externals_of(module.index):
                specifier = dependency.ref.raw_specifier
                matched = match_import(specifier, patterns)
                if matched is None:
                    continue
                yield Violation(
                    rule_id=self.rule_id,
                    category=self.category,
                    severity=self.severity,
                    path=module.path,
                    line_range=line_range(dependency.ref.line),
                    message=(
                        f"{module.layer} module imports I/O library "
                        f"{specifier!r} (matches {matched!r})"
                    ),
                )


__all__ = ["IoIsolationRule"]
