"""Dependency-direction rule and the unclassified-module gap warning."""

from __future__ import annotations

from typing import TYPE_CHECKING

from archconform.rules.layers import is_violation
from archconform.rules.models import (
    LAYER_DIRECTION,
    LAYER_UNCLASSIFIED,
    Category,
    Severity,
    Violation,
    line_range,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archconform.graph.model import Module, ModuleGraph
    from archconform.rules.config import TypeOnlyConfig
    from archconform.rules.context import RuleContext


def is_type_only(module: Module, type_only: TypeOnlyConfig) -> bool:
    """True when a module only declares types, interfaces or constants.

    Depending on such a module couples to declarations, not behavior, so
    direction violations against it are downgraded to warnings.
    """
    facts = module.facts
    if not facts.parse_ok or not facts.exports:
        return False
    if facts.call_count > type_only.max_calls:
        return False
    kinds = set(type_only.kinds)
    return all(symbol.kind in kinds for symbol in facts.exports)


def _describe_allowed(allowed: set[str]) -> str:
    return ", ".join(sorted(allowed)) if allowed else "nothing"


class LayerDirectionRule:
    rule_id = LAYER_DIRECTION
    category = Category.DIRECTION
    severity = Severity.ERROR

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        allowed = context.allowed_targets
        if not allowed:
            return

        for source, target, edge in graph.iter_edges():
            if not is_violation(source.layer, target.layer, allowed):
                continue

            severity = self.severity
            note = ""
            if is_type_only(target, context.config.type_only):
                severity = Severity.WARNING
                note = " (type-only dependency)"

            permitted = _describe_allowed(allowed.get(source.layer or "", set()))
            yield Violation(
                rule_id=self.rule_id,
                category=self.category,
                severity=severity,
                path=source.path,
                line_range=line_range(edge.line),
                message=(
                    f"{source.layer} module imports {target.path} "
                    f"({target.layer}){note}; {source.layer} may depend on: "
                    f"{permitted}"
                ),
            )


class UnclassifiedModuleRule:
    """One configuration-gap warning per module that matches no layer."""

    rule_id = LAYER_UNCLASSIFIED
    category = Category.CONFIGURATION
    severity = Severity.WARNING

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        layers = context.config.layers
        if layers.unclassified == "ignore" or not layers.layer:
            return

        for module in graph.modules:
            if module.classified:
                continue
            yield Violation(
                rule_id=self.rule_id,
                category=self.category,
                severity=self.severity,
                path=module.path,
                message="Module matches no layer; dependency direction is not checked",
            )


__all__ = ["LayerDirectionRule", "UnclassifiedModuleRule", "is_type_only"]
