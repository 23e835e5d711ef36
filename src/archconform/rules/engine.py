"""Rule protocol and the engine that evaluates rules against a module graph.

Rules read the classified graph and never write to it. Each returns its own
violations; the engine only checks them, applies configured severity
overrides and concatenates. Ordering is left to the reporter, so the result
does not depend on the order rules run in.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from archconform.errors import InvariantError
from archconform.rules.boundary import ModuleBoundaryRule
from archconform.rules.cycles import CircularDependencyRule
from archconform.rules.direction import LayerDirectionRule, UnclassifiedModuleRule
from archconform.rules.handlers import ErrorHandlingShapeRule
from archconform.rules.isolation import IoIsolationRule
from archconform.rules.models import Category, Severity, Violation
from archconform.rules.resolution import AmbiguousImportRule

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from archconform.graph.model import ModuleGraph
    from archconform.rules.context import RuleContext
    from archconform.utils import Deadline

logger = logging.getLogger(__name__)


class Rule(Protocol):
    """Rules read the graph (NEVER write) and return violations."""

    rule_id: str
    category: Category
    severity: Severity  # default grade; [severity] overrides replace it

    def evaluate(
        self, graph: ModuleGraph, context: RuleContext
    ) -> Iterable[Violation]: ...


def _check_violation(rule: Rule, violation: Violation, graph: ModuleGraph) -> None:
    if not violation.rule_id:
        msg = f"Rule {rule.rule_id!r} produced a violation without a rule id"
        raise InvariantError(msg)
    if not isinstance(violation.severity, Severity):
        msg = f"Rule {rule.rule_id!r} produced an invalid severity"
        raise InvariantError(msg, {"severity": repr(violation.severity)})
    if violation.path not in graph:
        msg = f"Rule {rule.rule_id!r} reported a path outside the graph"
        raise InvariantError(msg, {"path": violation.path})
    if violation.line_range is not None:
        start, end = violation.line_range
        if start < 1 or end < start:
            msg = f"Rule {rule.rule_id!r} reported an invalid line range"
            raise InvariantError(
                msg, {"path": violation.path, "line_range": repr(violation.line_range)}
            )


class RuleEngine:
    """Evaluate a fixed set of rules over a classified graph."""

    def __init__(self, rules: Sequence[Rule] | None = None) -> None:
        self.rules: tuple[Rule, ...] = tuple(
            default_rules() if rules is None else rules
        )
        ids = [rule.rule_id for rule in self.rules]
        if len(set(ids)) != len(ids):
            msg = "Duplicate rule ids"
            raise InvariantError(msg, {"rules": ", ".join(ids)})

    def run(
        self,
        graph: ModuleGraph,
        context: RuleContext,
        deadline: Deadline | None = None,
    ) -> list[Violation]:
        """Run every enabled rule and return the combined violations.

        Raises:
            InvariantError: If a rule emits a malformed violation.
            DeadlineExceeded: If the deadline passes between rules.
        """
        violations: list[Violation] = []
        for rule in self.rules:
            if deadline is not None:
                deadline.check(f"rule:{rule.rule_id}")

            effective = context.config.severity_for(rule.rule_id, rule.severity)
            if effective is None:
                logger.debug("Rule %s disabled by configuration", rule.rule_id)
                continue

            produced = 0
            for violation in rule.evaluate(graph, context):
                _check_violation(rule, violation, graph)
                # Overrides regrade the rule's primary severity; downgraded
                # findings (type-only coupling) keep their own grade.
                if effective is not rule.severity and violation.severity is rule.severity:
                    violation = violation.model_copy(update={"severity": effective})
                violations.append(violation)
                produced += 1

            logger.debug("Rule %s produced %d violations", rule.rule_id, produced)

        logger.info(
            "Evaluated %d rules: %d violations", len(self.rules), len(violations)
        )
        return violations


def default_rules() -> list[Rule]:
    """The built-in rule set, in evaluation order."""
    return [
        LayerDirectionRule(),
        UnclassifiedModuleRule(),
        IoIsolationRule(),
        ModuleBoundaryRule(),
        ErrorHandlingShapeRule(),
        CircularDependencyRule(),
        AmbiguousImportRule(),
    ]


__all__ = ["Rule", "RuleEngine", "default_rules"]
