"""Module-boundary rule: features talk to each other through public entry files."""

from __future__ import annotations

from fnmatch import fnmatch
from typing import TYPE_CHECKING

from archconform.rules.models import (
    MODULE_BOUNDARY,
    Category,
    Severity,
    Violation,
    line_range,
)
from archconform.utils import join_path, normalize_path, parent_dir

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from archconform.graph.model import ModuleGraph
    from archconform.rules.context import RuleContext


def feature_of(path: str, feature_root: str) -> str | None:
    """Return the feature directory a path belongs to.

    A feature is an immediate child directory of ``feature_root``. Files
    directly inside the root, or outside it, belong to no feature.

    Examples:
        >>> feature_of("features/billing/api.ts", "features")
        'billing'
        >>> feature_of("features/index.ts", "features") is None
        True
        >>> feature_of("feature_a/internal.ts", "")
        'feature_a'
    """
    root = normalize_path(feature_root)
    if root:
        if not path.startswith(f"{root}/"):
            return None
        path = path[len(root) + 1 :]
    head, sep, _ = path.partition("/")
    return head if sep else None


def is_public_api(path: str, feature_dir: str, patterns: Iterable[str]) -> bool:
    """True when ``path`` is an entry file of ``feature_dir``.

    Entry files sit directly in the feature directory and match one of its
    public-API file name patterns.
    """
    if parent_dir(path) != feature_dir:
        return False
    name = path.rsplit("/", 1)[-1]
    return any(fnmatch(name, pattern) for pattern in patterns)


class ModuleBoundaryRule:
    rule_id = MODULE_BOUNDARY
    category = Category.BOUNDARY
    severity = Severity.ERROR

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        boundaries = context.config.boundaries
        feature_root = boundaries.feature_root
        if feature_root is None:
            return

        for source, target, edge in graph.iter_edges():
            target_feature = feature_of(target.path, feature_root)
            source_feature = feature_of(source.path, feature_root)
            if target_feature is None or source_feature is None:
                continue
            if source_feature == target_feature:
                continue

            patterns = boundaries.patterns_for(target_feature)
            feature_dir = join_path(feature_root, target_feature)
            if is_public_api(target.path, feature_dir, patterns):
                continue

            yield Violation(
                rule_id=self.rule_id,
                category=self.category,
                severity=self.severity,
                path=source.path,
                line_range=line_range(edge.line),
                message=(
                    f"feature {source_feature!r} imports {target.path}, which is "
                    f"internal to feature {target_feature!r} (public API: {', '.join(patterns)})"
                ),
            )


__all__ = ["ModuleBoundaryRule", "feature_of", "is_public_api"]
