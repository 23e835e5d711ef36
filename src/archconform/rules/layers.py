"""Layer classification and direction checks."""

from __future__ import annotations

from fnmatch import fnmatch
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archconform.graph.model import ModuleGraph
    from archconform.rules.config import LayersConfig


def classify_layer(path: str, layers_config: LayersConfig) -> str | None:
    """Classify a file path into an architectural layer.

    Uses first-match-wins semantics: the first layer definition whose
    glob patterns match the path determines the layer. ``None`` means the
    path is unclassified.
    """
    for layer_def in layers_config.layer:
        for glob_pattern in layer_def.globs:
            if fnmatch(path, glob_pattern):
                return layer_def.name
    return None


def classify_graph(graph: ModuleGraph, layers_config: LayersConfig) -> ModuleGraph:
    """Return a copy of ``graph`` with every module's layer assigned."""
    return graph.with_layers(
        [classify_layer(module.path, layers_config) for module in graph.modules]
    )


def build_allowed_deps(layers_config: LayersConfig) -> dict[str, set[str]]:
    """Build a mapping of layer -> set of allowed dependency layers."""
    allowed: dict[str, set[str]] = {}
    for rule in layers_config.rules:
        allowed.setdefault(rule.from_layer, set()).update(rule.to)
    return allowed


def is_violation(
    from_layer: str | None,
    to_layer: str | None,
    allowed_deps: dict[str, set[str]],
) -> bool:
    """Check if a dependency from one layer to another breaks the policy.

    Unclassified endpoints are exempt. A layer without a rule entry is
    unrestricted; any layer may depend on itself.
    """
    if from_layer is None or to_layer is None:
        return False
    if from_layer == to_layer:
        return False
    if from_layer not in allowed_deps:
        return False
    return to_layer not in allowed_deps[from_layer]


__all__ = ["build_allowed_deps", "classify_graph", "classify_layer", "is_violation"]
