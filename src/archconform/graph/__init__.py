"""Module dependency graph for archconform."""

from archconform.graph.algos import find_cycles
from archconform.graph.builder import build_module_graph, detect_cycles
from archconform.graph.model import (
    AmbiguousImport,
    DependencyEdge,
    EdgeKind,
    ExternalDependency,
    Module,
    ModuleGraph,
)
from archconform.graph.resolve import Resolution, Resolver

__all__ = [
    "AmbiguousImport",
    "DependencyEdge",
    "EdgeKind",
    "ExternalDependency",
    "Module",
    "ModuleGraph",
    "Resolution",
    "Resolver",
    "build_module_graph",
    "detect_cycles",
    "find_cycles",
]
