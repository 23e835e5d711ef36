"""Module dependency graph: an arena of modules plus index-based edges.

Cycles are ordinary input here. Edges refer to modules by arena index, so a
cyclic graph needs no special representation and cycle detection is just
another pass over ``edges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from archconform.errors import InvariantError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from archconform.parse.models import FileFacts, ImportRef


class EdgeKind(str, Enum):
    """How an edge's target was resolved."""

    DIRECT = "direct"
    """From a relative specifier, against the importing file's directory."""

    INTERNAL = "internal"
    """Through the package-root or alias mapping."""


@dataclass(frozen=True)
class Module:
    index: int
    path: str
    facts: FileFacts
    layer: str | None = None
    resolved_imports: tuple[ImportRef, ...] = ()

    @property
    def classified(self) -> bool:
        return self.layer is not None


@dataclass(frozen=True)
class DependencyEdge:
    source: int
    target: int
    kind: EdgeKind
    specifier: str
    line: int | None = None


@dataclass(frozen=True)
class ExternalDependency:
    """An import that does not map onto an analyzed file."""

    module: int
    ref: ImportRef


@dataclass(frozen=True)
class AmbiguousImport:
    """An import whose specifier matched more than one analyzed file."""

    module: int
    ref: ImportRef
    candidates: tuple[str, ...]


@dataclass(frozen=True)
class ModuleGraph:
    modules: tuple[Module, ...]
    edges: tuple[DependencyEdge, ...] = ()
    externals: tuple[ExternalDependency, ...] = ()
    ambiguities: tuple[AmbiguousImport, ...] = ()
    cycles: tuple[tuple[int, ...], ...] = ()
    _by_path: dict[str, int] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_by_path", {module.path: module.index for module in self.modules}
        )

    def module(self, path: str) -> Module | None:
        index = self._by_path.get(path)
        return None if index is None else self.modules[index]

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def iter_edges(self) -> Iterator[tuple[Module, Module, DependencyEdge]]:
        for edge in self.edges:
            yield self.modules[edge.source], self.modules[edge.target], edge

    def externals_of(self, index: int) -> list[ExternalDependency]:
        return [dep for dep in self.externals if dep.module == index]

    def with_layers(self, layers: Sequence[str | None]) -> ModuleGraph:
        """Return a copy of this graph with one layer label per module."""
        if len(layers) != len(self.modules):
            msg = "Layer labels do not match module count"
            raise InvariantError(
                msg, {"labels": str(len(layers)), "modules": str(len(self.modules))}
            )
        modules = tuple(
            replace(module, layer=layer)
            for module, layer in zip(self.modules, layers)
        )
        return replace(self, modules=modules)

    def validate(self) -> None:
        """Check structural invariants; raise InvariantError if any is broken."""
        count = len(self.modules)
        previous = None
        for position, module in enumerate(self.modules):
            if module.index != position:
                msg = f"Module {module.path!r} has index {module.index}, expected {position}"
                raise InvariantError(msg)
            if previous is not None and module.path <= previous:
                msg = f"Modules are not sorted by unique path at {module.path!r}"
                raise InvariantError(msg)
            previous = module.path

        for edge in self.edges:
            if not (0 <= edge.source < count and 0 <= edge.target < count):
                msg = "Dangling dependency edge"
                raise InvariantError(
                    msg,
                    {"source": str(edge.source), "target": str(edge.target)},
                )
            if edge.source == edge.target:
                msg = f"Self edge on {self.modules[edge.source].path!r}"
                raise InvariantError(msg)

        for cycle in self.cycles:
            if len(cycle) < 2 or any(not 0 <= index < count for index in cycle):
                msg = "Malformed cycle group"
                raise InvariantError(msg, {"cycle": repr(cycle)})


__all__ = [
    "AmbiguousImport",
    "DependencyEdge",
    "EdgeKind",
    "ExternalDependency",
    "Module",
    "ModuleGraph",
]
