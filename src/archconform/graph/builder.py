"""Module graph construction from the complete set of FileFacts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from archconform.errors import InvariantError
from archconform.graph.algos import find_cycles
from archconform.graph.model import (
    AmbiguousImport,
    DependencyEdge,
    ExternalDependency,
    Module,
    ModuleGraph,
)
from archconform.graph.resolve import Resolver

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from archconform.parse.models import FileFacts, ImportRef

logger = logging.getLogger(__name__)


def _allowed_pairs(cycle_allow: Iterable[Sequence[str]]) -> set[frozenset[str]]:
    return {frozenset(pair) for pair in cycle_allow if len(set(pair)) == 2}


def detect_cycles(
    modules: Sequence[Module],
    edges: Sequence[DependencyEdge],
    cycle_allow: Iterable[Sequence[str]] = (),
) -> tuple[tuple[int, ...], ...]:
    """Return circular-dependency groups as sorted tuples of module indices.

    Edges between an allow-listed pair of paths (in either direction) are
    left out before strongly connected components are computed.
    """
    allowed = _allowed_pairs(cycle_allow)
    adjacency: dict[int, list[int]] = {module.index: [] for module in modules}
    for edge in edges:
        pair = frozenset(
            (modules[edge.source].path, modules[edge.target].path)
        )
        if pair in allowed:
            continue
        adjacency[edge.source].append(edge.target)

    for targets in adjacency.values():
        targets.sort()

    return tuple(
        tuple(component)
        for component in find_cycles(adjacency)
        if len(component) > 1
    )


def build_module_graph(
    facts: Iterable[FileFacts],
    *,
    package_roots: Iterable[str] = ("", "src"),
    aliases: Mapping[str, str] | None = None,
    cycle_allow: Iterable[Sequence[str]] = (),
) -> ModuleGraph:
    """Build the dependency graph for a complete set of file facts.

    Args:
        facts: FileFacts for every ingested file; must be the complete set
        package_roots: Directories tried for non-relative specifiers
        aliases: Specifier prefix to directory mapping
        cycle_allow: Path pairs whose mutual dependency is accepted

    Returns:
        ModuleGraph with modules sorted by path, edges sorted by
        (source, target), externals, ambiguous imports and cycle groups.

    Raises:
        InvariantError: If two facts share a path or the built graph is
            structurally inconsistent.
    """
    ordered = sorted(facts, key=lambda item: item.path)
    for first, second in zip(ordered, ordered[1:]):
        if first.path == second.path:
            msg = f"Duplicate module path {first.path!r}"
            raise InvariantError(msg)

    index_by_path = {item.path: index for index, item in enumerate(ordered)}
    resolver = Resolver.for_paths(
        index_by_path, package_roots=package_roots, aliases=aliases
    )

    modules: list[Module] = []
    edges: dict[tuple[int, int], DependencyEdge] = {}
    externals: list[ExternalDependency] = []
    ambiguities: list[AmbiguousImport] = []

    for index, item in enumerate(ordered):
        resolved_imports: list[ImportRef] = []
        for ref in item.imports:
            resolution = resolver.resolve(item.path, item.language, ref)

            if resolution.ambiguous:
                logger.warning(
                    "%s: ambiguous import %r matches %s",
                    item.path,
                    ref.raw_specifier,
                    ", ".join(resolution.ambiguous),
                )
                ambiguities.append(
                    AmbiguousImport(
                        module=index, ref=ref, candidates=resolution.ambiguous
                    )
                )

            if not resolution.targets:
                externals.append(ExternalDependency(module=index, ref=ref))
                resolved_imports.append(ref)
                continue

            for target in resolution.targets:
                resolved_imports.append(
                    ref.model_copy(
                        update={"resolved_path": target.path, "symbols": target.symbols}
                    )
                )
                target_index = index_by_path[target.path]
                if target_index == index or resolution.kind is None:
                    continue
                edges.setdefault(
                    (index, target_index),
                    DependencyEdge(
                        source=index,
                        target=target_index,
                        kind=resolution.kind,
                        specifier=ref.raw_specifier,
                        line=ref.line,
                    ),
                )

        modules.append(
            Module(
                index=index,
                path=item.path,
                facts=item,
                resolved_imports=tuple(resolved_imports),
            )
        )

    sorted_edges = tuple(edges[key] for key in sorted(edges))
    cycles = detect_cycles(modules, sorted_edges, cycle_allow)

    graph = ModuleGraph(
        modules=tuple(modules),
        edges=sorted_edges,
        externals=tuple(externals),
        ambiguities=tuple(ambiguities),
        cycles=cycles,
    )
    graph.validate()

    logger.info(
        "Built module graph: %d modules, %d edges, %d external imports, %d cycles",
        len(modules),
        len(sorted_edges),
        len(externals),
        len(cycles),
    )
    return graph


__all__ = ["build_module_graph", "detect_cycles"]
