"""Graph algorithms for archconform."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from archconform.errors import InvariantError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

N = TypeVar("N")


class _TarjanState(Generic[N]):
    """Mutable state container for Tarjan's SCC algorithm."""

    def __init__(self) -> None:
        self.index = 0
        self.indices: dict[N, int] = {}
        self.low_link: dict[N, int] = {}
        self.on_stack: set[N] = set()
        self.stack: list[N] = []
        self.sccs: list[list[N]] = []


def _extract_scc(state: _TarjanState[N], root: N) -> list[N]:
    """Extract a strongly connected component from the stack."""
    scc: list[N] = []
    while state.stack:
        w = state.stack.pop()
        state.on_stack.remove(w)
        scc.append(w)
        if w == root:
            break
    if root not in scc:
        msg = (
            f"Tarjan algorithm invariant violated: root node {root!r} "
            "not found in stack during SCC extraction."
        )
        raise InvariantError(msg)
    return scc


def _visit(node: N, state: _TarjanState[N]) -> None:
    state.indices[node] = state.index
    state.low_link[node] = state.index
    state.index += 1
    state.stack.append(node)
    state.on_stack.add(node)


def _strongconnect(
    start: N, graph: Mapping[N, Sequence[N]], state: _TarjanState[N]
) -> None:
    """Process a node in Tarjan's algorithm.

    Iterative: the work stack holds (node, next neighbor position) so deep
    dependency chains cannot exhaust the interpreter's recursion limit.
    """
    _visit(start, state)
    work: list[tuple[N, int]] = [(start, 0)]

    while work:
        node, position = work[-1]
        neighbors = graph.get(node, ())

        if position < len(neighbors):
            work[-1] = (node, position + 1)
            neighbor = neighbors[position]
            if neighbor not in state.indices:
                _visit(neighbor, state)
                work.append((neighbor, 0))
            elif neighbor in state.on_stack:
                state.low_link[node] = min(
                    state.low_link[node], state.indices[neighbor]
                )
            continue

        work.pop()
        if work:
            parent = work[-1][0]
            state.low_link[parent] = min(state.low_link[parent], state.low_link[node])

        if state.low_link[node] == state.indices[node]:
            scc = _extract_scc(state, node)
            if len(scc) > 1 or node in graph.get(node, ()):
                state.sccs.append(scc)


def find_cycles(graph: Mapping[N, Sequence[N]]) -> list[list[N]]:
    """Find cycles in a directed graph using Tarjan's algorithm.

    Nodes are visited in sorted order and each node's neighbors are followed
    in the order given, so the output is a pure function of the input.

    Args:
        graph: Mapping of node to its successor nodes

    Returns:
        List of strongly connected components with more than one node (or a
        self loop). Each component is sorted, and the list is sorted.
    """
    state: _TarjanState[N] = _TarjanState()

    for node in sorted(graph):  # type: ignore[type-var]
        if node not in state.indices:
            _strongconnect(node, graph, state)

    return sorted(sorted(scc) for scc in state.sccs)  # type: ignore[type-var]


__all__ = ["find_cycles"]
