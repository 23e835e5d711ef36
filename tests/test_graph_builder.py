from __future__ import annotations

from dataclasses import replace

import pytest

from archconform.errors import InvariantError
from archconform.graph.algos import find_cycles
from archconform.graph.builder import build_module_graph
from archconform.graph.model import DependencyEdge, EdgeKind, ModuleGraph
from archconform.parse.models import FileFacts, ImportRef


def _py(path: str, *imports: tuple[str, int]) -> FileFacts:
    return FileFacts(
        path=path,
        language="python",
        imports=tuple(
            ImportRef(raw_specifier=specifier, line=line) for specifier, line in imports
        ),
    )


def _paths(graph: ModuleGraph, group: tuple[int, ...]) -> list[str]:
    return [graph.modules[index].path for index in group]


def test_modules_are_indexed_in_path_order() -> None:
    graph = build_module_graph([_py("b.py"), _py("a.py"), _py("c/d.py")])

    assert [(module.index, module.path) for module in graph.modules] == [
        (0, "a.py"),
        (1, "b.py"),
        (2, "c/d.py"),
    ]
    assert graph.module("b.py") is graph.modules[1]
    assert "c/d.py" in graph
    assert "missing.py" not in graph


def test_three_module_cycle_is_reported_as_one_group() -> None:
    facts = [
        _py("a.py", ("b", 1)),
        _py("b.py", ("c", 1)),
        _py("c.py", ("a", 1)),
        _py("d.py", ("a", 1)),
    ]

    graph = build_module_graph(facts)

    assert [_paths(graph, group) for group in graph.cycles] == [["a.py", "b.py", "c.py"]]


def test_two_disjoint_cycles_are_separate_groups() -> None:
    facts = [
        _py("a.py", ("b", 1)),
        _py("b.py", ("a", 1)),
        _py("x.py", ("y", 1)),
        _py("y.py", ("x", 1)),
    ]

    graph = build_module_graph(facts)

    assert [_paths(graph, group) for group in graph.cycles] == [
        ["a.py", "b.py"],
        ["x.py", "y.py"],
    ]


def test_cycle_allow_list_removes_pair_in_either_order() -> None:
    facts = [_py("a.py", ("b", 1)), _py("b.py", ("a", 1))]

    graph = build_module_graph(facts, cycle_allow=[("b.py", "a.py")])

    assert graph.cycles == ()
    assert len(graph.edges) == 2


def test_self_import_produces_no_edge() -> None:
    graph = build_module_graph([_py("pkg/__init__.py", ("pkg", 3))])

    assert graph.edges == ()
    assert graph.cycles == ()
    assert graph.modules[0].resolved_imports[0].resolved_path == "pkg/__init__.py"


def test_duplicate_imports_keep_the_first_line() -> None:
    facts = [_py("a.py", ("b", 2), ("b", 9)), _py("b.py")]

    graph = build_module_graph(facts)

    assert graph.edges == (
        DependencyEdge(
            source=0, target=1, kind=EdgeKind.INTERNAL, specifier="b", line=2
        ),
    )


def test_edges_are_sorted_by_source_then_target() -> None:
    facts = [
        _py("c.py", ("a", 1)),
        _py("a.py", ("c", 1), ("b", 2)),
        _py("b.py"),
    ]

    graph = build_module_graph(facts)

    assert [(edge.source, edge.target) for edge in graph.edges] == [(0, 1), (0, 2), (2, 0)]


def test_unresolved_imports_become_externals() -> None:
    graph = build_module_graph([_py("app.py", ("requests", 1), ("lib", 2)), _py("lib.py")])

    assert [dep.ref.raw_specifier for dep in graph.externals_of(0)] == ["requests"]
    resolved = [ref.resolved_path for ref in graph.modules[0].resolved_imports]
    assert resolved == [None, "lib.py"]


def test_ambiguous_imports_are_recorded_without_edges() -> None:
    facts = [_py("main.py", ("util", 4)), _py("util.py"), _py("src/util.py")]

    graph = build_module_graph(facts)

    assert graph.edges == ()
    assert len(graph.ambiguities) == 1
    ambiguity = graph.ambiguities[0]
    assert graph.modules[ambiguity.module].path == "main.py"
    assert ambiguity.candidates == ("src/util.py", "util.py")


def test_partially_ambiguous_from_import_keeps_resolved_edges() -> None:
    main = FileFacts(
        path="main.py",
        language="python",
        imports=(
            ImportRef(raw_specifier="pkg", symbols=frozenset({"a", "b"}), line=3),
        ),
    )
    facts = [main, _py("pkg/a.py"), _py("pkg/a/__init__.py"), _py("pkg/b.py")]

    graph = build_module_graph(facts)

    assert [
        (graph.modules[edge.source].path, graph.modules[edge.target].path, edge.line)
        for edge in graph.edges
    ] == [("main.py", "pkg/b.py", 3)]
    assert [ambiguity.candidates for ambiguity in graph.ambiguities] == [
        ("pkg/a.py", "pkg/a/__init__.py")
    ]
    assert graph.externals == ()


def test_graph_is_independent_of_fact_order() -> None:
    facts = [
        _py("a.py", ("b", 1), ("c", 2)),
        _py("b.py", ("c", 1)),
        _py("c.py", ("a", 1)),
    ]

    forward = build_module_graph(facts)
    backward = build_module_graph(list(reversed(facts)))

    assert forward == backward


def test_duplicate_paths_are_an_invariant_error() -> None:
    with pytest.raises(InvariantError):
        build_module_graph([_py("a.py"), _py("a.py")])


def test_validate_rejects_dangling_edges() -> None:
    graph = build_module_graph([_py("a.py", ("b", 1)), _py("b.py")])
    broken = replace(
        graph,
        edges=(DependencyEdge(source=0, target=7, kind=EdgeKind.DIRECT, specifier="x"),),
    )

    with pytest.raises(InvariantError):
        broken.validate()


def test_with_layers_requires_one_label_per_module() -> None:
    graph = build_module_graph([_py("a.py"), _py("b.py")])

    labelled = graph.with_layers(["core", None])

    assert [module.layer for module in labelled.modules] == ["core", None]
    with pytest.raises(InvariantError):
        graph.with_layers(["core"])


def test_find_cycles_reports_self_loops_and_sorted_components() -> None:
    adjacency = {3: [1], 1: [2], 2: [3], 4: [4], 5: []}

    assert find_cycles(adjacency) == [[1, 2, 3], [4]]


def test_find_cycles_handles_deep_chains() -> None:
    depth = 5000
    adjacency = {node: [node + 1] for node in range(depth)}
    adjacency[depth] = [0]

    cycles = find_cycles(adjacency)

    assert len(cycles) == 1
    assert len(cycles[0]) == depth + 1
