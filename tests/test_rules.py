from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from archconform.errors import DeadlineExceeded, InvariantError
from archconform.graph.builder import build_module_graph
from archconform.parse.models import CallSite, FileFacts, ImportRef, Symbol
from archconform.rules.boundary import feature_of, is_public_api
from archconform.rules.config import parse_config
from archconform.rules.context import RuleContext
from archconform.rules.engine import RuleEngine, default_rules
from archconform.rules.layers import classify_graph
from archconform.rules.models import Category, Severity, Violation
from archconform.utils import Deadline

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archconform.graph.model import ModuleGraph
    from archconform.rules.engine import Rule


def _facts(
    path: str,
    *imports: tuple[str, int],
    language: str | None = None,
    **fields: object,
) -> FileFacts:
    if language is None:
        language = "python" if path.endswith(".py") else "typescript"
    return FileFacts(
        path=path,
        language=language,  # type: ignore[arg-type]
        imports=tuple(
            ImportRef(raw_specifier=specifier, line=line) for specifier, line in imports
        ),
        **fields,  # type: ignore[arg-type]
    )


def _evaluate(
    facts: list[FileFacts],
    config_data: dict[str, object] | None = None,
    rules: list[Rule] | None = None,
) -> list[Violation]:
    config = parse_config(config_data or {})
    graph = build_module_graph(
        facts,
        package_roots=config.resolution.package_roots,
        cycle_allow=config.cycles.allow,
    )
    graph = classify_graph(graph, config.layers)
    violations = RuleEngine(rules).run(graph, RuleContext.from_config(config))
    return sorted(violations, key=Violation.sort_key)


def _only(violations: list[Violation], rule_id: str) -> list[Violation]:
    return [violation for violation in violations if violation.rule_id == rule_id]


_INFRA_DB = _facts(
    "infra/db.py",
    exports=frozenset({Symbol(name="connect", kind="function")}),
    call_count=1,
)


# layer-direction


def test_business_importing_infrastructure_is_an_error() -> None:
    facts = [_facts("business/order.py", ("infra.db", 2)), _INFRA_DB]

    [violation] = _only(_evaluate(facts), "layer-direction")

    assert violation.severity is Severity.ERROR
    assert violation.category is Category.DIRECTION
    assert violation.path == "business/order.py"
    assert violation.line_range == (2, 2)
    assert violation.message == (
        "business module imports infra/db.py (infrastructure); "
        "business may depend on: contracts"
    )


def test_allowed_and_same_layer_edges_pass() -> None:
    facts = [
        _facts("infra/api.py", ("business.order", 1), ("infra.db", 2)),
        _facts("business/order.py", ("contracts.store", 1)),
        _facts("contracts/store.py"),
        _INFRA_DB,
    ]

    assert _only(_evaluate(facts), "layer-direction") == []


def test_type_only_target_downgrades_to_warning() -> None:
    types_module = _facts(
        "infra/types.py",
        exports=frozenset(
            {Symbol(name="Row", kind="interface"), Symbol(name="LIMIT", kind="constant")}
        ),
    )
    facts = [_facts("business/order.py", ("infra.types", 3)), types_module]

    [violation] = _only(_evaluate(facts), "layer-direction")

    assert violation.severity is Severity.WARNING
    assert "(type-only dependency)" in violation.message


def test_type_only_threshold_is_configurable() -> None:
    types_module = _facts(
        "infra/types.py",
        exports=frozenset({Symbol(name="Row", kind="interface")}),
        call_count=2,
    )
    facts = [_facts("business/order.py", ("infra.types", 3)), types_module]

    strict = _only(_evaluate(facts), "layer-direction")
    relaxed = _only(_evaluate(facts, {"type_only": {"max_calls": 2}}), "layer-direction")

    assert strict[0].severity is Severity.ERROR
    assert relaxed[0].severity is Severity.WARNING


def test_severity_override_regrades_primary_severity_only() -> None:
    types_module = _facts(
        "infra/types.py",
        exports=frozenset({Symbol(name="Row", kind="interface")}),
    )
    facts = [
        _facts("business/order.py", ("infra.db", 2), ("infra.types", 3)),
        _INFRA_DB,
        types_module,
    ]

    violations = _only(
        _evaluate(facts, {"severity": {"layer-direction": "info"}}), "layer-direction"
    )

    assert [(v.line_range, v.severity) for v in violations] == [
        ((3, 3), Severity.WARNING),
        ((2, 2), Severity.INFO),
    ]


def test_severity_off_disables_the_rule() -> None:
    facts = [_facts("business/order.py", ("infra.db", 2)), _INFRA_DB]

    violations = _evaluate(facts, {"severity": {"layer-direction": "off"}})

    assert _only(violations, "layer-direction") == []


def test_layer_without_rule_is_unrestricted() -> None:
    config = {
        "layers": {
            "layer": [
                {"name": "core", "globs": ["core/*"]},
                {"name": "ui", "globs": ["ui/*"]},
            ],
            "rules": [{"from": "ui", "to": ["core"]}],
        }
    }
    facts = [_facts("core/a.py", ("ui.b", 1)), _facts("ui/b.py", ("core.a", 1))]

    violations = _evaluate(facts, {**config, "cycles": {"allow": [["core/a.py", "ui/b.py"]]}})

    assert violations == []


# layer-unclassified


def test_unclassified_modules_warn_once_each() -> None:
    facts = [_facts("main.py", ("business.order", 1)), _facts("business/order.py")]

    [violation] = _only(_evaluate(facts), "layer-unclassified")

    assert violation.path == "main.py"
    assert violation.severity is Severity.WARNING
    assert violation.line_range is None


def test_unclassified_ignore_suppresses_warning() -> None:
    config = {
        "layers": {
            "layer": [{"name": "core", "globs": ["core/*"]}],
            "unclassified": "ignore",
        }
    }

    assert _evaluate([_facts("main.py")], config) == []


def test_no_layers_means_no_unclassified_warnings() -> None:
    assert _evaluate([_facts("main.py")], {"layers": {}}) == []


# io-isolation


def test_io_call_in_business_layer_cites_primitive() -> None:
    facts = [
        _facts(
            "business/order.py",
            io_call_sites=frozenset(
                {
                    CallSite(name="connection.execute", primitive="*.execute", line=7),
                    CallSite(name="open", primitive="open", line=4),
                }
            ),
        )
    ]

    violations = _only(_evaluate(facts), "io-isolation")

    assert [(v.line_range, v.category) for v in violations] == [
        ((4, 4), Category.IO_ISOLATION),
        ((7, 7), Category.IO_ISOLATION),
    ]
    assert "'*.execute'" in violations[1].message


def test_io_library_import_in_business_layer() -> None:
    facts = [_facts("business/order.py", ("requests", 1), ("json", 2))]

    [violation] = _only(_evaluate(facts), "io-isolation")

    assert violation.line_range == (1, 1)
    assert "'requests'" in violation.message


def test_io_outside_isolated_layers_is_allowed() -> None:
    facts = [
        _facts(
            "infra/db.py",
            ("sqlite3", 1),
            io_call_sites=frozenset({CallSite(name="open", primitive="open", line=3)}),
        )
    ]

    assert _only(_evaluate(facts), "io-isolation") == []


def test_pure_business_module_has_no_io_violations() -> None:
    facts = [_facts("business/pricing.py", ("decimal", 1), call_count=5)]

    assert _evaluate(facts) == []


# module-boundary


_FEATURES = {"boundaries": {"feature_root": "features"}}


def test_import_of_feature_internal_is_a_violation() -> None:
    facts = [
        _facts("features/a/index.ts"),
        _facts("features/a/internal.ts"),
        _facts("features/b/handler.ts", ("../a", 1), ("../a/internal", 2)),
    ]

    [violation] = _only(_evaluate(facts, _FEATURES), "module-boundary")

    assert violation.path == "features/b/handler.ts"
    assert violation.line_range == (2, 2)
    assert violation.category is Category.BOUNDARY


def test_imports_within_a_feature_are_allowed() -> None:
    facts = [
        _facts("features/a/index.ts", ("./internal", 1)),
        _facts("features/a/internal.ts"),
    ]

    assert _only(_evaluate(facts, _FEATURES), "module-boundary") == []


def test_public_api_overrides_per_feature() -> None:
    facts = [
        _facts("features/a/api.ts"),
        _facts("features/b/handler.ts", ("../a/api", 1)),
    ]
    config = {
        "boundaries": {
            "feature_root": "features",
            "public_api_overrides": {"a": ["api.ts"]},
        }
    }

    assert _only(_evaluate(facts, _FEATURES), "module-boundary") != []
    assert _only(_evaluate(facts, config), "module-boundary") == []


def test_boundary_rule_is_off_without_feature_root() -> None:
    facts = [
        _facts("features/a/internal.ts"),
        _facts("features/b/handler.ts", ("../a/internal", 2)),
    ]

    assert _only(_evaluate(facts), "module-boundary") == []


def test_feature_of_and_public_api_helpers() -> None:
    assert feature_of("features/a/deep/x.ts", "features") == "a"
    assert feature_of("other/a/x.ts", "features") is None
    assert feature_of("top.ts", "") is None
    assert is_public_api("features/a/index.ts", "features/a", ["index.*"]) is True
    assert is_public_api("features/a/sub/index.ts", "features/a", ["index.*"]) is False


# error-handling-shape


def test_empty_handlers_are_warnings() -> None:
    facts = [
        _facts(
            "app/worker.py",
            empty_handler_sites=frozenset({CallSite(name="except", line=12)}),
        )
    ]

    [violation] = _only(_evaluate(facts), "error-handling-shape")

    assert violation.severity is Severity.WARNING
    assert violation.line_range == (12, 12)
    assert violation.message == "Empty except block silently discards the error"


# circular-dependency


def test_every_cycle_member_is_reported() -> None:
    facts = [
        _facts("app/a.py", ("app.b", 1)),
        _facts("app/b.py", ("app.c", 1)),
        _facts("app/c.py", ("app.a", 1)),
    ]

    violations = _only(_evaluate(facts), "circular-dependency")

    assert [v.path for v in violations] == ["app/a.py", "app/b.py", "app/c.py"]
    assert all(v.line_range is None for v in violations)
    assert all("app/a.py, app/b.py, app/c.py" in v.message for v in violations)


def test_allow_listed_cycle_is_not_reported() -> None:
    facts = [_facts("app/a.py", ("app.b", 1)), _facts("app/b.py", ("app.a", 1))]

    violations = _evaluate(facts, {"cycles": {"allow": [["app/a.py", "app/b.py"]]}})

    assert _only(violations, "circular-dependency") == []


# ambiguous-import


def test_ambiguous_import_is_reported_at_its_line() -> None:
    facts = [_facts("main.py", ("util", 4)), _facts("util.py"), _facts("src/util.py")]

    [violation] = _only(_evaluate(facts), "ambiguous-import")

    assert violation.path == "main.py"
    assert violation.line_range == (4, 4)
    assert "src/util.py, util.py" in violation.message


# engine


class _StaticRule:
    category = Category.CONFIGURATION
    severity = Severity.ERROR

    def __init__(self, rule_id: str, violation: Violation | None = None) -> None:
        self.rule_id = rule_id
        self._violation = violation

    def evaluate(self, graph: ModuleGraph, context: RuleContext) -> Iterator[Violation]:
        if self._violation is not None:
            yield self._violation


def _violation(path: str, line_range: tuple[int, int] | None = None) -> Violation:
    return Violation(
        rule_id="static",
        category=Category.CONFIGURATION,
        severity=Severity.ERROR,
        path=path,
        line_range=line_range,
        message="static",
    )


def test_engine_rejects_violation_outside_graph() -> None:
    rule = _StaticRule("static", _violation("ghost.py"))

    with pytest.raises(InvariantError):
        _evaluate([_facts("main.py")], rules=[rule])


def test_engine_rejects_invalid_line_range() -> None:
    rule = _StaticRule("static", _violation("main.py", (5, 2)))

    with pytest.raises(InvariantError):
        _evaluate([_facts("main.py")], rules=[rule])


def test_engine_rejects_duplicate_rule_ids() -> None:
    with pytest.raises(InvariantError):
        RuleEngine([_StaticRule("same"), _StaticRule("same")])


def test_engine_checks_deadline_before_each_rule() -> None:
    config = parse_config({})
    graph = classify_graph(build_module_graph([_facts("main.py")]), config.layers)

    with pytest.raises(DeadlineExceeded) as exc_info:
        RuleEngine().run(graph, RuleContext.from_config(config), Deadline(0))

    assert exc_info.value.phase == "rule:layer-direction"


def test_rule_order_does_not_change_results() -> None:
    facts = [
        _facts("business/order.py", ("infra.db", 2), ("requests", 3)),
        _facts("main.py", ("business.order", 1)),
        _INFRA_DB,
    ]

    forward = _evaluate(facts, rules=default_rules())
    backward = _evaluate(facts, rules=list(reversed(default_rules())))

    assert forward == backward
    assert {v.rule_id for v in forward} == {
        "layer-direction",
        "layer-unclassified",
        "io-isolation",
    }
