"""Layer policy, configuration and architecture rules."""

from archconform.rules.config import (
    ArchConformConfig,
    ConfigError,
    LayersConfig,
    canonical_layers,
    load_config,
    parse_config,
)
from archconform.rules.context import RuleContext
from archconform.rules.engine import Rule, RuleEngine, default_rules
from archconform.rules.layers import (
    build_allowed_deps,
    classify_graph,
    classify_layer,
    is_violation,
)
from archconform.rules.models import Category, Severity, Violation

__all__ = [
    "ArchConformConfig",
    "Category",
    "ConfigError",
    "LayersConfig",
    "Rule",
    "RuleContext",
    "RuleEngine",
    "Severity",
    "Violation",
    "build_allowed_deps",
    "canonical_layers",
    "classify_graph",
    "classify_layer",
    "default_rules",
    "is_violation",
    "load_config",
    "parse_config",
]
