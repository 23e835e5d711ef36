"""Evaluation context shared by all rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archconform.rules.layers import build_allowed_deps

if TYPE_CHECKING:
    from archconform.rules.config import ArchConformConfig


@dataclass(frozen=True)
class RuleContext:
    """Validated configuration handed to every rule, plus derived lookups."""

    config: ArchConformConfig
    allowed_targets: dict[str, set[str]] = field(default_factory=dict)
    isolated_layers: frozenset[str] = frozenset()
    io_import_patterns: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: ArchConformConfig) -> RuleContext:
        return cls(
            config=config,
            allowed_targets=build_allowed_deps(config.layers),
            isolated_layers=config.layers.isolated_layers(),
            io_import_patterns=config.io.import_patterns(),
        )


__all__ = ["RuleContext"]
