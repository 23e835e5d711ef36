from __future__ import annotations

import logging
import tomllib
from typing import TYPE_CHECKING, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from archconform.errors import ConfigError
from archconform.graph.algos import find_cycles
from archconform.parse.languages import DEFAULT_IO_CALLS, DEFAULT_IO_IMPORTS
from archconform.rules.layers import build_allowed_deps
from archconform.rules.models import RULE_IDS, Severity

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "archconform.toml"

UnclassifiedBehavior = Literal["warn", "ignore"]
LanguageName = Literal["python", "javascript", "typescript"]
SymbolKindName = Literal[
    "function", "class", "interface", "type", "constant", "variable", "unknown"
]
SeverityOverride = Literal["info", "warning", "error", "off"]


class PolicyError(ValueError):
    """A layer policy problem tied to a specific config key."""

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _check_glob(pattern: str) -> None:
    if not pattern.strip():
        msg = "glob pattern must not be empty"
        raise ValueError(msg)
    if pattern.count("[") != pattern.count("]"):
        msg = f"glob pattern {pattern!r} has unbalanced brackets"
        raise ValueError(msg)
    if pattern.startswith("/"):
        msg = f"glob pattern {pattern!r} must be relative to the analyzed root"
        raise ValueError(msg)


class LayerDef(_StrictModel):
    """Definition of a single architectural layer."""

    name: str = Field(
        min_length=1,
        description="Layer name (e.g., 'infrastructure', 'business')",
    )
    globs: list[str] = Field(
        min_length=1,
        description="Glob patterns for files belonging to this layer",
    )

    @field_validator("globs")
    @classmethod
    def validate_globs(cls, v: list[str]) -> list[str]:
        for pattern in v:
            _check_glob(pattern)
        return v


class LayerRule(_StrictModel):
    """Allowed dependencies from one layer to others."""

    from_layer: str = Field(alias="from", description="Source layer name")
    to: list[str] = Field(
        default_factory=list,
        description="List of layer names this layer may depend on",
    )


class LayersConfig(_StrictModel):
    """Architectural layer policy: classification globs and allowed targets.

    Validated once, when it is built: every layer named by a rule or by
    ``io_isolated`` must be defined, and the allowed-target relation must
    be acyclic (a layer depending on itself is not a cycle).
    """

    layer: list[LayerDef] = Field(
        default_factory=list,
        description="Layer definitions (first match wins)",
    )
    rules: list[LayerRule] = Field(
        default_factory=list,
        description="Allowed dependency rules between layers",
    )
    unclassified: UnclassifiedBehavior = Field(
        default="warn",
        description="Report files matching no layer glob once, or ignore them",
    )
    io_isolated: list[str] | None = Field(
        default=None,
        description=(
            "Layers whose modules must not perform I/O "
            "(default: business, when defined)"
        ),
    )

    @model_validator(mode="after")
    def validate_policy(self) -> LayersConfig:
        names: set[str] = set()
        for position, layer_def in enumerate(self.layer):
            if layer_def.name in names:
                msg = f"duplicate layer name {layer_def.name!r}"
                raise PolicyError(msg, f"layer[{position}].name")
            names.add(layer_def.name)

        for position, rule in enumerate(self.rules):
            if rule.from_layer not in names:
                msg = f"unknown layer {rule.from_layer!r}"
                raise PolicyError(msg, f"rules[{position}].from")
            for target in rule.to:
                if target not in names:
                    msg = f"unknown layer {target!r}"
                    raise PolicyError(msg, f"rules[{position}].to")

        io_names = set(self.io_isolated or ())
        if not io_names <= names:
            unknown = ", ".join(sorted(io_names - names))
            msg = f"unknown layer(s) {unknown}"
            raise PolicyError(msg, "io_isolated")

        relation = {
            source: sorted(target for target in targets if target != source)
            for source, targets in self.allowed_targets().items()
        }
        cycles = find_cycles(relation)
        if cycles:
            cycle = " -> ".join(cycles[0])
            msg = f"allowed-target relation is cyclic ({cycle})"
            raise PolicyError(msg, "rules")

        return self

    def allowed_targets(self) -> dict[str, set[str]]:
        return build_allowed_deps(self)

    def isolated_layers(self) -> frozenset[str]:
        if self.io_isolated is not None:
            return frozenset(self.io_isolated)
        if any(layer_def.name == "business" for layer_def in self.layer):
            return frozenset({"business"})
        return frozenset()


def canonical_layers() -> LayersConfig:
    """The canonical policy used when no ``[layers]`` section is configured.

    infrastructure may depend on contracts and business logic; business logic
    only on contracts; contracts on nothing.
    """
    return LayersConfig.model_validate(
        {
            "layer": [
                {
                    "name": "contracts",
                    "globs": ["contracts/*", "*/contracts/*"],
                },
                {
                    "name": "infrastructure",
                    "globs": [
                        "infra/*",
                        "*/infra/*",
                        "infrastructure/*",
                        "*/infrastructure/*",
                    ],
                },
                {
                    "name": "business",
                    "globs": ["business/*", "*/business/*", "domain/*", "*/domain/*"],
                },
            ],
            "rules": [
                {"from": "infrastructure", "to": ["contracts", "business"]},
                {"from": "business", "to": ["contracts"]},
                {"from": "contracts", "to": []},
            ],
            "io_isolated": ["business"],
        }
    )


class ResolutionConfig(_StrictModel):
    """Root mapping used to resolve non-relative import specifiers."""

    package_roots: list[str] = Field(
        default_factory=lambda: ["", "src"],
        description="Directories tried for absolute/package specifiers",
    )
    aliases: dict[str, str] = Field(
        default_factory=dict,
        description="Specifier prefix -> directory (e.g. '@/' -> 'src/')",
    )


class BoundariesConfig(_StrictModel):
    """Feature directories and their public-API entry files."""

    feature_root: str | None = Field(
        default=None,
        description=(
            "Directory whose immediate children are features "
            "('' = the analyzed root; unset disables the boundary rule)"
        ),
    )
    public_api: list[str] = Field(
        default_factory=lambda: ["index.*", "__init__.py"],
        description="File name patterns of a feature's public API",
    )
    public_api_overrides: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Per-feature public API patterns: feature -> patterns",
    )

    @field_validator("public_api")
    @classmethod
    def validate_public_api(cls, v: list[str]) -> list[str]:
        for pattern in v:
            _check_glob(pattern)
        return v

    def patterns_for(self, feature: str) -> list[str]:
        return self.public_api_overrides.get(feature, self.public_api)


class CyclesConfig(_StrictModel):
    allow: list[tuple[str, str]] = Field(
        default_factory=list,
        description="Path pairs whose mutual dependency is accepted",
    )


class IoConfig(_StrictModel):
    """Deny lists of I/O primitives, per language."""

    calls: dict[LanguageName, list[str]] = Field(
        default_factory=dict,
        description="Call-site patterns; a language listed here replaces its defaults",
    )
    imports: dict[LanguageName, list[str]] = Field(
        default_factory=dict,
        description="External import patterns; a language listed here replaces its defaults",
    )

    def call_patterns(self) -> dict[str, tuple[str, ...]]:
        patterns: dict[str, tuple[str, ...]] = dict(DEFAULT_IO_CALLS)
        patterns.update({lang: tuple(v) for lang, v in self.calls.items()})
        return patterns

    def import_patterns(self) -> dict[str, tuple[str, ...]]:
        patterns: dict[str, tuple[str, ...]] = dict(DEFAULT_IO_IMPORTS)
        patterns.update({lang: tuple(v) for lang, v in self.imports.items()})
        return patterns


class TypeOnlyConfig(_StrictModel):
    """Threshold for treating a dependency target as type-only coupling."""

    max_calls: int = Field(
        default=0,
        ge=0,
        description="Most call sites a type-only module may contain",
    )
    kinds: list[SymbolKindName] = Field(
        default_factory=lambda: ["interface", "type", "constant"],
        description="Export kinds counted as pure data/contract declarations",
    )


class ArchConformConfig(_StrictModel):
    """Configuration for an archconform run."""

    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to include (empty = all source files)",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns for vendored/generated files to ignore",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )
    max_workers: int | None = Field(
        default=None,
        ge=1,
        description="Ingestion worker threads (default: CPU count, at most 8)",
    )
    layers: LayersConfig = Field(
        default_factory=canonical_layers,
        description="Architectural layer classification and rules",
    )
    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    boundaries: BoundariesConfig = Field(default_factory=BoundariesConfig)
    cycles: CyclesConfig = Field(default_factory=CyclesConfig)
    io: IoConfig = Field(default_factory=IoConfig)
    type_only: TypeOnlyConfig = Field(default_factory=TypeOnlyConfig)
    severity: dict[str, SeverityOverride] = Field(
        default_factory=dict,
        description="Per-rule severity override; 'off' disables the rule",
    )

    @field_validator("include", "exclude")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            _check_glob(pattern)
        return v

    @field_validator("severity")
    @classmethod
    def validate_severity(cls, v: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(v) - RULE_IDS)
        if unknown:
            msg = (
                f"unknown rule id(s) {', '.join(unknown)}. "
                f"Valid ids: {', '.join(sorted(RULE_IDS))}"
            )
            raise ValueError(msg)
        return v

    def severity_for(self, rule_id: str, default: Severity) -> Severity | None:
        """Effective severity of a rule, or None when it is switched off."""
        override = self.severity.get(rule_id)
        if override is None:
            return default
        if override == "off":
            return None
        return Severity(override)


def _format_loc(loc: tuple[int | str, ...]) -> str:
    key = ""
    for part in loc:
        if isinstance(part, int):
            key += f"[{part}]"
        else:
            key += f".{part}" if key else str(part)
    return key


def _config_error(exc: ValidationError, source: str) -> ConfigError:
    first = exc.errors()[0]
    key = _format_loc(tuple(first["loc"]))
    cause = first.get("ctx", {}).get("error")
    if isinstance(cause, PolicyError):
        key = f"{key}.{cause.key}" if key else cause.key
        detail = str(cause)
    else:
        detail = first["msg"]
    msg = f"Invalid config in {source}: {key or '<root>'}: {detail}"
    return ConfigError(msg, key or None)


def parse_config(data: dict[str, Any], *, source: str = "<config>") -> ArchConformConfig:
    """Validate raw config data, raising ConfigError naming the offending key."""
    try:
        return ArchConformConfig.model_validate(data)
    except ValidationError as exc:
        raise _config_error(exc, source) from exc


def load_config(root: Path, config_path: Path | None = None) -> ArchConformConfig:
    """Load configuration from archconform.toml if it exists."""
    path = config_path if config_path is not None else root / CONFIG_FILENAME

    if not path.is_file():
        if config_path is not None:
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        logger.debug("No %s under %s; using defaults", CONFIG_FILENAME, root)
        return ArchConformConfig()

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except UnicodeDecodeError as e:
        msg = f"Config file {path} is not valid UTF-8: {e.reason}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e

    return parse_config(data, source=str(path))


__all__ = [
    "CONFIG_FILENAME",
    "ArchConformConfig",
    "BoundariesConfig",
    "ConfigError",
    "CyclesConfig",
    "IoConfig",
    "LayerDef",
    "LayerRule",
    "LayersConfig",
    "PolicyError",
    "ResolutionConfig",
    "TypeOnlyConfig",
    "canonical_layers",
    "load_config",
    "parse_config",
]
