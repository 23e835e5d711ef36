"""End-to-end conformance run: scan, ingest, build, classify, evaluate, report."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from archconform.errors import ConfigError, DeadlineExceeded, InvariantError
from archconform.graph.builder import build_module_graph
from archconform.parse.ingest import IngestOptions, ingest_files
from archconform.report.reporter import (
    Report,
    RunStatus,
    build_report,
    failed_report,
)
from archconform.rules.config import load_config
from archconform.rules.context import RuleContext
from archconform.rules.engine import RuleEngine
from archconform.rules.layers import classify_graph
from archconform.scan.files import find_source_files
from archconform.utils import Deadline

if TYPE_CHECKING:
    from pathlib import Path

    from archconform.rules.config import ArchConformConfig
    from archconform.rules.engine import Rule

logger = logging.getLogger(__name__)


def _run(
    root: Path,
    config: ArchConformConfig,
    deadline: Deadline,
    rules: list[Rule] | None,
) -> Report:
    paths = [
        path.relative_to(root).as_posix()
        for path in find_source_files(
            root,
            include_patterns=config.include or None,
            exclude_patterns=config.exclude or None,
            nested_gitignore=config.nested_gitignore,
        )
    ]
    logger.info("Found %d source files under %s", len(paths), root)
    deadline.check("scan")

    facts = ingest_files(
        root,
        paths,
        IngestOptions(io_calls=config.io.call_patterns()),
        deadline=deadline,
        max_workers=config.max_workers,
    )
    deadline.check("ingestion")

    graph = build_module_graph(
        facts,
        package_roots=config.resolution.package_roots,
        aliases=config.resolution.aliases,
        cycle_allow=config.cycles.allow,
    )
    deadline.check("graph")

    graph = classify_graph(graph, config.layers)
    deadline.check("classification")

    violations = RuleEngine(rules).run(
        graph, RuleContext.from_config(config), deadline
    )
    deadline.check("rules")

    return build_report(
        violations,
        facts=facts,
        module_count=len(graph.modules),
        edge_count=len(graph.edges),
    )


def analyze(
    root: Path,
    config: ArchConformConfig | None = None,
    *,
    config_path: Path | None = None,
    deadline_seconds: float | None = None,
    rules: list[Rule] | None = None,
) -> Report:
    """Analyze a source tree and return its conformance report.

    Never raises: configuration problems, an expired deadline, broken
    invariants and unexpected exceptions each become a report with the
    matching status and no violations.

    Args:
        root: Directory to analyze
        config: Validated configuration; loaded from ``root`` when omitted
        config_path: Explicit config file, used when ``config`` is omitted
        deadline_seconds: Wall-clock budget for the whole run
        rules: Rule set to evaluate (default: every built-in rule)
    """
    deadline = Deadline(deadline_seconds)
    root = root.resolve()

    try:
        if not root.is_dir():
            msg = f"Root is not a directory: {root}"
            raise ConfigError(msg, "root")
        if config is None:
            config = load_config(root, config_path)
        report = _run(root, config, deadline, rules)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        details = {"key": exc.key} if exc.key else {}
        return failed_report(RunStatus.CONFIG_ERROR, "config", exc.message, details)
    except DeadlineExceeded as exc:
        logger.warning(
            "Deadline of %ss exceeded during %s", deadline.seconds, exc.phase
        )
        return failed_report(
            RunStatus.TIMEOUT,
            "deadline",
            exc.message,
            {"phase": exc.phase, "deadline_seconds": str(deadline.seconds)},
        )
    except InvariantError as exc:
        logger.exception("Internal invariant violated")
        return failed_report(
            RunStatus.INTERNAL_ERROR, "invariant", exc.message, exc.details
        )
    except Exception as exc:
        logger.exception("Analysis failed unexpectedly")
        return failed_report(
            RunStatus.INTERNAL_ERROR,
            "unexpected",
            f"{type(exc).__name__}: {exc}",
            {"exception": type(exc).__name__},
        )

    logger.info(
        "Analysis finished: %s, %d violations", report.status.value, len(report.violations)
    )
    return report


__all__ = ["analyze"]
