"""Architecture-conformance analysis for polyglot source trees."""

from archconform.analyzer import analyze
from archconform.errors import (
    ArchConformError,
    ConfigError,
    DeadlineExceeded,
    InvariantError,
)
from archconform.report.reporter import Report, RunStatus, dump_report, render_text
from archconform.rules.config import ArchConformConfig, load_config, parse_config
from archconform.rules.models import Category, Severity, Violation

__version__ = "0.1.0"

__all__ = [
    "ArchConformConfig",
    "ArchConformError",
    "Category",
    "ConfigError",
    "DeadlineExceeded",
    "InvariantError",
    "Report",
    "RunStatus",
    "Severity",
    "Violation",
    "analyze",
    "dump_report",
    "load_config",
    "parse_config",
    "render_text",
]
