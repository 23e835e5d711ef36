"""Report aggregation and output."""

from archconform.report.reporter import (
    EXIT_CODES,
    ParseFailure,
    Report,
    RunError,
    RunStatus,
    build_report,
    dump_report,
    failed_report,
    render_text,
    write_report,
)

__all__ = [
    "EXIT_CODES",
    "ParseFailure",
    "Report",
    "RunError",
    "RunStatus",
    "build_report",
    "dump_report",
    "failed_report",
    "render_text",
    "write_report",
]
