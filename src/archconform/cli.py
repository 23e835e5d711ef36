"""Command-line interface for archconform."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from archconform.analyzer import analyze
from archconform.report.reporter import (
    EXIT_CODES,
    RunStatus,
    dump_report,
    render_text,
    write_report,
)
from archconform.verify.verify import verify_determinism


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Source tree root (default: .)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Config file (default: <root>/archconform.toml when present)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for per-file detail)",
    )


def _positive_float(value: str) -> float:
    seconds = float(value)
    if seconds <= 0:
        msg = f"must be positive: {value}"
        raise argparse.ArgumentTypeError(msg)
    return seconds


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="archconform")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check", help="Check a source tree against its architecture policy"
    )
    _add_common_args(check_parser)
    check_parser.add_argument(
        "--deadline",
        type=_positive_float,
        default=None,
        help="Wall-clock budget in seconds (default: unbounded)",
    )
    check_parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Report format (default: text)",
    )
    check_parser.add_argument(
        "--output",
        default=None,
        help="Write the JSON report to this file as well",
    )

    verify_parser = subparsers.add_parser(
        "verify", help="Verify that two runs produce identical reports"
    )
    _add_common_args(verify_parser)

    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _resolve_config_path(config: str | None) -> Path | None:
    if config is None:
        return None
    return Path(config).expanduser().resolve()


def _handle_check(
    root: Path,
    config_path: Path | None,
    deadline: float | None,
    output_format: str,
    output: str | None,
) -> int:
    report = analyze(root, config_path=config_path, deadline_seconds=deadline)

    if output is not None:
        write_report(Path(output).expanduser(), report)

    if output_format == "json":
        sys.stdout.write(dump_report(report).decode("utf-8") + "\n")
    else:
        sys.stdout.write(render_text(report) + "\n")
    return report.exit_code


def _handle_verify(root: Path, config_path: Path | None) -> int:
    result = verify_determinism(root=root, config_path=config_path)
    if not result.ok:
        sys.stderr.write(f"first: {result.first_digest}\n")
        sys.stderr.write(f"second: {result.second_digest}\n")
        sys.stderr.write(f"first difference at line {result.first_difference()}\n")
        return EXIT_CODES[RunStatus.VIOLATIONS_FOUND]
    return EXIT_CODES[RunStatus.CLEAN]


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)
    root = Path(args.root).expanduser().resolve()
    config_path = _resolve_config_path(args.config)

    if args.command == "check":
        return _handle_check(
            root, config_path, args.deadline, args.format, args.output
        )

    if args.command == "verify":
        return _handle_verify(root, config_path)

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
