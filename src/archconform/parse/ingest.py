"""Source ingestion: one file to one immutable FileFacts, fanned out over a pool.

Usage:
    options = IngestOptions(io_calls=config.io.call_patterns())
    facts = ingest_files(root, paths, options, deadline=Deadline(30.0))

Each worker reads and parses its own file and returns an owned ``FileFacts``
value; nothing is shared between workers. A failed read or undecodable file
becomes a ``FileFacts`` with ``parse_ok=False`` rather than an exception.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archconform.errors import DeadlineExceeded, InvariantError
from archconform.parse.languages import DEFAULT_IO_CALLS, detect_language
from archconform.parse.models import FileFacts
from archconform.parse.python_facts import extract_python_facts
from archconform.parse.script_facts import extract_script_facts

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from archconform.parse.models import Language
    from archconform.utils import Deadline

logger = logging.getLogger(__name__)

# Default worker count: use CPU count, capped at 8 to avoid overwhelming I/O
DEFAULT_WORKERS = min(os.cpu_count() or 4, 8)


@dataclass(frozen=True)
class IngestOptions:
    """Per-language deny-list patterns used while ingesting."""

    io_calls: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_IO_CALLS)
    )

    def io_patterns(self, language: Language) -> tuple[str, ...]:
        return tuple(self.io_calls.get(language, ()))


def _failed_facts(path: str, language: Language, error: str) -> FileFacts:
    return FileFacts(path=path, language=language, parse_ok=False, error=error)


def ingest_source(path: str, content: bytes, options: IngestOptions) -> FileFacts:
    """Turn a file's bytes into FileFacts. Never raises on bad content.

    Args:
        path: Root-relative posix path of the file
        content: Raw file bytes
        options: Deny lists to apply

    Returns:
        FileFacts; ``parse_ok`` is False when the content could not be fully
        parsed, in which case the facts are best-effort partial.
    """
    language = detect_language(path)
    if language is None:
        msg = f"Unsupported source file: {path}"
        raise ValueError(msg)

    try:
        if language == "python":
            return extract_python_facts(path, content, options.io_patterns(language))
        return extract_script_facts(
            path, content, language, options.io_patterns(language)
        )
    except UnicodeDecodeError as exc:
        return _failed_facts(path, language, f"UnicodeDecodeError: {exc.reason}")
    except RecursionError:
        return _failed_facts(path, language, "RecursionError: source nests too deeply")


def ingest_file(root: Path, relative_path: str, options: IngestOptions) -> FileFacts:
    """Read one file under ``root`` and ingest it."""
    language = detect_language(relative_path)
    if language is None:
        msg = f"Unsupported source file: {relative_path}"
        raise ValueError(msg)
    try:
        content = (root / relative_path).read_bytes()
    except OSError as exc:
        return _failed_facts(relative_path, language, f"{type(exc).__name__}: {exc}")
    return ingest_source(relative_path, content, options)


def ingest_files(
    root: Path,
    relative_paths: Sequence[str],
    options: IngestOptions,
    *,
    deadline: Deadline,
    max_workers: int | None = None,
) -> tuple[FileFacts, ...]:
    """Ingest files in parallel and return their facts sorted by path.

    This is the synchronization barrier: it returns only once every file is
    ingested, so callers always see the complete set.

    Raises:
        DeadlineExceeded: If the deadline passes first. Unscheduled tasks are
            cancelled and in-flight results are discarded.
        InvariantError: If a worker raises; that is a bug, not bad input.
    """
    if not relative_paths:
        return ()

    executor = ThreadPoolExecutor(
        max_workers=max_workers or DEFAULT_WORKERS,
        thread_name_prefix="archconform-ingest",
    )
    futures = [
        executor.submit(ingest_file, root, path, options) for path in relative_paths
    ]
    try:
        done, pending = wait(
            futures, timeout=deadline.remaining(), return_when=FIRST_EXCEPTION
        )
        for path, future in zip(relative_paths, futures):
            if future in done and future.exception() is not None:
                msg = f"Ingestion worker failed on {path}"
                raise InvariantError(msg, {"path": path}) from future.exception()
        if pending:
            logger.warning(
                "Deadline exceeded with %d of %d files still pending",
                len(pending),
                len(futures),
            )
            raise DeadlineExceeded("ingestion")
        results = [future.result() for future in futures]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    failures = sum(1 for facts in results if not facts.parse_ok)
    if failures:
        logger.warning("%d of %d files did not parse cleanly", failures, len(results))
    logger.info("Ingested %d files", len(results))

    return tuple(sorted(results, key=lambda facts: facts.path))


__all__ = [
    "DEFAULT_WORKERS",
    "IngestOptions",
    "ingest_file",
    "ingest_files",
    "ingest_source",
]
