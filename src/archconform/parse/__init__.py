"""Parsing utilities for archconform."""

from archconform.parse.ingest import (
    IngestOptions,
    ingest_file,
    ingest_files,
    ingest_source,
)
from archconform.parse.languages import detect_language
from archconform.parse.models import CallSite, FileFacts, ImportRef, Symbol

__all__ = [
    "CallSite",
    "FileFacts",
    "ImportRef",
    "IngestOptions",
    "Symbol",
    "detect_language",
    "ingest_file",
    "ingest_files",
    "ingest_source",
]
