"""Exception types shared across archconform."""

from __future__ import annotations


class ArchConformError(Exception):
    """Base exception for all archconform errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(ArchConformError):
    """Raised when configuration cannot be parsed or fails validation."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, {"key": key} if key else None)
        self.key = key


class InvariantError(ArchConformError, RuntimeError):
    """Raised when an internal invariant is broken. Always fatal."""


class DeadlineExceeded(ArchConformError):
    """Raised when the run deadline passes before analysis completes."""

    def __init__(self, phase: str) -> None:
        super().__init__("Analysis deadline exceeded", {"phase": phase})
        self.phase = phase


__all__ = ["ArchConformError", "ConfigError", "DeadlineExceeded", "InvariantError"]
