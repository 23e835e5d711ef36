"""Determinism verification for archconform."""

from archconform.verify.verify import DeterminismResult, verify_determinism

__all__ = ["DeterminismResult", "verify_determinism"]
