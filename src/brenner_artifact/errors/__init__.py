"""Merge error taxonomy."""

from brenner_artifact.errors.types import ErrorType, MergeIssue, UnsortedDeltasError

__all__ = [
    "ErrorType",
    "MergeIssue",
    "UnsortedDeltasError",
]
