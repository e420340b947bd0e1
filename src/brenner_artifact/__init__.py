"""
Brenner Artifact

Extracts structured deltas from research-thread messages, merges them into a
versioned artifact, lints and renders the result, and derives thread status.

The merge, lint and render entry points live in their subpackages:
``brenner_artifact.merge.merge``, ``brenner_artifact.lint.lint`` and
``brenner_artifact.render.render``.
"""

__version__ = "0.1.0"

from brenner_artifact.errors.types import ErrorType, MergeIssue, UnsortedDeltasError
from brenner_artifact.extraction.parser import extract, extract_valid_deltas
from brenner_artifact.lint.report import format_lint_report_human, format_lint_report_json
from brenner_artifact.merge.engine import MergeConfig, TimestampedDelta, create_empty_artifact
from brenner_artifact.models import (
    Artifact,
    Delta,
    DeltaOperation,
    DeltaSection,
    Entry,
    InvalidDelta,
    LintReport,
    MergeResult,
    Message,
    ParsedMessage,
    SubjectClassification,
    ThreadStatus,
)
from brenner_artifact.pipeline import CompileReport, compile_thread, publish_compiled
from brenner_artifact.threads.classifier import classify
from brenner_artifact.threads.status import status
from brenner_artifact.transport import InMemoryTransport, MessageTransport

__all__ = [
    # Operations
    "extract",
    "extract_valid_deltas",
    "classify",
    "create_empty_artifact",
    "status",
    "compile_thread",
    "publish_compiled",
    "format_lint_report_human",
    "format_lint_report_json",
    # Models
    "Artifact",
    "Delta",
    "DeltaOperation",
    "DeltaSection",
    "Entry",
    "InvalidDelta",
    "LintReport",
    "MergeResult",
    "Message",
    "ParsedMessage",
    "SubjectClassification",
    "ThreadStatus",
    "MergeConfig",
    "TimestampedDelta",
    "CompileReport",
    # Transport
    "MessageTransport",
    "InMemoryTransport",
    # Errors
    "ErrorType",
    "MergeIssue",
    "UnsortedDeltasError",
]
