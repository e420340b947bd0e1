"""
Error taxonomy for delta merging.

Per-delta problems are recorded as structured issues and never raised;
the merge only aborts on a corrupted baseline. Exceptions are reserved
for caller mistakes such as handing the engine an unsorted batch.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Machine-interpretable merge issue codes."""

    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
    """Delta whose operation and target_id do not fit together; the merge skips it."""

    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
    """EDIT, DELETE or KILL referencing an entry id absent from the section."""

    TARGET_KILLED = "TARGET_KILLED"
    """EDIT addressed to an entry that has already been killed."""

    SECTION_LIMIT_EXCEEDED = "SECTION_LIMIT_EXCEEDED"
    """Creation would push a section past its active-entry limit."""

    FIELD_CONFLICT = "FIELD_CONFLICT"
    """Two agents wrote different values to the same field of the same entry."""

    BASELINE_CORRUPTION = "BASELINE_CORRUPTION"
    """Baseline artifact is structurally impossible (duplicate or misfiled ids)."""

    NO_THIRD_ALTERNATIVE = "NO_THIRD_ALTERNATIVE"
    """No active third-alternative hypothesis remains after a KILL."""

    NO_SCALE_CHECK = "NO_SCALE_CHECK"
    """No active scale-check assumption remains after a KILL."""


class MergeIssue(BaseModel):
    """Structured warning or error produced while merging."""

    error_type: ErrorType
    message: str = Field(..., description="Human-readable description")
    section: Optional[str] = None
    target_id: Optional[str] = None
    agent: Optional[str] = None
    message_id: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional context")

    def to_log_message(self) -> str:
        """Format issue for logging."""
        loc = self.section or "artifact"
        if self.target_id:
            loc = f"{loc}/{self.target_id}"
        who = f" by {self.agent}" if self.agent else ""
        return f"[{self.error_type.value}] {loc}{who}: {self.message}"


class UnsortedDeltasError(ValueError):
    """Raised when merge input is not ordered by (timestamp, message_id)."""

    def __init__(self, index: int, previous: tuple, current: tuple):
        self.index = index
        self.previous = previous
        self.current = current
        super().__init__(
            f"Deltas must be sorted by (timestamp, message_id); "
            f"item {index} {current!r} precedes item {index - 1} {previous!r}"
        )
