"""Merge and lint result containers."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from brenner_artifact.errors.types import MergeIssue
from brenner_artifact.models.artifact import Artifact
from brenner_artifact.models.sections import DeltaOperation, DeltaSection


# =============================================================================
# Merge
# =============================================================================

class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    INVALID = "invalid"


class DeltaOutcome(BaseModel):
    """What happened to one delta in a compile run."""

    status: OutcomeStatus
    reason: Optional[str] = None
    operation: Optional[DeltaOperation] = None
    section: Optional[DeltaSection] = None
    target_id: Optional[str] = None
    entry_id: Optional[str] = Field(default=None, description="Entry created or touched")
    agent: Optional[str] = None
    message_id: Optional[int] = None


class MergeResult(BaseModel):
    ok: bool
    artifact: Optional[Artifact] = None
    applied_count: int = 0
    skipped_count: int = 0
    warnings: List[MergeIssue] = Field(default_factory=list)
    errors: List[MergeIssue] = Field(default_factory=list)
    outcomes: List[DeltaOutcome] = Field(default_factory=list)


# =============================================================================
# Lint
# =============================================================================

class LintSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return {"error": 0, "warning": 1, "info": 2}[self.value]


class LintIssue(BaseModel):
    rule_id: str
    severity: LintSeverity
    message: str
    section: Optional[DeltaSection] = None
    entry_id: Optional[str] = None
    fix: Optional[str] = None


class LintSummary(BaseModel):
    errors: int = 0
    warnings: int = 0
    info: int = 0


class LintReport(BaseModel):
    valid: bool
    summary: LintSummary
    issues: List[LintIssue] = Field(default_factory=list)

    @model_validator(mode="after")
    def _valid_matches_errors(self) -> "LintReport":
        if self.valid != (self.summary.errors == 0):
            raise ValueError("LintReport.valid must equal (summary.errors == 0)")
        return self

    def by_severity(self, severity: LintSeverity) -> list[LintIssue]:
        return [issue for issue in self.issues if issue.severity == severity]
