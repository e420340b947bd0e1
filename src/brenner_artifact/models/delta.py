"""
Delta models - structured edit instructions embedded in messages.

A fenced block tagged ``delta`` parses into either a ``Delta`` (valid) or an
``InvalidDelta`` carrying the verbatim block and the reason it was rejected.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from brenner_artifact.models.sections import DeltaOperation, DeltaSection


class Delta(BaseModel):
    """A validated edit instruction."""

    valid: Literal[True] = True
    operation: DeltaOperation
    section: DeltaSection
    target_id: Optional[str] = Field(
        default=None, description="Entry to mutate; None creates a new entry"
    )
    payload: dict[str, Any] = Field(
        default_factory=dict, description="Field values in schema order (reason for KILL/DELETE)"
    )
    rationale: str = ""
    anchors: List[str] = Field(default_factory=list)
    replace: bool = Field(default=False, description="Replace list fields instead of union-merge")
    raw: str = Field(default="", description="Verbatim block text")

    @property
    def creates_entry(self) -> bool:
        return self.target_id is None and self.operation in (DeltaOperation.ADD, DeltaOperation.EDIT)


class InvalidDelta(BaseModel):
    """A delta block that failed parsing or schema validation."""

    valid: Literal[False] = False
    error: str = Field(..., description="Specific reason the block was rejected")
    raw: str = Field(..., description="Verbatim block text")


DeltaOrInvalid = Union[Delta, InvalidDelta]


class ParsedMessage(BaseModel):
    """All delta blocks found in one message body."""

    total_blocks: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    deltas: List[DeltaOrInvalid] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_counts(self) -> "ParsedMessage":
        valid = sum(1 for d in self.deltas if d.valid)
        if (
            self.valid_count != valid
            or self.invalid_count != len(self.deltas) - valid
            or self.total_blocks != len(self.deltas)
        ):
            raise ValueError("ParsedMessage counts do not match its deltas")
        return self

    @classmethod
    def from_deltas(cls, deltas: list[DeltaOrInvalid]) -> "ParsedMessage":
        valid = sum(1 for d in deltas if d.valid)
        return cls(
            total_blocks=len(deltas),
            valid_count=valid,
            invalid_count=len(deltas) - valid,
            deltas=deltas,
        )

    @property
    def valid_deltas(self) -> list[Delta]:
        return [d for d in self.deltas if isinstance(d, Delta)]

    @property
    def invalid_deltas(self) -> list[InvalidDelta]:
        return [d for d in self.deltas if isinstance(d, InvalidDelta)]
