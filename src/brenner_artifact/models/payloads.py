"""
Per-section payload schemas.

Each section has exactly one payload model. Every field is optional at the
model level so that partial EDITs validate; the fields an entry must carry
when it is first created are listed in ``required_fields``.
"""

from __future__ import annotations

from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field

from brenner_artifact.models.sections import DeltaSection


# =============================================================================
# Base
# =============================================================================

class SectionPayload(BaseModel):
    """Common payload shape. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    required_fields: ClassVar[tuple[str, ...]] = ()
    primary_field: ClassVar[str] = "name"

    anchors: list[str] | None = Field(
        default=None, description="Transcript anchors such as §42, §42-45 or 'inference'"
    )
    replace: bool | None = Field(
        default=None, description="Replace list fields instead of union-merging them"
    )

    def content(self) -> dict:
        """Field values actually supplied, in schema order, without control keys."""
        return self.model_dump(exclude_unset=True, exclude={"anchors", "replace"})

    @classmethod
    def missing_required(cls, supplied: dict) -> list[str]:
        return [name for name in cls.required_fields if supplied.get(name) is None]


# =============================================================================
# Section payloads
# =============================================================================

class ResearchThreadPayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = ("statement",)
    primary_field: ClassVar[str] = "statement"

    statement: str | None = None
    context: str | None = None
    why_it_matters: str | None = None


class HypothesisPayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = ("name", "claim", "mechanism")
    primary_field: ClassVar[str] = "claim"

    name: str | None = None
    claim: str | None = None
    mechanism: str | None = None
    third_alternative: bool | None = None


class PredictionPayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = ("condition", "predictions")
    primary_field: ClassVar[str] = "condition"

    condition: str | None = None
    predictions: dict[str, str] | None = Field(
        default=None, description="Expected outcome keyed by hypothesis id"
    )


class EvidenceScore(BaseModel):
    """Evidence-per-week score breakdown, each axis 0-3."""

    model_config = ConfigDict(extra="forbid")

    likelihood_ratio: int = Field(default=0, ge=0, le=3)
    cost: int = Field(default=0, ge=0, le=3)
    speed: int = Field(default=0, ge=0, le=3)
    ambiguity: int = Field(default=0, ge=0, le=3)

    @property
    def total(self) -> int:
        return self.likelihood_ratio + self.cost + self.speed + self.ambiguity


class DiscriminativeTestPayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = (
        "name",
        "procedure",
        "discriminates",
        "expected_outcomes",
        "potency_check",
    )
    primary_field: ClassVar[str] = "procedure"

    name: str | None = None
    procedure: str | None = None
    discriminates: str | None = None
    expected_outcomes: dict[str, str] | None = None
    potency_check: str | None = None
    feasibility: str | None = None
    score: EvidenceScore | None = None


class AssumptionPayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = ("name", "statement", "load", "test")
    primary_field: ClassVar[str] = "statement"

    name: str | None = None
    statement: str | None = None
    load: str | None = None
    test: str | None = None
    status: Literal["unchecked", "verified", "falsified"] | None = None
    scale_check: bool | None = None
    calculation: str | None = None
    implication: str | None = None


class AnomalyPayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = ("name", "observation", "conflicts_with")
    primary_field: ClassVar[str] = "observation"

    name: str | None = None
    observation: str | None = None
    conflicts_with: list[str] | None = None
    status: Literal["active", "resolved", "deferred"] | None = None
    resolution_plan: str | None = None


class CritiquePayload(SectionPayload):
    required_fields: ClassVar[tuple[str, ...]] = ("name", "attack", "evidence", "current_status")
    primary_field: ClassVar[str] = "attack"

    name: str | None = None
    attack: str | None = None
    evidence: str | None = None
    current_status: str | None = None
    real_third_alternative: bool | None = None


# Closed mapping: every section has exactly one payload model.
PAYLOAD_MODELS: dict[DeltaSection, type[SectionPayload]] = {
    DeltaSection.RESEARCH_THREAD: ResearchThreadPayload,
    DeltaSection.HYPOTHESIS_SLATE: HypothesisPayload,
    DeltaSection.PREDICTIONS_TABLE: PredictionPayload,
    DeltaSection.DISCRIMINATIVE_TESTS: DiscriminativeTestPayload,
    DeltaSection.ASSUMPTION_LEDGER: AssumptionPayload,
    DeltaSection.ANOMALY_REGISTER: AnomalyPayload,
    DeltaSection.ADVERSARIAL_CRITIQUE: CritiquePayload,
}

# List-valued fields that union-merge on EDIT unless ``replace`` is set.
ARRAY_FIELDS: frozenset[str] = frozenset({"conflicts_with"})


def payload_model_for(section: DeltaSection) -> type[SectionPayload]:
    return PAYLOAD_MODELS[section]


# =============================================================================
# Operation payloads
# =============================================================================

class KillPayload(BaseModel):
    """KILL requires a reason; anchors may cite the refuting evidence."""

    model_config = ConfigDict(extra="forbid")

    reason: str = Field(..., min_length=1)
    anchors: list[str] | None = None


class DeletePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = None
