"""Closed vocabularies shared by deltas, artifacts and lint."""

from enum import Enum


class DeltaOperation(str, Enum):
    """Operations a delta block may request."""

    ADD = "ADD"
    EDIT = "EDIT"
    DELETE = "DELETE"
    KILL = "KILL"
    """Mark an entry as refuted. The entry stays in the artifact, struck through."""


class DeltaSection(str, Enum):
    """Artifact sections addressable by deltas."""

    RESEARCH_THREAD = "research_thread"
    HYPOTHESIS_SLATE = "hypothesis_slate"
    PREDICTIONS_TABLE = "predictions_table"
    DISCRIMINATIVE_TESTS = "discriminative_tests"
    ASSUMPTION_LEDGER = "assumption_ledger"
    ANOMALY_REGISTER = "anomaly_register"
    ADVERSARIAL_CRITIQUE = "adversarial_critique"


# Fixed rendering and iteration order.
SECTION_ORDER: tuple[DeltaSection, ...] = (
    DeltaSection.RESEARCH_THREAD,
    DeltaSection.HYPOTHESIS_SLATE,
    DeltaSection.PREDICTIONS_TABLE,
    DeltaSection.DISCRIMINATIVE_TESTS,
    DeltaSection.ASSUMPTION_LEDGER,
    DeltaSection.ANOMALY_REGISTER,
    DeltaSection.ADVERSARIAL_CRITIQUE,
)

SECTION_TITLES: dict[DeltaSection, str] = {
    DeltaSection.RESEARCH_THREAD: "Research Thread",
    DeltaSection.HYPOTHESIS_SLATE: "Hypothesis Slate",
    DeltaSection.PREDICTIONS_TABLE: "Predictions Table",
    DeltaSection.DISCRIMINATIVE_TESTS: "Discriminative Tests",
    DeltaSection.ASSUMPTION_LEDGER: "Assumption Ledger",
    DeltaSection.ANOMALY_REGISTER: "Anomaly Register",
    DeltaSection.ADVERSARIAL_CRITIQUE: "Adversarial Critique",
}
