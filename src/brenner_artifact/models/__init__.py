"""Data models for messages, deltas, artifacts and reports."""

from brenner_artifact.models.artifact import (
    ARTIFACT_STATUSES,
    Artifact,
    ArtifactMetadata,
    Contributor,
    Entry,
    Provenance,
)
from brenner_artifact.models.delta import Delta, DeltaOrInvalid, InvalidDelta, ParsedMessage
from brenner_artifact.models.message import Message, sort_messages
from brenner_artifact.models.payloads import (
    ARRAY_FIELDS,
    PAYLOAD_MODELS,
    AnomalyPayload,
    AssumptionPayload,
    CritiquePayload,
    DeletePayload,
    DiscriminativeTestPayload,
    EvidenceScore,
    HypothesisPayload,
    KillPayload,
    PredictionPayload,
    ResearchThreadPayload,
    SectionPayload,
    payload_model_for,
)
from brenner_artifact.models.results import (
    DeltaOutcome,
    LintIssue,
    LintReport,
    LintSeverity,
    LintSummary,
    MergeResult,
    OutcomeStatus,
)
from brenner_artifact.models.sections import (
    SECTION_ORDER,
    SECTION_TITLES,
    DeltaOperation,
    DeltaSection,
)
from brenner_artifact.models.thread import (
    AckStatus,
    AgentRole,
    ArtifactInfo,
    MessageType,
    RoleStatus,
    SubjectClassification,
    ThreadPhase,
    ThreadStats,
    ThreadStatus,
)

__all__ = [
    # Sections
    "DeltaOperation",
    "DeltaSection",
    "SECTION_ORDER",
    "SECTION_TITLES",
    # Messages
    "Message",
    "sort_messages",
    # Deltas
    "Delta",
    "InvalidDelta",
    "DeltaOrInvalid",
    "ParsedMessage",
    # Payloads
    "SectionPayload",
    "ResearchThreadPayload",
    "HypothesisPayload",
    "PredictionPayload",
    "DiscriminativeTestPayload",
    "EvidenceScore",
    "AssumptionPayload",
    "AnomalyPayload",
    "CritiquePayload",
    "KillPayload",
    "DeletePayload",
    "PAYLOAD_MODELS",
    "ARRAY_FIELDS",
    "payload_model_for",
    # Artifact
    "Artifact",
    "ArtifactMetadata",
    "Contributor",
    "Entry",
    "Provenance",
    "ARTIFACT_STATUSES",
    # Results
    "DeltaOutcome",
    "OutcomeStatus",
    "MergeResult",
    "LintIssue",
    "LintReport",
    "LintSeverity",
    "LintSummary",
    # Thread
    "MessageType",
    "AgentRole",
    "ThreadPhase",
    "SubjectClassification",
    "RoleStatus",
    "ArtifactInfo",
    "AckStatus",
    "ThreadStats",
    "ThreadStatus",
]
