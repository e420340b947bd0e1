"""Subject classification and derived thread status."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Subject-line message types."""

    KICKOFF = "kickoff"
    DELTA = "delta"
    COMPILED = "compiled"
    CRITIQUE = "critique"
    ACK = "ack"
    CLAIM = "claim"
    HANDOFF = "handoff"
    BLOCKED = "blocked"
    QUESTION = "question"
    INFO = "info"
    UNKNOWN = "unknown"


class AgentRole(str, Enum):
    """Roles a DELTA message can be tagged with."""

    HYPOTHESIS_GENERATOR = "hypothesis_generator"
    TEST_DESIGNER = "test_designer"
    ADVERSARIAL_CRITIC = "adversarial_critic"


class ThreadPhase(str, Enum):
    NOT_STARTED = "not_started"
    AWAITING_RESPONSES = "awaiting_responses"
    PARTIALLY_COMPLETE = "partially_complete"
    AWAITING_COMPILATION = "awaiting_compilation"
    COMPILED = "compiled"
    IN_CRITIQUE = "in_critique"
    CLOSED = "closed"


class SubjectClassification(BaseModel):
    """Result of classifying one subject line."""

    type: MessageType
    role: Optional[AgentRole] = None
    version: Optional[int] = Field(default=None, description="COMPILED version number")
    tag: Optional[str] = Field(default=None, description="Raw bracketed DELTA tag")


class RoleStatus(BaseModel):
    role: AgentRole
    completed: bool = False
    contributors: List[str] = Field(default_factory=list)
    latest_delta_id: Optional[int] = None
    last_updated: Optional[datetime] = None


class ArtifactInfo(BaseModel):
    """Pointer to the latest COMPILED message."""

    message_id: int
    version: int
    compiled_at: datetime
    compiled_by: Optional[str] = None
    contributors: List[str] = Field(default_factory=list)


class AckStatus(BaseModel):
    message_id: Optional[int] = Field(default=None, description="Latest ack-required message")
    pending_count: int = 0
    awaiting_from: List[str] = Field(default_factory=list)
    acknowledged_by: List[str] = Field(default_factory=list)


class ThreadStats(BaseModel):
    total_messages: int = 0
    total_deltas: int = 0
    total_critiques: int = 0
    total_acks: int = 0
    participants: List[str] = Field(default_factory=list)


class ThreadStatus(BaseModel):
    """Derived, non-persisted view of where a thread stands."""

    thread_id: Optional[str] = None
    round: int = 0
    phase: ThreadPhase = ThreadPhase.NOT_STARTED
    roles: Dict[AgentRole, RoleStatus] = Field(default_factory=dict)
    deltas_in_current_round: int = 0
    critiques_in_current_round: int = 0
    latest_artifact: Optional[ArtifactInfo] = None
    acks: AckStatus = Field(default_factory=AckStatus)
    kickoff_id: Optional[int] = None
    is_complete: bool = False
    stats: ThreadStats = Field(default_factory=ThreadStats)
    summary: str = ""
