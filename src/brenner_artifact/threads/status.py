"""
Thread status aggregation.

Derives round, phase, per-role completion, pending acknowledgements and the
latest compiled-artifact pointer from a thread's raw message history. The
derivation is read-only: nothing is cached between calls.

Rounds:
    round = number of COMPILED messages. The current round is everything
    after the most recent COMPILED message (or the whole thread before the
    first compile). Role completion only counts DELTA messages in the
    current round.

Phases:
    not_started           no kickoff, delta or compile yet
    awaiting_responses    round 0, no expected role has delivered
    partially_complete    round 0, some expected roles have delivered
    awaiting_compilation  round 0 with every role in, or new deltas since the last compile
    compiled              nothing new since the last compile
    in_critique           critiques since the last compile
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from brenner_artifact.models.message import Message, sort_messages
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
from brenner_artifact.settings import get_settings
from brenner_artifact.threads.classifier import classify

logger = logging.getLogger(__name__)

Classified = list[tuple[Message, SubjectClassification]]


def _classify_all(messages: Iterable[Message]) -> Classified:
    return [(m, classify(m.subject)) for m in sort_messages(list(messages))]


def _last_compile_index(classified: Classified) -> int:
    for index in range(len(classified) - 1, -1, -1):
        if classified[index][1].type == MessageType.COMPILED:
            return index
    return -1


def _unique(names: Iterable[str | None]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.append(name)
    return seen


# =============================================================================
# Round helpers
# =============================================================================

def messages_in_current_round(messages: Sequence[Message]) -> list[Message]:
    """DELTA and CRITIQUE messages after the most recent compile, in order."""
    classified = _classify_all(messages)
    start = _last_compile_index(classified) + 1
    return [
        m
        for m, c in classified[start:]
        if c.type in (MessageType.DELTA, MessageType.CRITIQUE)
    ]


def delta_messages_for_current_round(messages: Sequence[Message]) -> list[Message]:
    """DELTA messages after the most recent compile, in order."""
    classified = _classify_all(messages)
    start = _last_compile_index(classified) + 1
    return [m for m, c in classified[start:] if c.type == MessageType.DELTA]


# =============================================================================
# Acknowledgements
# =============================================================================

def _ack_status(classified: Classified, implicit_ack: bool) -> AckStatus:
    source_index = None
    for index in range(len(classified) - 1, -1, -1):
        if classified[index][0].ack_required:
            source_index = index
            break
    if source_index is None:
        return AckStatus()

    source = classified[source_index][0]
    sender = (source.sender or "").lower()
    recipients = [r for r in source.recipients if r.lower() != sender]

    acked: set[str] = set()
    for message, classification in classified[source_index + 1:]:
        if not message.sender:
            continue
        if message.reply_to is not None and message.reply_to != source.id:
            continue
        if classification.type == MessageType.ACK or implicit_ack:
            acked.add(message.sender.lower())

    awaiting = [r for r in recipients if r.lower() not in acked]
    acknowledged = [r for r in recipients if r.lower() in acked]
    return AckStatus(
        message_id=source.id,
        pending_count=len(awaiting),
        awaiting_from=awaiting,
        acknowledged_by=acknowledged,
    )


# =============================================================================
# Status
# =============================================================================

def _derive_phase(
    *,
    has_kickoff: bool,
    round_number: int,
    completed_roles: int,
    expected_roles: int,
    deltas_in_round: int,
    critiques_in_round: int,
) -> ThreadPhase:
    if round_number == 0:
        if not has_kickoff and deltas_in_round == 0:
            return ThreadPhase.NOT_STARTED
        if completed_roles == 0:
            return ThreadPhase.AWAITING_RESPONSES
        if completed_roles < expected_roles:
            return ThreadPhase.PARTIALLY_COMPLETE
        return ThreadPhase.AWAITING_COMPILATION

    if critiques_in_round > 0:
        return ThreadPhase.IN_CRITIQUE
    if deltas_in_round > 0:
        return ThreadPhase.AWAITING_COMPILATION
    return ThreadPhase.COMPILED


def status(
    messages: Sequence[Message],
    expected_roles: Sequence[AgentRole | str] | None = None,
    implicit_ack: bool | None = None,
) -> ThreadStatus:
    """
    Compute the status of a thread from its full message history.

    Args:
        messages: Thread messages in any order; sorted here by (created_at, id)
        expected_roles: Roles that must deliver a delta each round (default from settings)
        implicit_ack: Count any reply after the ack-required message as an ack

    Returns:
        ThreadStatus
    """
    settings = get_settings()
    expected = [AgentRole(r) for r in (expected_roles or settings.expected_roles)]
    if implicit_ack is None:
        implicit_ack = settings.implicit_ack

    classified = _classify_all(messages)
    last_compile = _last_compile_index(classified)
    current = classified[last_compile + 1:]

    roles = {role: RoleStatus(role=role) for role in AgentRole}
    deltas_in_round = 0
    critiques_in_round = 0
    for message, classification in current:
        if classification.type == MessageType.CRITIQUE:
            critiques_in_round += 1
        if classification.type != MessageType.DELTA:
            continue
        deltas_in_round += 1
        if classification.role is None:
            logger.debug("DELTA message %s has unrecognised tag %r", message.id, classification.tag)
            continue
        role_status = roles[classification.role]
        role_status.completed = True
        if message.sender and message.sender not in role_status.contributors:
            role_status.contributors.append(message.sender)
        role_status.latest_delta_id = message.id
        role_status.last_updated = message.created_at

    kickoff = next((m for m, c in classified if c.type == MessageType.KICKOFF), None)
    round_number = sum(1 for _, c in classified if c.type == MessageType.COMPILED)

    latest_artifact = None
    if last_compile >= 0:
        compiled, compiled_class = classified[last_compile]
        latest_artifact = ArtifactInfo(
            message_id=compiled.id,
            version=compiled_class.version if compiled_class.version is not None else round_number,
            compiled_at=compiled.created_at,
            compiled_by=compiled.sender,
            contributors=_unique(
                m.sender for m, c in classified[:last_compile] if c.type == MessageType.DELTA
            ),
        )

    completed = sum(1 for role in expected if roles[role].completed)
    phase = _derive_phase(
        has_kickoff=kickoff is not None,
        round_number=round_number,
        completed_roles=completed,
        expected_roles=len(expected),
        deltas_in_round=deltas_in_round,
        critiques_in_round=critiques_in_round,
    )
    acks = _ack_status(classified, implicit_ack)

    stats = ThreadStats(
        total_messages=len(classified),
        total_deltas=sum(1 for _, c in classified if c.type == MessageType.DELTA),
        total_critiques=sum(1 for _, c in classified if c.type == MessageType.CRITIQUE),
        total_acks=sum(1 for _, c in classified if c.type == MessageType.ACK),
        participants=_unique(m.sender for m, _ in classified),
    )

    summary = f"{completed}/{len(expected)} roles | Phase: {phase.value.replace('_', ' ')}"
    if acks.pending_count:
        summary += f" | {acks.pending_count} pending acks"

    return ThreadStatus(
        thread_id=next((m.thread_id for m, _ in classified if m.thread_id), None),
        round=round_number,
        phase=phase,
        roles=roles,
        deltas_in_current_round=deltas_in_round,
        critiques_in_current_round=critiques_in_round,
        latest_artifact=latest_artifact,
        acks=acks,
        kickoff_id=kickoff.id if kickoff else None,
        is_complete=all(roles[role].completed for role in expected),
        stats=stats,
        summary=summary,
    )


# =============================================================================
# Convenience
# =============================================================================

def pending_roles(thread_status: ThreadStatus) -> list[AgentRole]:
    return [role for role, rs in thread_status.roles.items() if not rs.completed]


def thread_needs_attention(thread_status: ThreadStatus) -> bool:
    """Pending acks, or a phase that is waiting on someone."""
    return thread_status.acks.pending_count > 0 or thread_status.phase not in (
        ThreadPhase.COMPILED,
        ThreadPhase.CLOSED,
        ThreadPhase.NOT_STARTED,
    )


def format_thread_status_summary(thread_status: ThreadStatus) -> str:
    lines = [
        f"Thread: {thread_status.thread_id or '(no thread)'}",
        f"Round: {thread_status.round}",
        f"Phase: {thread_status.phase.value.replace('_', ' ')}",
        "",
        "Roles:",
    ]
    for role, role_status in thread_status.roles.items():
        mark = "x" if role_status.completed else " "
        who = f" ({', '.join(role_status.contributors)})" if role_status.contributors else ""
        lines.append(f"  [{mark}] {role.value}{who}")
    lines.append("")

    if thread_status.acks.pending_count:
        lines.append(f"Awaiting ACK from: {', '.join(thread_status.acks.awaiting_from)}")
        lines.append("")

    artifact = thread_status.latest_artifact
    if artifact:
        lines.append(f"Compiled artifact: v{artifact.version}")
        lines.append(f"  Contributors: {', '.join(artifact.contributors)}")
        lines.append(f"  Compiled at: {artifact.compiled_at.isoformat()}")
        lines.append("")

    stats = thread_status.stats
    lines.append(
        f"Stats: {stats.total_deltas} deltas, {stats.total_critiques} critiques, "
        f"{stats.total_messages} total messages"
    )
    lines.append(f"Participants: {', '.join(stats.participants)}")
    return "\n".join(lines)
