"""Thread compile pipeline.

Wires the components together for one thread:

1. Classify every message by subject and order by (created_at, id)
2. Extract deltas from DELTA messages, recording invalid blocks
3. Merge the valid deltas onto an empty baseline
4. Lint and render the merged artifact

The artifact is recomputed from the full history on every call; nothing is
carried over between compiles. ``publish_compiled`` posts the rendered result
back to the thread through a ``MessageTransport``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from brenner_artifact.extraction.parser import extract
from brenner_artifact.identity import content_digest
from brenner_artifact.lint.engine import lint
from brenner_artifact.lint.rules import LintConfig
from brenner_artifact.merge.engine import (
    MergeConfig,
    TimestampedDelta,
    create_empty_artifact,
    merge,
)
from brenner_artifact.models.artifact import Artifact
from brenner_artifact.models.common import as_utc
from brenner_artifact.models.delta import Delta, ParsedMessage
from brenner_artifact.models.message import Message, sort_messages
from brenner_artifact.models.results import (
    DeltaOutcome,
    LintReport,
    MergeResult,
    OutcomeStatus,
)
from brenner_artifact.models.thread import AgentRole, MessageType
from brenner_artifact.render.markdown import render
from brenner_artifact.threads.classifier import classify
from brenner_artifact.transport import MessageTransport, SentMessage

logger = logging.getLogger(__name__)


# =============================================================================
# Results
# =============================================================================

@dataclass
class MessageParse:
    """Extraction result for one DELTA message."""

    message_id: int
    agent: str
    role: Optional[AgentRole]
    created_at: datetime
    parsed: ParsedMessage


@dataclass
class CompileReport:
    """Everything one compile produced."""

    thread_id: str
    merge: MergeResult
    messages: list[MessageParse] = field(default_factory=list)
    invalid: list[DeltaOutcome] = field(default_factory=list)
    lint: Optional[LintReport] = None
    markdown: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.merge.ok

    @property
    def artifact(self) -> Optional[Artifact]:
        return self.merge.artifact

    @property
    def outcomes(self) -> list[DeltaOutcome]:
        """Invalid blocks followed by merge outcomes."""
        return [*self.invalid, *self.merge.outcomes]

    @property
    def total_blocks(self) -> int:
        return sum(m.parsed.total_blocks for m in self.messages)

    @property
    def digest(self) -> Optional[str]:
        """sha256 of the canonical artifact JSON; equal digests mean identical artifacts."""
        return content_digest(self.artifact.to_json()) if self.artifact is not None else None


# =============================================================================
# Stages
# =============================================================================

def collect_deltas(
    messages: Sequence[Message],
    cutoff: datetime | None = None,
) -> tuple[list[TimestampedDelta], list[MessageParse], list[DeltaOutcome]]:
    """
    Extract deltas from DELTA messages in (created_at, id) order.

    Args:
        messages: Thread history
        cutoff: Ignore messages created after this instant

    Returns:
        (ordered valid deltas, per-message parse results, invalid outcomes)
    """
    limit = as_utc(cutoff) if cutoff else None
    ordered: list[TimestampedDelta] = []
    parses: list[MessageParse] = []
    invalid: list[DeltaOutcome] = []

    for message in sort_messages(list(messages)):
        if limit is not None and message.created_at > limit:
            break
        classification = classify(message.subject)
        if classification.type != MessageType.DELTA:
            continue

        agent = message.sender or classification.tag or "unknown"
        parsed = extract(message.body)
        parses.append(
            MessageParse(
                message_id=message.id,
                agent=agent,
                role=classification.role,
                created_at=message.created_at,
                parsed=parsed,
            )
        )
        for delta in parsed.deltas:
            if isinstance(delta, Delta):
                ordered.append(
                    TimestampedDelta(
                        delta=delta,
                        timestamp=message.created_at,
                        agent=agent,
                        message_id=message.id,
                    )
                )
            else:
                invalid.append(
                    DeltaOutcome(
                        status=OutcomeStatus.INVALID,
                        reason=delta.error,
                        agent=agent,
                        message_id=message.id,
                    )
                )

    return ordered, parses, invalid


def compile_thread(
    messages: Sequence[Message],
    thread_id: str | None = None,
    cutoff: datetime | None = None,
    merge_config: MergeConfig | None = None,
    lint_config: LintConfig | None = None,
) -> CompileReport:
    """
    Compile a thread's artifact from its full message history.

    The baseline is an empty artifact created at the first message's
    timestamp with version equal to the number of earlier compiles, so the
    result carries the next version number.
    """
    ordered_messages = sort_messages(list(messages))
    if cutoff is not None:
        ordered_messages = [m for m in ordered_messages if m.created_at <= as_utc(cutoff)]

    resolved_id = thread_id or next(
        (m.thread_id for m in ordered_messages if m.thread_id), "thread"
    )
    prior_compiles = sum(
        1 for m in ordered_messages if classify(m.subject).type == MessageType.COMPILED
    )
    created_at = ordered_messages[0].created_at if ordered_messages else None
    baseline = create_empty_artifact(resolved_id, created_at, version=prior_compiles)

    deltas, parses, invalid = collect_deltas(ordered_messages)
    result = merge(baseline, deltas, config=merge_config)

    report = CompileReport(thread_id=resolved_id, merge=result, messages=parses, invalid=invalid)
    if result.ok and result.artifact is not None:
        report.lint = lint(result.artifact, config=lint_config)
        report.markdown = render(result.artifact)

    logger.info(
        "Compiled %s: %d blocks, %d invalid, %d applied, %d skipped",
        resolved_id,
        report.total_blocks,
        len(invalid),
        result.applied_count,
        result.skipped_count,
    )
    return report


def publish_compiled(
    transport: MessageTransport,
    report: CompileReport,
    recipients: Sequence[str],
    ack_required: bool = False,
) -> SentMessage:
    """Post the rendered artifact to the thread as ``COMPILED: v<n> artifact``."""
    if not report.ok or report.artifact is None or report.markdown is None:
        raise ValueError(f"Cannot publish failed compile for {report.thread_id}")
    subject = f"COMPILED: v{report.artifact.metadata.version} artifact"
    return transport.send_message(
        subject=subject,
        body=report.markdown,
        thread_id=report.thread_id,
        recipients=list(recipients),
        ack_required=ack_required,
    )
