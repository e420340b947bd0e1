"""
Delta merge engine.

Folds an ordered batch of valid deltas onto a baseline artifact:

1. Input must already be sorted by (timestamp, message_id); an unsorted batch
   raises ``UnsortedDeltasError`` instead of being re-sorted.
2. A baseline with duplicate or misfiled entry ids is the only hard failure
   (``ok=False``, no artifact).
3. Every other problem skips the offending delta with a warning and the merge
   carries on. ``applied_count + skipped_count`` always equals the batch size.

The baseline is never mutated; the merge works on a deep copy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from brenner_artifact.errors.types import ErrorType, MergeIssue, UnsortedDeltasError
from brenner_artifact.identity import (
    RESEARCH_THREAD_ID,
    next_entry_id,
    parse_entry_id,
    section_id_prefix,
    target_matches_section,
)
from brenner_artifact.models.artifact import Artifact, Contributor, Entry, Provenance
from brenner_artifact.models.common import as_utc
from brenner_artifact.models.delta import Delta
from brenner_artifact.models.payloads import ARRAY_FIELDS, payload_model_for
from brenner_artifact.models.results import DeltaOutcome, MergeResult, OutcomeStatus
from brenner_artifact.models.sections import SECTION_ORDER, DeltaOperation, DeltaSection
from brenner_artifact.settings import get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Inputs and configuration
# =============================================================================

@dataclass
class TimestampedDelta:
    """A valid delta with the ordering and attribution of the message it came from."""

    delta: Delta
    timestamp: datetime
    agent: str
    message_id: int = 0

    def __post_init__(self) -> None:
        self.timestamp = as_utc(self.timestamp)

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.message_id)


@dataclass
class MergeConfig:
    """Merge behaviour switches."""

    section_limits: dict[DeltaSection, int] = field(
        default_factory=lambda: {DeltaSection.HYPOTHESIS_SLATE: 6}
    )
    detect_field_conflicts: bool = True

    @classmethod
    def from_settings(cls) -> "MergeConfig":
        settings = get_settings()
        return cls(
            section_limits={DeltaSection.HYPOTHESIS_SLATE: settings.hypothesis_limit},
            detect_field_conflicts=settings.detect_field_conflicts,
        )


def create_empty_artifact(
    thread_id: str,
    created_at: datetime | None = None,
    version: int = 0,
) -> Artifact:
    """Empty draft artifact. ``created_at`` defaults to now (UTC)."""
    return Artifact.empty(thread_id, created_at or datetime.now(timezone.utc), version=version)


def sort_deltas(deltas: Sequence[TimestampedDelta]) -> list[TimestampedDelta]:
    """Caller-side ordering helper; ``merge`` itself never re-sorts."""
    return sorted(deltas, key=lambda d: d.sort_key)


def ensure_sorted(deltas: Sequence[TimestampedDelta]) -> None:
    for index in range(1, len(deltas)):
        previous, current = deltas[index - 1].sort_key, deltas[index].sort_key
        if current < previous:
            raise UnsortedDeltasError(index, previous, current)


# =============================================================================
# Baseline checks
# =============================================================================

def check_baseline(artifact: Artifact) -> list[MergeIssue]:
    """Structural problems that make a baseline unusable."""
    errors: list[MergeIssue] = []
    for section in SECTION_ORDER:
        seen: set[str] = set()
        entries = artifact.entries(section)
        if section == DeltaSection.RESEARCH_THREAD and len(entries) > 1:
            errors.append(
                MergeIssue(
                    error_type=ErrorType.BASELINE_CORRUPTION,
                    message=f"research_thread holds {len(entries)} entries (expected at most 1)",
                    section=section.value,
                )
            )
        for entry in entries:
            if entry.id in seen:
                errors.append(
                    MergeIssue(
                        error_type=ErrorType.BASELINE_CORRUPTION,
                        message=f"Duplicate entry id {entry.id} in {section.value}",
                        section=section.value,
                        target_id=entry.id,
                    )
                )
            seen.add(entry.id)

            if not target_matches_section(entry.id, section):
                errors.append(
                    MergeIssue(
                        error_type=ErrorType.BASELINE_CORRUPTION,
                        message=f"Entry id {entry.id} does not belong in {section.value}",
                        section=section.value,
                        target_id=entry.id,
                    )
                )
    return errors


# =============================================================================
# Merge run
# =============================================================================

class _Skip(Exception):
    """Internal signal: the current delta cannot be applied."""

    def __init__(self, error_type: ErrorType, message: str):
        super().__init__(message)
        self.error_type = error_type
        self.message = message


@dataclass
class _FieldWrite:
    agent: str
    value: Any


class _MergeRun:
    """Mutable state for one merge over a private copy of the baseline."""

    def __init__(self, artifact: Artifact, config: MergeConfig):
        self.artifact = artifact
        self.config = config
        self.warnings: list[MergeIssue] = []
        self.field_writes: dict[tuple[DeltaSection, str, str], _FieldWrite] = {}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _warn(self, item: TimestampedDelta, error_type: ErrorType, message: str, **details: Any) -> None:
        issue = MergeIssue(
            error_type=error_type,
            message=message,
            section=item.delta.section.value,
            target_id=item.delta.target_id,
            agent=item.agent,
            message_id=item.message_id,
            details=details,
        )
        logger.debug(issue.to_log_message())
        self.warnings.append(issue)

    def _provenance(self, item: TimestampedDelta) -> Provenance:
        return Provenance(
            agent=item.agent,
            timestamp=item.timestamp,
            rationale=item.delta.rationale,
            message_id=item.message_id,
        )

    def _record_write(self, item: TimestampedDelta, entry_id: str, name: str, value: Any) -> None:
        key = (item.delta.section, entry_id, name)
        previous = self.field_writes.get(key)
        if (
            self.config.detect_field_conflicts
            and previous is not None
            and previous.agent != item.agent
            and previous.value != value
        ):
            self._warn(
                item,
                ErrorType.FIELD_CONFLICT,
                f"{entry_id}.{name} set by {previous.agent} to {previous.value!r} "
                f"and by {item.agent} to {value!r}; keeping {item.agent}'s value",
                entry_id=entry_id,
                field=name,
                previous_agent=previous.agent,
                previous_value=previous.value,
                value=value,
            )
        self.field_writes[key] = _FieldWrite(item.agent, value)

    def _mint_id(self, section: DeltaSection) -> str:
        prefix = section_id_prefix(section)
        counters = self.artifact.metadata.id_counters
        existing = [e.id for e in self.artifact.entries(section)]
        new_id = next_entry_id(section, existing, counter=counters.get(prefix, 0))
        parsed = parse_entry_id(new_id)
        if parsed:
            counters[prefix] = parsed[1]
        return new_id

    def _check_target_shape(self, delta: Delta) -> None:
        if delta.operation == DeltaOperation.ADD and delta.target_id is not None:
            raise _Skip(ErrorType.SCHEMA_VIOLATION, f"ADD cannot target an existing entry ({delta.target_id})")
        if delta.operation in (DeltaOperation.KILL, DeltaOperation.DELETE) and delta.target_id is None:
            raise _Skip(ErrorType.SCHEMA_VIOLATION, f"{delta.operation.value} requires a target_id")

    def _target(self, item: TimestampedDelta) -> Entry:
        section, target_id = item.delta.section, item.delta.target_id
        entry = self.artifact.find(section, target_id)
        if entry is None:
            raise _Skip(ErrorType.TARGET_NOT_FOUND, f"Target {target_id} not found in {section.value}")
        return entry

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, item: TimestampedDelta) -> Entry:
        delta = item.delta
        section = delta.section

        if section == DeltaSection.RESEARCH_THREAD:
            existing = self.artifact.research_thread
            if existing is not None:
                return self.update(item, existing)
            entry_id = RESEARCH_THREAD_ID
        else:
            limit = self.config.section_limits.get(section)
            if limit is not None and len(self.artifact.active_entries(section)) >= limit:
                raise _Skip(
                    ErrorType.SECTION_LIMIT_EXCEEDED,
                    f"Section {section.value} is at its limit of {limit} active items",
                )
            entry_id = self._mint_id(section)

        for name, value in delta.payload.items():
            self._record_write(item, entry_id, name, value)
        entry = Entry(
            id=entry_id,
            content=dict(delta.payload),
            anchors=list(delta.anchors),
            provenance=self._provenance(item),
        )
        self.artifact.entries(section).append(entry)
        return entry

    def update(self, item: TimestampedDelta, entry: Entry) -> Entry:
        delta = item.delta
        if entry.killed:
            raise _Skip(ErrorType.TARGET_KILLED, f"Skipping EDIT of killed item {entry.id}")

        content = dict(entry.content)
        for name, value in delta.payload.items():
            if name in ARRAY_FIELDS and not delta.replace and isinstance(value, list):
                value = _union(content.get(name), value)
            self._record_write(item, entry.id, name, value)
            content[name] = value

        order = list(payload_model_for(delta.section).model_fields)
        entry.content = {name: content[name] for name in order if name in content}
        if delta.anchors or delta.replace:
            entry.anchors = list(delta.anchors) if delta.replace else _union(entry.anchors, delta.anchors)
        entry.revision += 1
        entry.provenance = self._provenance(item)
        return entry

    def delete(self, item: TimestampedDelta) -> Entry:
        entry = self._target(item)
        self.artifact.entries(item.delta.section).remove(entry)
        return entry

    def kill(self, item: TimestampedDelta) -> tuple[Entry, bool]:
        """Returns the entry and whether it was newly killed."""
        entry = self._target(item)
        if entry.killed:
            return entry, False

        entry.killed = True
        entry.killed_by = item.agent
        entry.killed_at = item.timestamp
        entry.kill_reason = item.delta.payload.get("reason", "")
        if item.delta.anchors:
            entry.anchors = _union(entry.anchors, item.delta.anchors)
        entry.provenance = self._provenance(item)

        section = item.delta.section
        if section == DeltaSection.HYPOTHESIS_SLATE and not self.artifact.has_third_alternative():
            self._warn(
                item,
                ErrorType.NO_THIRD_ALTERNATIVE,
                "No active third alternative hypothesis remains after KILL",
            )
        if section == DeltaSection.ASSUMPTION_LEDGER and not self.artifact.has_scale_check():
            self._warn(
                item,
                ErrorType.NO_SCALE_CHECK,
                "No active scale/physics check assumption remains after KILL",
            )
        return entry, True

    def apply(self, item: TimestampedDelta) -> DeltaOutcome:
        delta = item.delta
        outcome = DeltaOutcome(
            status=OutcomeStatus.APPLIED,
            operation=delta.operation,
            section=delta.section,
            target_id=delta.target_id,
            agent=item.agent,
            message_id=item.message_id,
        )
        try:
            self._check_target_shape(delta)
            if delta.creates_entry:
                entry = self.create(item)
            elif delta.operation == DeltaOperation.EDIT:
                entry = self.update(item, self._target(item))
            elif delta.operation == DeltaOperation.DELETE:
                entry = self.delete(item)
            elif delta.operation == DeltaOperation.KILL:
                entry, newly_killed = self.kill(item)
                if not newly_killed:
                    outcome.reason = f"{entry.id} already killed"
            else:
                raise _Skip(ErrorType.SCHEMA_VIOLATION, f"Unsupported operation {delta.operation.value}")
        except _Skip as skip:
            self._warn(item, skip.error_type, skip.message)
            outcome.status = OutcomeStatus.SKIPPED
            outcome.reason = skip.message
            return outcome

        outcome.entry_id = entry.id
        return outcome


def _union(existing: Any, incoming: Sequence[str]) -> list[str]:
    merged = [v for v in (existing or []) if isinstance(v, str)]
    for value in incoming:
        if value not in merged:
            merged.append(value)
    return merged


# =============================================================================
# Public API
# =============================================================================

def merge(
    baseline: Artifact,
    ordered_deltas: Sequence[TimestampedDelta],
    config: MergeConfig | None = None,
) -> MergeResult:
    """
    Merge an ordered batch of valid deltas onto ``baseline``.

    Args:
        baseline: Artifact to build on (left untouched)
        ordered_deltas: Deltas sorted by (timestamp, message_id)
        config: Merge switches (default from settings)

    Returns:
        MergeResult; ``ok`` is False only for a corrupted baseline

    Raises:
        UnsortedDeltasError: if ``ordered_deltas`` is not sorted
    """
    ensure_sorted(ordered_deltas)
    config = config or MergeConfig.from_settings()

    errors = check_baseline(baseline)
    if errors:
        for issue in errors:
            logger.warning(issue.to_log_message())
        return MergeResult(ok=False, artifact=None, errors=errors)

    run = _MergeRun(baseline.model_copy(deep=True), config)
    outcomes = [run.apply(item) for item in ordered_deltas]

    applied = [item for item, o in zip(ordered_deltas, outcomes) if o.status == OutcomeStatus.APPLIED]
    _finalize_metadata(run.artifact, applied)

    result = MergeResult(
        ok=True,
        artifact=run.artifact,
        applied_count=len(applied),
        skipped_count=len(outcomes) - len(applied),
        warnings=run.warnings,
        outcomes=outcomes,
    )
    logger.debug(
        "Merged v%d for %s: %d applied, %d skipped",
        run.artifact.metadata.version,
        run.artifact.metadata.thread_id,
        result.applied_count,
        result.skipped_count,
    )
    return result


def _finalize_metadata(artifact: Artifact, applied: list[TimestampedDelta]) -> None:
    metadata = artifact.metadata
    metadata.version += 1

    contributors = {c.agent: c for c in metadata.contributors}
    for item in applied:
        contributor = contributors.get(item.agent)
        if contributor is None:
            contributor = Contributor(agent=item.agent, contributed_at=item.timestamp)
            contributors[item.agent] = contributor
            metadata.contributors.append(contributor)
        elif contributor.contributed_at is None or contributor.contributed_at < item.timestamp:
            contributor.contributed_at = item.timestamp

    if applied:
        latest = max(item.timestamp for item in applied)
        metadata.updated_at = max(metadata.updated_at, latest)
        if metadata.status == "draft":
            metadata.status = "active"
