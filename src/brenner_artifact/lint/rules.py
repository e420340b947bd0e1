"""Lint rules for compiled artifacts.

Rule ids encode severity and area: the first letter is E (error), W (warning)
or I (info); the next letter names the area:

- M: metadata
- R: research thread
- H: hypotheses
- P: predictions
- T: tests
- A: assumptions
- C: critiques
- P-: provenance and citation
- D: duplicates
- K: kills and rationale
- S: staleness

Every rule is a pure function ``check_*(artifact, collector)``. Rules never
mutate the artifact and never raise on artifact content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Optional

from brenner_artifact.models.artifact import ARTIFACT_STATUSES, Artifact, Entry
from brenner_artifact.models.payloads import payload_model_for
from brenner_artifact.models.results import LintIssue, LintSeverity
from brenner_artifact.models.sections import SECTION_ORDER, DeltaSection
from brenner_artifact.settings import get_settings

# §42, § 42, §42-45, §42–45
ANCHOR_REF_RE = re.compile(r"§\s?(\d+)(?:\s*[-–]\s*(\d+))?")
_INFERENCE_RE = re.compile(r"^\[?inference\]?(?:\s|$)", re.IGNORECASE)
_WORD_RE = re.compile(r"[a-z0-9]+")


# =============================================================================
# Collector
# =============================================================================

@dataclass
class LintConfig:
    max_transcript_section: int = 236
    stale_after_days: int = 30

    @classmethod
    def from_settings(cls) -> "LintConfig":
        settings = get_settings()
        return cls(
            max_transcript_section=settings.max_transcript_section,
            stale_after_days=settings.stale_after_days,
        )


@dataclass
class LintCollector:
    """Accumulates issues emitted by the rules."""

    config: LintConfig = field(default_factory=LintConfig)
    issues: list[LintIssue] = field(default_factory=list)

    def add(
        self,
        rule_id: str,
        severity: LintSeverity,
        message: str,
        *,
        section: Optional[DeltaSection] = None,
        entry_id: Optional[str] = None,
        fix: Optional[str] = None,
    ) -> None:
        self.issues.append(
            LintIssue(
                rule_id=rule_id,
                severity=severity,
                message=message,
                section=section,
                entry_id=entry_id,
                fix=fix,
            )
        )

    def error(self, rule_id: str, message: str, **kwargs) -> None:
        self.add(rule_id, LintSeverity.ERROR, message, **kwargs)

    def warning(self, rule_id: str, message: str, **kwargs) -> None:
        self.add(rule_id, LintSeverity.WARNING, message, **kwargs)

    def info(self, rule_id: str, message: str, **kwargs) -> None:
        self.add(rule_id, LintSeverity.INFO, message, **kwargs)


# =============================================================================
# Helpers
# =============================================================================

SCORE_AXES = ("likelihood_ratio", "cost", "speed", "ambiguity")


def _axis_value(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (OverflowError, TypeError, ValueError):
        return 0


def score_total(entry: Entry) -> int:
    """Sum of the score axes; axes that are missing or not numbers count as 0."""
    score = entry.mapping("score")
    return sum(_axis_value(score.get(axis)) for axis in SCORE_AXES)


def anchor_refs(anchor: str) -> list[tuple[int, int]]:
    """(start, end) pairs for every §n or §n-m reference in an anchor."""
    refs = []
    for match in ANCHOR_REF_RE.finditer(anchor):
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else start
        refs.append((start, end))
    return refs


def is_inference(anchor: str) -> bool:
    return bool(_INFERENCE_RE.match(anchor.strip()))


def is_pure_inference(anchors: list[str]) -> bool:
    """Inference marker without a 'from §n' source."""
    for anchor in anchors:
        lower = anchor.strip().lower()
        if lower in ("inference", "[inference]"):
            return True
        if "[inference]" in lower and "from" not in lower:
            return True
    return False


def normalize_statement(text: str) -> str:
    return " ".join(_WORD_RE.findall(text.lower()))


def _min_count(
    collector: LintCollector,
    artifact: Artifact,
    section: DeltaSection,
    rule_id: str,
    label: str,
    minimum: int,
) -> list[Entry]:
    active = artifact.active_entries(section)
    if len(active) < minimum:
        collector.error(
            rule_id,
            f"{label} has {len(active)} active items (minimum {minimum})",
            section=section,
            fix=f"Add {section.value} entries via ADD deltas",
        )
    return active


# =============================================================================
# Metadata
# =============================================================================

def check_metadata(artifact: Artifact, collector: LintCollector) -> None:
    metadata = artifact.metadata
    if not metadata.thread_id.strip():
        collector.error(
            "EM-002",
            "Metadata.thread_id is required",
            fix="Set artifact.metadata.thread_id to the thread identifier",
        )
    if metadata.status not in ARTIFACT_STATUSES:
        collector.error(
            "EM-004",
            f"Metadata.status must be one of: {' | '.join(ARTIFACT_STATUSES)} (got {metadata.status!r})",
            fix="Set artifact.metadata.status to 'draft', 'active', or 'closed'",
        )
    if not metadata.contributors:
        collector.warning(
            "WM-001",
            "No contributors recorded",
            fix="Ensure the merge stamps artifact.metadata.contributors",
        )
    if metadata.updated_at < metadata.created_at:
        collector.warning(
            "WM-002",
            "updated_at is earlier than created_at",
            fix="Ensure updated_at is >= created_at",
        )


# =============================================================================
# Required sections
# =============================================================================

def check_research_thread(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.RESEARCH_THREAD
    rt = artifact.research_thread
    if rt is None or not rt.text("statement"):
        collector.error(
            "ER-001",
            "Research thread statement is missing",
            section=section,
            fix="Add an EDIT delta to section 'research_thread' with a non-empty statement",
        )
    if rt is None or not rt.text("context"):
        collector.error(
            "ER-002",
            "Research thread context is missing",
            section=section,
            fix="Add an EDIT delta to section 'research_thread' with a non-empty context",
        )
    if rt is None or not rt.anchors:
        collector.warning(
            "WR-001",
            "Research thread anchors are missing",
            section=section,
            fix="Add at least one transcript anchor (e.g., §42) or 'inference'",
        )


def check_hypotheses(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.HYPOTHESIS_SLATE
    active = _min_count(collector, artifact, section, "EH-001", "Hypothesis slate", 3)
    if len(active) > 6:
        collector.error(
            "EH-002",
            f"Hypothesis slate has {len(active)} active items (maximum 6)",
            section=section,
            fix="KILL or consolidate hypotheses to <= 6 items",
        )
    if not artifact.has_third_alternative():
        collector.error(
            "EH-003",
            "No third alternative hypothesis is present",
            section=section,
            fix="Mark at least one hypothesis with third_alternative: true",
        )
    for h in active:
        if not h.text("claim"):
            collector.error("EH-004", f"{h.id} is missing claim", section=section, entry_id=h.id)
        if not h.anchors:
            collector.warning(
                "WH-001",
                f"{h.id} is missing anchors",
                section=section,
                entry_id=h.id,
                fix="Add transcript anchors (e.g., §42) or 'inference'",
            )


def check_predictions(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.PREDICTIONS_TABLE
    active = _min_count(collector, artifact, section, "EP-001", "Predictions table", 3)
    hypothesis_ids = [h.id for h in artifact.active_entries(DeltaSection.HYPOTHESIS_SLATE)]
    if len(hypothesis_ids) < 2:
        return
    for p in active:
        outcomes = p.mapping("predictions")
        values = [str(outcomes.get(hid) or "").strip() for hid in hypothesis_ids]
        present = [v for v in values if v]
        if present and len(set(present)) <= 1:
            collector.warning(
                "WP-001",
                f"{p.id} does not discriminate (all hypothesis outcomes identical or missing)",
                section=section,
                entry_id=p.id,
                fix="Adjust the prediction so at least two hypotheses differ in expected outcome",
            )


def check_tests(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.DISCRIMINATIVE_TESTS
    active = _min_count(collector, artifact, section, "ET-001", "Discriminative tests", 2)
    for t in active:
        if not t.text("procedure"):
            collector.error("ET-002", f"{t.id} is missing procedure", section=section, entry_id=t.id)
        if not t.mapping("expected_outcomes"):
            collector.error(
                "ET-003",
                f"{t.id} is missing expected outcomes",
                section=section,
                entry_id=t.id,
                fix="Add an expected_outcomes mapping (e.g., {'H1': '...', 'H2': '...'})",
            )
        if not t.text("potency_check"):
            collector.warning(
                "WT-001",
                f"{t.id} is missing potency check",
                section=section,
                entry_id=t.id,
                fix="Add a potency_check that distinguishes chastity vs impotence",
            )
        if not t.mapping("score"):
            collector.warning(
                "WT-003",
                f"{t.id} is missing score breakdown",
                section=section,
                entry_id=t.id,
                fix="Add score: {likelihood_ratio, cost, speed, ambiguity} with 0-3 values",
            )

    for previous, current in zip(active, active[1:]):
        if score_total(current) > score_total(previous):
            collector.warning(
                "WT-002",
                "Tests are not ranked by score (non-increasing order violated)",
                section=section,
                entry_id=current.id,
                fix="List tests by descending total score (LR+cost+speed+ambiguity)",
            )
            break


def check_assumptions(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.ASSUMPTION_LEDGER
    active = _min_count(collector, artifact, section, "EA-001", "Assumption ledger", 3)
    if not artifact.has_scale_check():
        collector.error(
            "EA-002",
            "No scale/physics check assumption found",
            section=section,
            fix="Add an assumption with scale_check: true and a calculation",
        )
    for a in active:
        if not a.text("statement"):
            collector.error("EA-003", f"{a.id} is missing statement", section=section, entry_id=a.id)
        if a.get("scale_check") is True and not a.text("calculation"):
            collector.warning(
                "WA-003",
                f"{a.id} is a scale check but missing calculation",
                section=section,
                entry_id=a.id,
                fix="Add a calculation field with explicit numbers and units",
            )


def check_critiques(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.ADVERSARIAL_CRITIQUE
    active = _min_count(collector, artifact, section, "EC-001", "Adversarial critique", 2)
    for c in active:
        if not c.text("attack"):
            collector.error("EC-002", f"{c.id} is missing attack", section=section, entry_id=c.id)
        if not c.text("evidence"):
            collector.warning("WC-002", f"{c.id} is missing evidence", section=section, entry_id=c.id)
        if not c.text("current_status"):
            collector.info(
                "IC-001", f"{c.id} is missing current status", section=section, entry_id=c.id
            )
    if not any(c.get("real_third_alternative") is True for c in active):
        collector.warning(
            "WC-001",
            "No critique marked as a real third alternative",
            section=section,
            fix="Mark at least one critique with real_third_alternative: true",
        )


# =============================================================================
# Provenance and citation
# =============================================================================

def check_anchor_format(artifact: Artifact, collector: LintCollector) -> None:
    for section in SECTION_ORDER:
        for entry in artifact.active_entries(section):
            for anchor in entry.anchors:
                refs = anchor_refs(anchor)
                if not refs and not is_inference(anchor):
                    collector.warning(
                        "WP-P01",
                        f"{entry.id} anchor {anchor!r} is not a §n reference or inference marker",
                        section=section,
                        entry_id=entry.id,
                        fix="Use §n, §n-m, or '[inference] from §n'",
                    )
                elif any(start > end for start, end in refs):
                    collector.warning(
                        "WP-P01",
                        f"{entry.id} anchor {anchor!r} has a reversed range",
                        section=section,
                        entry_id=entry.id,
                        fix="Write ranges low-to-high (e.g., §42-45)",
                    )


def check_anchor_range(artifact: Artifact, collector: LintCollector) -> None:
    limit = collector.config.max_transcript_section
    for section in SECTION_ORDER:
        for entry in artifact.active_entries(section):
            for anchor in entry.anchors:
                for start, end in anchor_refs(anchor):
                    for ref in sorted({start, end}):
                        if ref < 1 or ref > limit:
                            collector.error(
                                "EP-P01",
                                f"{entry.id} references §{ref} which is out of range (valid: 1-{limit})",
                                section=section,
                                entry_id=entry.id,
                                fix=f"Update anchor to reference a valid transcript section (1-{limit})",
                            )


def check_inference_sources(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.HYPOTHESIS_SLATE
    for h in artifact.active_entries(section):
        if is_pure_inference(h.anchors):
            collector.warning(
                "WP-P02",
                f"{h.id} uses [inference] without source context",
                section=section,
                entry_id=h.id,
                fix="Use '[inference] from §n' to cite the evidence the inference is based on",
            )


def check_potency_citation(artifact: Artifact, collector: LintCollector) -> None:
    section = DeltaSection.DISCRIMINATIVE_TESTS
    for t in artifact.active_entries(section):
        potency = t.text("potency_check")
        if not potency:
            continue
        if not any(start <= 50 <= end for start, end in anchor_refs(potency)):
            collector.info(
                "IP-P02",
                f"{t.id} potency check doesn't cite §50 (Brenner's chastity principle)",
                section=section,
                entry_id=t.id,
                fix="Consider referencing §50 for the canonical statement of the chastity principle",
            )


# =============================================================================
# Duplicates, rationale, staleness
# =============================================================================

def check_duplicates(artifact: Artifact, collector: LintCollector) -> None:
    for section in SECTION_ORDER:
        primary = payload_model_for(section).primary_field
        seen: dict[str, str] = {}
        for entry in artifact.active_entries(section):
            key = normalize_statement(entry.text(primary))
            if not key:
                continue
            if key in seen:
                collector.warning(
                    "WD-001",
                    f"{entry.id} repeats the {primary} of {seen[key]}",
                    section=section,
                    entry_id=entry.id,
                    fix=f"KILL or DELETE one of {seen[key]} / {entry.id}, or sharpen the wording",
                )
            else:
                seen[key] = entry.id


def check_rationale(artifact: Artifact, collector: LintCollector) -> None:
    for section in SECTION_ORDER:
        for entry in artifact.entries(section):
            if entry.killed and not (entry.kill_reason or "").strip():
                collector.warning(
                    "WK-001",
                    f"{entry.id} was killed without a reason",
                    section=section,
                    entry_id=entry.id,
                    fix="Re-issue the KILL with payload.reason explaining the refutation",
                )
            elif (
                not entry.killed
                and entry.revision > 0
                and entry.provenance is not None
                and not entry.provenance.rationale.strip()
            ):
                collector.info(
                    "IK-001",
                    f"{entry.id} was last edited by {entry.provenance.agent} without a rationale",
                    section=section,
                    entry_id=entry.id,
                    fix="Include a rationale with EDIT deltas",
                )


def check_staleness(artifact: Artifact, collector: LintCollector) -> None:
    updated_at = artifact.metadata.updated_at
    cutoff = updated_at - timedelta(days=collector.config.stale_after_days)
    for section in SECTION_ORDER:
        for entry in artifact.active_entries(section):
            if entry.provenance is None:
                continue
            touched = entry.provenance.timestamp
            if touched > updated_at:
                collector.warning(
                    "WS-001",
                    f"{entry.id} was touched after metadata.updated_at",
                    section=section,
                    entry_id=entry.id,
                    fix="Recompile so updated_at covers every applied delta",
                )
            elif touched < cutoff:
                collector.info(
                    "IS-001",
                    f"{entry.id} has not been touched in over {collector.config.stale_after_days} days",
                    section=section,
                    entry_id=entry.id,
                    fix="Revisit, EDIT or KILL the entry",
                )


# Evaluated in order.
RULES: list[Callable[[Artifact, LintCollector], None]] = [
    check_metadata,
    check_research_thread,
    check_hypotheses,
    check_predictions,
    check_tests,
    check_assumptions,
    check_critiques,
    check_anchor_format,
    check_anchor_range,
    check_inference_sources,
    check_potency_citation,
    check_duplicates,
    check_rationale,
    check_staleness,
]
