"""
Canonical markdown rendering of an artifact.

The rendered text is what gets published to the thread and diffed by other
participants, so output is a pure function of the artifact value:

- YAML front matter with the metadata
- ``# Brenner Protocol Artifact: <thread_id>``
- one numbered ``##`` subsection per populated section, in fixed section order
- entries in append order; killed entries are struck through

Output always ends with exactly one newline.
"""

from __future__ import annotations

import json
from typing import Any, Callable

from brenner_artifact.identity import RESEARCH_THREAD_ID
from brenner_artifact.lint.rules import score_total
from brenner_artifact.models.artifact import Artifact, ArtifactMetadata, Entry
from brenner_artifact.models.common import isoformat_z
from brenner_artifact.models.sections import SECTION_ORDER, SECTION_TITLES, DeltaSection


# =============================================================================
# Formatting helpers
# =============================================================================

def _yaml_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _inline(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _table_cell(value: Any) -> str:
    return _inline(value).replace("|", "\\|").replace("\n", "<br/>")


def _string_list(values: Any, empty: str = "inference") -> str:
    if not isinstance(values, list):
        return empty
    items = [v.strip() for v in values if isinstance(v, str) and v.strip()]
    return ", ".join(items) if items else empty


def _heading(entry: Entry, title: str) -> str:
    text = f"{entry.id}: {title}" if title else entry.id
    return f"### ~~{text}~~" if entry.killed else f"### {text}"


def _kill_block(entry: Entry) -> list[str]:
    if not entry.killed:
        return []
    lines = ["", "**Killed**: true"]
    if entry.killed_by:
        lines.append(f"**Killed by**: {entry.killed_by}")
    if entry.killed_at:
        lines.append(f"**Killed at**: {isoformat_z(entry.killed_at)}")
    if entry.kill_reason:
        lines.append(f"**Kill reason**: {entry.kill_reason}")
    return lines


def render_front_matter(metadata: ArtifactMetadata) -> str:
    lines = [
        "---",
        f"thread_id: {_yaml_string(metadata.thread_id)}",
        f"created_at: {_yaml_string(isoformat_z(metadata.created_at))}",
        f"updated_at: {_yaml_string(isoformat_z(metadata.updated_at))}",
        f"version: {metadata.version}",
        "contributors:",
    ]
    if not metadata.contributors:
        lines.append("  []")
    for contributor in metadata.contributors:
        lines.append(f"  - agent: {_yaml_string(contributor.agent)}")
        if contributor.contributed_at:
            lines.append(f"    contributed_at: {_yaml_string(isoformat_z(contributor.contributed_at))}")
    lines.append(f"status: {_yaml_string(metadata.status)}")
    lines.append("---")
    return "\n".join(lines)


# =============================================================================
# Sections
# =============================================================================

def _render_research_thread(artifact: Artifact, entries: list[Entry]) -> list[str]:
    lines: list[str] = []
    for rt in entries:
        label = f"~~{RESEARCH_THREAD_ID}~~" if rt.killed else RESEARCH_THREAD_ID
        lines.append(f"**{label}**: {rt.text('statement')}")
        lines.append("")
        lines.append(f"**Context**: {rt.text('context')}")
        lines.append("")
        lines.append(f"**Why it matters**: {rt.text('why_it_matters')}")
        lines.append("")
        lines.append(f"**Anchors**: {_string_list(rt.anchors)}")
        lines.extend(_kill_block(rt))
        lines.append("")
    return lines


def _render_hypotheses(artifact: Artifact, entries: list[Entry]) -> list[str]:
    lines: list[str] = []
    for h in entries:
        name = h.text("name")
        third = h.get("third_alternative") is True
        if third and "third alternative" not in name.lower():
            name = f"{name} (Third Alternative)"
        lines.append(_heading(h, name))
        lines.append(f"**Claim**: {h.text('claim')}")
        lines.append(f"**Mechanism**: {h.text('mechanism')}")
        lines.append(f"**Anchors**: {_string_list(h.anchors)}")
        if third:
            lines.append("**Third alternative**: true")
        lines.extend(_kill_block(h))
        lines.append("")
    return lines


def _render_predictions(artifact: Artifact, entries: list[Entry]) -> list[str]:
    hypothesis_ids = [h.id for h in artifact.entries(DeltaSection.HYPOTHESIS_SLATE)]
    header = ["ID", "Observation/Condition", *hypothesis_ids]
    lines = [
        f"| {' | '.join(header)} |",
        f"| {' | '.join('---' for _ in header)} |",
    ]
    for p in entries:
        outcomes = p.mapping("predictions")
        row = [f"~~{p.id}~~" if p.killed else p.id, _table_cell(p.get("condition"))]
        for hid in hypothesis_ids:
            value = outcomes.get(hid, outcomes.get(hid.lower()))
            row.append(_table_cell(value) if value is not None else "—")
        lines.append(f"| {' | '.join(row)} |")
    lines.append("")
    return lines


def _render_tests(artifact: Artifact, entries: list[Entry]) -> list[str]:
    lines: list[str] = []
    for t in entries:
        lines.append(_heading(t, f"{t.text('name')} (Score: {score_total(t)}/12)"))
        lines.append(f"**Procedure**: {t.text('procedure')}")
        lines.append(f"**Discriminates**: {t.text('discriminates')}")
        lines.append("**Expected outcomes**:")
        for key, value in t.mapping("expected_outcomes").items():
            lines.append(f"- {key}: {_inline(value)}")
        lines.append(f"**Potency check**: {t.text('potency_check')}")
        if t.text("feasibility"):
            lines.append(f"**Feasibility**: {t.text('feasibility')}")
        score = t.mapping("score")
        if score:
            lines.append(
                "**Evidence-per-week score**: "
                f"LR={score.get('likelihood_ratio', 0)}, Cost={score.get('cost', 0)}, "
                f"Speed={score.get('speed', 0)}, Ambiguity={score.get('ambiguity', 0)}"
            )
        lines.extend(_kill_block(t))
        lines.append("")
    return lines


def _render_assumptions(artifact: Artifact, entries: list[Entry]) -> list[str]:
    lines: list[str] = []
    for a in entries:
        lines.append(_heading(a, a.text("name")))
        lines.append(f"**Statement**: {a.text('statement')}")
        lines.append(f"**Load**: {a.text('load')}")
        lines.append(f"**Test**: {a.text('test')}")
        if a.text("status"):
            lines.append(f"**Status**: {a.text('status')}")
        if a.get("scale_check") is True:
            lines.append("**Scale check**: true")
        if a.text("calculation"):
            lines.append(f"**Calculation**: {a.text('calculation')}")
        if a.text("implication"):
            lines.append(f"**Implication**: {a.text('implication')}")
        lines.extend(_kill_block(a))
        lines.append("")
    return lines


def _render_anomalies(artifact: Artifact, entries: list[Entry]) -> list[str]:
    lines: list[str] = []
    for x in entries:
        lines.append(_heading(x, x.text("name")))
        lines.append(f"**Observation**: {x.text('observation')}")
        lines.append(f"**Conflicts with**: {_string_list(x.get('conflicts_with'), empty='—')}")
        if x.text("status"):
            lines.append(f"**Quarantine status**: {x.text('status')}")
        if x.text("resolution_plan"):
            lines.append(f"**Resolution plan**: {x.text('resolution_plan')}")
        lines.extend(_kill_block(x))
        lines.append("")
    return lines


def _render_critiques(artifact: Artifact, entries: list[Entry]) -> list[str]:
    lines: list[str] = []
    for c in entries:
        lines.append(_heading(c, c.text("name")))
        lines.append(f"**Attack**: {c.text('attack')}")
        lines.append(f"**Evidence**: {c.text('evidence')}")
        lines.append(f"**Current status**: {c.text('current_status')}")
        if c.get("real_third_alternative") is True:
            lines.append("**Real third alternative**: true")
        lines.extend(_kill_block(c))
        lines.append("")
    return lines


SECTION_RENDERERS: dict[DeltaSection, Callable[[Artifact, list[Entry]], list[str]]] = {
    DeltaSection.RESEARCH_THREAD: _render_research_thread,
    DeltaSection.HYPOTHESIS_SLATE: _render_hypotheses,
    DeltaSection.PREDICTIONS_TABLE: _render_predictions,
    DeltaSection.DISCRIMINATIVE_TESTS: _render_tests,
    DeltaSection.ASSUMPTION_LEDGER: _render_assumptions,
    DeltaSection.ANOMALY_REGISTER: _render_anomalies,
    DeltaSection.ADVERSARIAL_CRITIQUE: _render_critiques,
}


# =============================================================================
# Public API
# =============================================================================

def render(artifact: Artifact) -> str:
    """Render ``artifact`` to canonical markdown."""
    lines = [
        render_front_matter(artifact.metadata),
        "",
        f"# Brenner Protocol Artifact: {artifact.metadata.thread_id}",
        "",
    ]
    for number, section in enumerate(SECTION_ORDER, start=1):
        entries = artifact.entries(section)
        if not entries:
            continue
        lines.append(f"## {number}. {SECTION_TITLES[section]}")
        lines.append("")
        lines.extend(SECTION_RENDERERS[section](artifact, entries))

    return "\n".join(lines).rstrip() + "\n"
