from __future__ import annotations

import re
from hashlib import sha256
from typing import Iterable

from brenner_artifact.models.sections import DeltaSection

SECTION_PREFIXES: dict[DeltaSection, str] = {
    DeltaSection.RESEARCH_THREAD: "RT",
    DeltaSection.HYPOTHESIS_SLATE: "H",
    DeltaSection.PREDICTIONS_TABLE: "P",
    DeltaSection.DISCRIMINATIVE_TESTS: "T",
    DeltaSection.ASSUMPTION_LEDGER: "A",
    DeltaSection.ANOMALY_REGISTER: "X",
    DeltaSection.ADVERSARIAL_CRITIQUE: "C",
}

RESEARCH_THREAD_ID = "RT"

_ENTRY_ID_RE = re.compile(r"^([A-Z]+)(\d+)$")


def parse_entry_id(entry_id: str) -> tuple[str, int] | None:
    match = _ENTRY_ID_RE.match(entry_id.strip())
    if not match:
        return None
    return match.group(1), int(match.group(2))


def section_id_prefix(section: DeltaSection) -> str:
    return SECTION_PREFIXES[section]


def target_matches_section(target_id: str, section: DeltaSection) -> bool:
    """True when ``target_id`` carries the id prefix of ``section``."""
    if section == DeltaSection.RESEARCH_THREAD:
        return target_id == RESEARCH_THREAD_ID
    parsed = parse_entry_id(target_id)
    return parsed is not None and parsed[0] == section_id_prefix(section)


def next_entry_id(section: DeltaSection, existing_ids: Iterable[str], counter: int = 0) -> str:
    """Mint the next id for a section: prefix + (highest number seen + 1)."""
    if section == DeltaSection.RESEARCH_THREAD:
        return RESEARCH_THREAD_ID
    prefix = section_id_prefix(section)
    highest = counter
    for entry_id in existing_ids:
        parsed = parse_entry_id(entry_id)
        if parsed and parsed[0] == prefix:
            highest = max(highest, parsed[1])
    return f"{prefix}{highest + 1}"


def content_digest(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()
