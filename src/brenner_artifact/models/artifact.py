"""
Artifact models - the shared research document compiled from a thread.

Every section is a list of entries in append order. ``research_thread`` is a
singleton section holding at most one entry with id ``RT``.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from brenner_artifact.models.common import UtcDatetime
from brenner_artifact.models.sections import SECTION_ORDER, DeltaSection

ARTIFACT_STATUSES = ("draft", "active", "closed")

_THIRD_ALTERNATIVE_RE = re.compile(r"third\s+alternative", re.IGNORECASE)


class Provenance(BaseModel):
    """Who last touched an entry, and when."""

    agent: str
    timestamp: UtcDatetime
    rationale: str = ""
    message_id: Optional[int] = None


class Entry(BaseModel):
    """One item in an artifact section."""

    id: str = Field(..., description="Stable id, never reused within a thread")
    content: Dict[str, Any] = Field(
        default_factory=dict, description="Field values in section schema order"
    )
    anchors: List[str] = Field(default_factory=list)
    provenance: Optional[Provenance] = None
    revision: int = Field(default=0, description="Number of EDITs applied since creation")

    # Kill marker
    killed: bool = False
    killed_by: Optional[str] = None
    killed_at: Optional[UtcDatetime] = None
    kill_reason: Optional[str] = None

    def get(self, name: str, default: Any = None) -> Any:
        value = self.content.get(name)
        return default if value is None else value

    def text(self, name: str) -> str:
        """String field value, stripped; empty when absent or not a string."""
        value = self.content.get(name)
        return value.strip() if isinstance(value, str) else ""

    def mapping(self, name: str) -> Dict[str, Any]:
        """Dict field value; empty when absent or stored in some other shape."""
        value = self.content.get(name)
        return value if isinstance(value, dict) else {}


class Contributor(BaseModel):
    agent: str
    contributed_at: Optional[UtcDatetime] = None


class ArtifactMetadata(BaseModel):
    thread_id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    version: int = 0
    status: str = Field(default="draft", description="draft | active | closed")
    contributors: List[Contributor] = Field(default_factory=list)
    id_counters: Dict[str, int] = Field(
        default_factory=dict, description="Highest number minted per id prefix"
    )


def _empty_sections() -> dict[DeltaSection, list[Entry]]:
    return {section: [] for section in SECTION_ORDER}


class Artifact(BaseModel):
    """The compiled research document."""

    metadata: ArtifactMetadata
    sections: Dict[DeltaSection, List[Entry]] = Field(default_factory=_empty_sections)

    @field_validator("sections")
    @classmethod
    def _all_sections_present(cls, value: dict[DeltaSection, list[Entry]]):
        return {section: list(value.get(section, [])) for section in SECTION_ORDER}

    @classmethod
    def empty(cls, thread_id: str, created_at: datetime, version: int = 0) -> "Artifact":
        return cls(
            metadata=ArtifactMetadata(
                thread_id=thread_id,
                created_at=created_at,
                updated_at=created_at,
                version=version,
            )
        )

    def entries(self, section: DeltaSection) -> list[Entry]:
        return self.sections[section]

    def active_entries(self, section: DeltaSection) -> list[Entry]:
        return [e for e in self.sections[section] if not e.killed]

    def find(self, section: DeltaSection, entry_id: str) -> Entry | None:
        for entry in self.sections[section]:
            if entry.id == entry_id:
                return entry
        return None

    @property
    def research_thread(self) -> Entry | None:
        entries = self.sections[DeltaSection.RESEARCH_THREAD]
        return entries[0] if entries else None

    def has_third_alternative(self) -> bool:
        """An active hypothesis flagged, or named, as the third alternative."""
        return any(
            h.get("third_alternative") is True or _THIRD_ALTERNATIVE_RE.search(h.text("name"))
            for h in self.active_entries(DeltaSection.HYPOTHESIS_SLATE)
        )

    def has_scale_check(self) -> bool:
        return any(
            a.get("scale_check") is True
            for a in self.active_entries(DeltaSection.ASSUMPTION_LEDGER)
        )

    def to_json(self) -> str:
        """Canonical JSON (stable key order) used for digests and determinism checks."""
        return self.model_dump_json(indent=2)
