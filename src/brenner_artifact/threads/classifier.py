"""
Subject-line classification.

Thread messages announce their purpose through a leading marker:

    KICKOFF: ...                     session start
    [tag] Brenner Loop kickoff ...   session start (older convention)
    DELTA[gpt]: ...                  delta contribution tagged with an agent or role
    COMPILED: v3 artifact            compiled artifact, version 3
    CRITIQUE: / ACK: / CLAIM: / HANDOFF: / BLOCKED: / QUESTION: / INFO:

Marker keywords match case-insensitively. Subjects mentioning an artifact
(in any case) are treated as compiled artifacts from before the COMPILED
marker existed.
"""

from __future__ import annotations

import re

from brenner_artifact.models.thread import AgentRole, MessageType, SubjectClassification

_DELTA_RE = re.compile(r"^DELTA\[([^\]]+)\]:", re.IGNORECASE)
_LEGACY_ARTIFACT_RE = re.compile(r"ARTIFACT", re.IGNORECASE)
_INTEGER_RE = re.compile(r"\d+")

# Checked in order after DELTA.
SUBJECT_PATTERNS: list[tuple[MessageType, re.Pattern]] = [
    (
        MessageType.KICKOFF,
        re.compile(r"^(KICKOFF:|\[[^\]]+\]\s+Brenner Loop kickoff\b)", re.IGNORECASE),
    ),
    (MessageType.COMPILED, re.compile(r"^COMPILED:", re.IGNORECASE)),
    (MessageType.CRITIQUE, re.compile(r"^CRITIQUE:", re.IGNORECASE)),
    (MessageType.ACK, re.compile(r"^ACK:", re.IGNORECASE)),
    (MessageType.CLAIM, re.compile(r"^CLAIM:", re.IGNORECASE)),
    (MessageType.HANDOFF, re.compile(r"^HANDOFF:", re.IGNORECASE)),
    (MessageType.BLOCKED, re.compile(r"^BLOCKED:", re.IGNORECASE)),
    (MessageType.QUESTION, re.compile(r"^QUESTION:", re.IGNORECASE)),
    (MessageType.INFO, re.compile(r"^INFO:", re.IGNORECASE)),
]

# Agent shorthands and role spellings accepted inside DELTA[...].
ROLE_SHORTHAND_MAP: dict[str, AgentRole] = {
    "opus": AgentRole.TEST_DESIGNER,
    "claude": AgentRole.TEST_DESIGNER,
    "claude_code": AgentRole.TEST_DESIGNER,
    "gpt": AgentRole.HYPOTHESIS_GENERATOR,
    "codex": AgentRole.HYPOTHESIS_GENERATOR,
    "codex_cli": AgentRole.HYPOTHESIS_GENERATOR,
    "gemini": AgentRole.ADVERSARIAL_CRITIC,
    "gemini_cli": AgentRole.ADVERSARIAL_CRITIC,
    "human": AgentRole.HYPOTHESIS_GENERATOR,
    "research_collaborator": AgentRole.HYPOTHESIS_GENERATOR,
    "hypothesis_generator": AgentRole.HYPOTHESIS_GENERATOR,
    "hypothesisgenerator": AgentRole.HYPOTHESIS_GENERATOR,
    "test_designer": AgentRole.TEST_DESIGNER,
    "testdesigner": AgentRole.TEST_DESIGNER,
    "adversarial_critic": AgentRole.ADVERSARIAL_CRITIC,
    "adversarialcritic": AgentRole.ADVERSARIAL_CRITIC,
}

# Substring fallback for tags naming a program or model rather than a role.
PROGRAM_ROLE_HINTS: list[tuple[str, AgentRole]] = [
    ("claude", AgentRole.TEST_DESIGNER),
    ("opus", AgentRole.TEST_DESIGNER),
    ("codex", AgentRole.HYPOTHESIS_GENERATOR),
    ("gpt", AgentRole.HYPOTHESIS_GENERATOR),
    ("gemini", AgentRole.ADVERSARIAL_CRITIC),
]


def normalize_delta_tag(tag: str) -> str:
    """'Test Designer' -> 'test_designer'; 'codex-cli' -> 'codex_cli'."""
    lowered = re.sub(r"[\s-]+", "_", tag.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", lowered)


def infer_role_from_program(program: str) -> AgentRole | None:
    """Role from a program or model name such as 'claude-opus-4' or 'gpt-5-codex'."""
    lowered = program.lower()
    for hint, role in PROGRAM_ROLE_HINTS:
        if hint in lowered:
            return role
    return None


def role_for_tag(tag: str) -> AgentRole | None:
    normalized = normalize_delta_tag(tag)
    return ROLE_SHORTHAND_MAP.get(normalized) or infer_role_from_program(normalized)


def _first_integer(text: str) -> int | None:
    match = _INTEGER_RE.search(text)
    return int(match.group(0)) if match else None


def classify(subject: str | None) -> SubjectClassification:
    """
    Classify a subject line.

    Returns:
        SubjectClassification with ``type`` always set, ``role`` for DELTA
        subjects whose tag is recognised, and ``version`` for COMPILED
        subjects that carry an integer after the marker.
    """
    trimmed = (subject or "").strip()

    delta = _DELTA_RE.match(trimmed)
    if delta:
        tag = delta.group(1)
        return SubjectClassification(type=MessageType.DELTA, role=role_for_tag(tag), tag=tag)

    for message_type, pattern in SUBJECT_PATTERNS:
        match = pattern.match(trimmed)
        if not match:
            continue
        if message_type == MessageType.COMPILED:
            return SubjectClassification(
                type=message_type, version=_first_integer(trimmed[match.end():])
            )
        return SubjectClassification(type=message_type)

    legacy = _LEGACY_ARTIFACT_RE.search(trimmed)
    if legacy:
        return SubjectClassification(
            type=MessageType.COMPILED, version=_first_integer(trimmed[legacy.end():])
        )

    return SubjectClassification(type=MessageType.UNKNOWN)
