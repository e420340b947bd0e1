"""
Delta block extraction.

Finds fenced blocks tagged with the delta fence language inside a markdown
message body and validates each one into a ``Delta`` or an ``InvalidDelta``.

Recognised fences:

    ```delta            ::: delta
    { ...json... }      { ...json... }
    ```                 :::

Blocks with any other tag are skipped entirely, including any delta-looking
text inside them. Extraction never raises; every failure is recorded on the
block it came from and scanning continues with the next block.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from brenner_artifact.identity import RESEARCH_THREAD_ID
from brenner_artifact.models.delta import Delta, DeltaOrInvalid, InvalidDelta, ParsedMessage
from brenner_artifact.models.payloads import DeletePayload, KillPayload, payload_model_for
from brenner_artifact.models.sections import DeltaOperation, DeltaSection
from brenner_artifact.settings import get_settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^[ \t]{0,3}(?P<fence>`{3,}|~{3,}|:{3,})[ \t]*(?P<info>[^\n]*?)[ \t]*$")
_COMMENT_RE = re.compile(r'("(?:[^"\\]|\\.)*")|(//[^\n]*)|(/\*.*?\*/)', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")

VALID_OPERATIONS = [op.value for op in DeltaOperation]
VALID_SECTIONS = [section.value for section in DeltaSection]


@dataclass
class DeltaBlock:
    """Raw text of one tagged block."""

    text: str
    start_line: int
    terminated: bool = True


# =============================================================================
# Block scanning
# =============================================================================

def _fence_info(line: str) -> tuple[str, str] | None:
    match = _FENCE_RE.match(line)
    if not match:
        return None
    return match.group("fence"), match.group("info")


def _closes(line: str, fence: str) -> bool:
    """A closing fence uses the opener's character, is at least as long, and has no info string."""
    info = _fence_info(line)
    if info is None:
        return False
    candidate, text = info
    return not text and candidate[0] == fence[0] and len(candidate) >= len(fence)


def _is_delta_tag(info: str, fence_tag: str) -> bool:
    words = info.split()
    return bool(words) and words[0] == fence_tag


def find_delta_blocks(body: str, fence_tag: str | None = None) -> list[DeltaBlock]:
    """
    Locate every delta-tagged fenced block in ``body``.

    Inside a delta block, fences that open with an info string (for example
    an embedded ```python snippet) are tracked so that their bare closing
    fence does not end the delta block early.
    """
    tag = fence_tag or get_settings().delta_fence_tag
    lines = body.splitlines()
    blocks: list[DeltaBlock] = []

    i = 0
    while i < len(lines):
        info = _fence_info(lines[i])
        if info is None:
            i += 1
            continue

        fence, info_text = info
        if not _is_delta_tag(info_text, tag):
            # Skip foreign fenced blocks wholesale.
            j = i + 1
            while j < len(lines) and not _closes(lines[j], fence):
                j += 1
            i = j + 1
            continue

        depth = 0
        j = i + 1
        end = None
        while j < len(lines):
            line = lines[j]
            if _closes(line, fence):
                if depth == 0:
                    end = j
                    break
                depth -= 1
            else:
                nested = _fence_info(line)
                if nested is not None and nested[1] and nested[0][0] == fence[0]:
                    depth += 1
            j += 1

        if end is None:
            blocks.append(DeltaBlock("\n".join(lines[i + 1:]), start_line=i + 1, terminated=False))
            break

        blocks.append(DeltaBlock("\n".join(lines[i + 1:end]), start_line=i + 1))
        i = end + 1

    return blocks


# =============================================================================
# JSON loading
# =============================================================================

def sanitize_json(text: str) -> str:
    """Strip // and /* */ comments (outside strings) and trailing commas."""

    def _keep_strings(match: re.Match) -> str:
        return match.group(1) or ""

    cleaned = _COMMENT_RE.sub(_keep_strings, text)
    return _TRAILING_COMMA_RE.sub(r"\1", cleaned)


def _load_block(text: str) -> Any:
    """Parse block JSON, retrying once on a sanitized copy. Raises the original error."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        try:
            return json.loads(sanitize_json(text))
        except json.JSONDecodeError:
            raise exc


def _format_validation_error(exc: ValidationError, prefix: str = "payload") -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{prefix}.{loc}: {err['msg']}" if loc else f"{prefix}: {err['msg']}")
    return "; ".join(parts)


def _merge_anchors(*groups: Any) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for anchor in group or []:
            if anchor not in merged:
                merged.append(anchor)
    return merged


# =============================================================================
# Validation
# =============================================================================

def validate_delta(data: Any, raw: str) -> DeltaOrInvalid:
    """Validate one decoded block. Returns an ``InvalidDelta`` with a specific reason on failure."""

    def invalid(error: str) -> InvalidDelta:
        return InvalidDelta(error=error, raw=raw)

    if not isinstance(data, dict):
        return invalid("Delta is not an object")

    operation = data.get("operation")
    if operation not in VALID_OPERATIONS:
        return invalid(f'Invalid operation: "{operation}". Must be one of: {", ".join(VALID_OPERATIONS)}')
    op = DeltaOperation(operation)

    section_value = data.get("section")
    if section_value not in VALID_SECTIONS:
        return invalid(f'Invalid section: "{section_value}". Must be one of: {", ".join(VALID_SECTIONS)}')
    section = DeltaSection(section_value)

    target_id = data.get("target_id")
    if target_id is not None and not isinstance(target_id, str):
        return invalid("target_id must be a string or null")
    if isinstance(target_id, str) and not target_id.strip():
        return invalid("target_id must not be empty")

    if op == DeltaOperation.ADD and target_id is not None:
        return invalid("ADD operation must have target_id as null")
    if op in (DeltaOperation.KILL, DeltaOperation.DELETE) and target_id is None:
        return invalid(f"{op.value} operation requires target_id as a string")
    if section == DeltaSection.RESEARCH_THREAD and op != DeltaOperation.EDIT:
        return invalid("research_thread section only supports EDIT operation")
    if section == DeltaSection.RESEARCH_THREAD and target_id not in (None, RESEARCH_THREAD_ID):
        return invalid(f'research_thread target_id must be "{RESEARCH_THREAD_ID}"')

    rationale = data.get("rationale", "")
    if rationale is None:
        rationale = ""
    if not isinstance(rationale, str):
        return invalid("rationale must be a string")

    anchors = data.get("anchors") or []
    if not isinstance(anchors, list) or not all(isinstance(a, str) for a in anchors):
        return invalid("anchors must be a list of strings")

    payload = data.get("payload")
    if payload is None and op == DeltaOperation.DELETE:
        payload = {}
    if not isinstance(payload, dict):
        return invalid(f"{op.value} operation requires a payload object")

    if op == DeltaOperation.KILL:
        try:
            kill = KillPayload.model_validate(payload)
        except ValidationError:
            return invalid("KILL operation requires payload with 'reason' string")
        return Delta(
            operation=op,
            section=section,
            target_id=target_id,
            payload={"reason": kill.reason},
            rationale=rationale,
            anchors=_merge_anchors(anchors, kill.anchors),
            raw=raw,
        )

    if op == DeltaOperation.DELETE:
        try:
            delete = DeletePayload.model_validate(payload)
        except ValidationError as exc:
            return invalid(_format_validation_error(exc))
        return Delta(
            operation=op,
            section=section,
            target_id=target_id,
            payload=delete.model_dump(exclude_none=True),
            rationale=rationale,
            anchors=_merge_anchors(anchors),
            raw=raw,
        )

    model = payload_model_for(section)
    try:
        typed = model.model_validate(payload)
    except ValidationError as exc:
        return invalid(_format_validation_error(exc))

    content = typed.content()
    if target_id is not None and not content and not typed.anchors:
        return invalid(f"{op.value} of {target_id} has an empty payload")

    if target_id is None:
        missing = model.missing_required(content)
        if missing:
            return invalid(
                f"{section.value} entry is missing required field(s): {', '.join(missing)}"
            )

    return Delta(
        operation=op,
        section=section,
        target_id=target_id,
        payload=content,
        rationale=rationale,
        anchors=_merge_anchors(anchors, typed.anchors),
        replace=bool(typed.replace),
        raw=raw,
    )


def parse_block(block: DeltaBlock) -> DeltaOrInvalid:
    if not block.terminated:
        return InvalidDelta(error="unterminated delta block", raw=block.text)
    if not block.text.strip():
        return InvalidDelta(error="empty block", raw=block.text)
    try:
        data = _load_block(block.text)
    except json.JSONDecodeError as exc:
        return InvalidDelta(error=f"Invalid JSON: {exc}", raw=block.text)
    return validate_delta(data, block.text)


# =============================================================================
# Public API
# =============================================================================

def extract(body: str | None, fence_tag: str | None = None) -> ParsedMessage:
    """
    Parse every delta block in a message body.

    Args:
        body: Markdown message body (None is treated as empty)
        fence_tag: Fence language marking delta blocks (default from settings)

    Returns:
        ParsedMessage with one entry per tagged block, in body order
    """
    blocks = find_delta_blocks(body or "", fence_tag)
    deltas = [parse_block(block) for block in blocks]
    for block, delta in zip(blocks, deltas):
        if isinstance(delta, InvalidDelta):
            logger.debug("Invalid delta block at line %d: %s", block.start_line, delta.error)
    return ParsedMessage.from_deltas(deltas)


def extract_valid_deltas(body: str | None, fence_tag: str | None = None) -> list[Delta]:
    return extract(body, fence_tag).valid_deltas
