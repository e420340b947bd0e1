"""Delta block extraction from message bodies."""

from brenner_artifact.extraction.parser import (
    DeltaBlock,
    extract,
    extract_valid_deltas,
    find_delta_blocks,
    sanitize_json,
    validate_delta,
)

__all__ = [
    "DeltaBlock",
    "extract",
    "extract_valid_deltas",
    "find_delta_blocks",
    "sanitize_json",
    "validate_delta",
]
