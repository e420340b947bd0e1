"""Subject classification and thread status."""

from brenner_artifact.threads.classifier import (
    ROLE_SHORTHAND_MAP,
    classify,
    infer_role_from_program,
    normalize_delta_tag,
    role_for_tag,
)
from brenner_artifact.threads.status import (
    delta_messages_for_current_round,
    format_thread_status_summary,
    messages_in_current_round,
    pending_roles,
    thread_needs_attention,
)

__all__ = [
    "ROLE_SHORTHAND_MAP",
    "classify",
    "infer_role_from_program",
    "normalize_delta_tag",
    "role_for_tag",
    "messages_in_current_round",
    "delta_messages_for_current_round",
    "pending_roles",
    "thread_needs_attention",
    "format_thread_status_summary",
]
