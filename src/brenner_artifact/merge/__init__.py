"""Delta merge engine."""

from brenner_artifact.merge.engine import (
    MergeConfig,
    TimestampedDelta,
    check_baseline,
    create_empty_artifact,
    ensure_sorted,
    merge,
    sort_deltas,
)

__all__ = [
    "MergeConfig",
    "TimestampedDelta",
    "check_baseline",
    "create_empty_artifact",
    "ensure_sorted",
    "merge",
    "sort_deltas",
]
