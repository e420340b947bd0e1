"""Artifact lint engine."""

from brenner_artifact.lint.engine import lint
from brenner_artifact.lint.report import format_lint_report_human, format_lint_report_json
from brenner_artifact.lint.rules import RULES, LintCollector, LintConfig

__all__ = [
    "lint",
    "LintConfig",
    "LintCollector",
    "RULES",
    "format_lint_report_human",
    "format_lint_report_json",
]
