"""Lint report formatters."""

from __future__ import annotations

import json

from brenner_artifact.models.results import LintReport, LintSeverity

_HEADINGS = [
    (LintSeverity.ERROR, "Errors (must fix):"),
    (LintSeverity.WARNING, "Warnings (should fix):"),
    (LintSeverity.INFO, "Info:"),
]


def format_lint_report_human(report: LintReport, artifact_name: str | None = None) -> str:
    """
    Plain-text report:

        Artifact Linter Report
        ======================
        Artifact: RS-20251230-cell-fate
        Status: INVALID (3 errors, 5 warnings, 2 info)

        Errors (must fix):
          EH-003: No third alternative hypothesis is present
            -> Mark at least one hypothesis with third_alternative: true
    """
    summary = report.summary
    lines = [
        "Artifact Linter Report",
        "======================",
        f"Artifact: {artifact_name or 'artifact'}",
        f"Status: {'VALID' if report.valid else 'INVALID'} "
        f"({summary.errors} errors, {summary.warnings} warnings, {summary.info} info)",
        "",
    ]
    for severity, heading in _HEADINGS:
        issues = report.by_severity(severity)
        if not issues:
            continue
        lines.append(heading)
        for issue in issues:
            lines.append(f"  {issue.rule_id}: {issue.message}")
            if issue.fix and severity != LintSeverity.INFO:
                lines.append(f"    -> {issue.fix}")
        lines.append("")
    return "\n".join(lines)


def format_lint_report_json(report: LintReport, artifact_name: str | None = None) -> str:
    """Deterministic, pretty-printed JSON."""
    output = {"artifact": artifact_name or "artifact", **report.model_dump(mode="json")}
    return json.dumps(output, indent=2, ensure_ascii=False)
