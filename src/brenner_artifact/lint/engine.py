"""Run the lint rules over an artifact and build the report."""

from __future__ import annotations

import logging

from brenner_artifact.lint.rules import RULES, LintCollector, LintConfig
from brenner_artifact.models.artifact import Artifact
from brenner_artifact.models.results import LintReport, LintSeverity, LintSummary

logger = logging.getLogger(__name__)


def lint(artifact: Artifact, config: LintConfig | None = None) -> LintReport:
    """
    Lint an artifact snapshot.

    Works on the artifact's current state only, so it can be re-run on any
    snapshot, including one loaded from storage.

    Returns:
        LintReport with issues ordered by severity, then rule id
    """
    collector = LintCollector(config=config or LintConfig.from_settings())
    for rule in RULES:
        rule(artifact, collector)

    issues = sorted(collector.issues, key=lambda i: (i.severity.rank, i.rule_id))
    summary = LintSummary(
        errors=sum(1 for i in issues if i.severity == LintSeverity.ERROR),
        warnings=sum(1 for i in issues if i.severity == LintSeverity.WARNING),
        info=sum(1 for i in issues if i.severity == LintSeverity.INFO),
    )
    logger.debug(
        "Linted %s: %d errors, %d warnings, %d info",
        artifact.metadata.thread_id,
        summary.errors,
        summary.warnings,
        summary.info,
    )
    return LintReport(valid=summary.errors == 0, summary=summary, issues=issues)
