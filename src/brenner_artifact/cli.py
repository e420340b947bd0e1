"""
Command-line interface for artifact compilation.

Usage:
    brenner-artifact extract <body.md>              # Parse delta blocks in a message body
    brenner-artifact classify <subject>...          # Classify subject lines
    brenner-artifact compile <messages.json>        # Merge a thread into an artifact
    brenner-artifact lint <artifact.json>           # Lint a compiled artifact
    brenner-artifact render <artifact.json>         # Render canonical markdown
    brenner-artifact status <messages.json>         # Show round, phase, roles and acks
    brenner-artifact schema <section>               # Print a section's payload JSON schema
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from brenner_artifact.extraction.parser import extract as extract_deltas
from brenner_artifact.lint.engine import lint as lint_artifact
from brenner_artifact.lint.report import format_lint_report_human, format_lint_report_json
from brenner_artifact.models.artifact import Artifact
from brenner_artifact.models.delta import Delta
from brenner_artifact.models.message import Message
from brenner_artifact.models.payloads import payload_model_for
from brenner_artifact.models.results import LintSeverity
from brenner_artifact.models.sections import DeltaSection
from brenner_artifact.pipeline import compile_thread
from brenner_artifact.render.markdown import render as render_artifact
from brenner_artifact.settings import get_settings
from brenner_artifact.threads.classifier import classify as classify_subject
from brenner_artifact.threads.status import format_thread_status_summary
from brenner_artifact.threads.status import status as thread_status
from brenner_artifact.transport import load_messages

app = typer.Typer(
    name="brenner-artifact",
    help="Delta extraction, merge, lint and thread status for Brenner Protocol threads",
)
console = Console()

_SEVERITY_STYLES = {
    LintSeverity.ERROR: "red",
    LintSeverity.WARNING: "yellow",
    LintSeverity.INFO: "dim",
}


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Cannot read {path}: {exc}[/red]")
        raise typer.Exit(1)


def _load_messages(path: Path) -> List[Message]:
    try:
        return load_messages(path)
    except (OSError, ValueError) as exc:
        # ValidationError subclasses ValueError
        console.print(f"[red]Cannot load messages from {path}: {exc}[/red]")
        raise typer.Exit(1)


def _load_artifact(path: Path) -> Artifact:
    text = _read_text(path)
    try:
        return Artifact.model_validate_json(text)
    except ValidationError as exc:
        console.print(f"[red]Invalid artifact {path}:[/red]\n{exc}")
        raise typer.Exit(1)


def _write_or_print(text: str, out: Optional[Path]) -> None:
    if out is None:
        typer.echo(text, nl=False)
        return
    out.write_text(text, encoding="utf-8")
    console.print(f"[green]✓ Wrote {out}[/green]")


@app.command()
def extract(
    body_file: Path = typer.Argument(..., help="Markdown file holding a message body"),
    as_json: bool = typer.Option(False, "--json", help="Print the ParsedMessage as JSON"),
):
    """
    Parse the delta blocks in a message body.
    """
    parsed = extract_deltas(_read_text(body_file))
    if as_json:
        typer.echo(parsed.model_dump_json(indent=2))
        return

    table = Table(title=f"Delta blocks: {body_file.name}", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Valid", justify="center")
    table.add_column("Operation")
    table.add_column("Section")
    table.add_column("Target")
    table.add_column("Detail")
    for index, delta in enumerate(parsed.deltas, start=1):
        if isinstance(delta, Delta):
            table.add_row(
                str(index),
                "[green]yes[/green]",
                delta.operation.value,
                delta.section.value,
                delta.target_id or "(new)",
                ", ".join(delta.payload),
            )
        else:
            table.add_row(str(index), "[red]no[/red]", "", "", "", escape(delta.error))
    console.print(table)
    console.print(
        f"{parsed.total_blocks} blocks: "
        f"[green]{parsed.valid_count} valid[/green], [red]{parsed.invalid_count} invalid[/red]"
    )
    if parsed.invalid_count:
        raise typer.Exit(1)


@app.command()
def classify(
    subjects: List[str] = typer.Argument(..., help="Subject lines to classify"),
):
    """
    Classify subject lines by their leading marker.
    """
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Subject")
    table.add_column("Type", style="cyan")
    table.add_column("Role")
    table.add_column("Version", justify="right")
    for subject in subjects:
        result = classify_subject(subject)
        table.add_row(
            escape(subject),
            result.type.value,
            result.role.value if result.role else "",
            str(result.version) if result.version is not None else "",
        )
    console.print(table)


@app.command("compile")
def compile_command(
    messages_file: Path = typer.Argument(..., help="JSON file with the thread's messages"),
    thread_id: Optional[str] = typer.Option(None, "--thread-id", "-t", help="Thread identifier"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write artifact JSON here"),
    markdown: Optional[Path] = typer.Option(None, "--markdown", "-m", help="Write rendered markdown here"),
):
    """
    Merge every delta in a thread into a fresh artifact, then lint and render it.
    """
    report = compile_thread(_load_messages(messages_file), thread_id=thread_id)

    if not report.ok:
        console.print(f"[red]Baseline corruption; no artifact produced for {report.thread_id}[/red]")
        for issue in report.merge.errors:
            console.print(f"  {escape(issue.to_log_message())}")
        raise typer.Exit(1)

    artifact = report.artifact
    console.print(
        f"\n[bold cyan]{report.thread_id}[/bold cyan] v{artifact.metadata.version}: "
        f"{report.total_blocks} blocks, {len(report.invalid)} invalid, "
        f"{report.merge.applied_count} applied, {report.merge.skipped_count} skipped"
    )
    console.print(f"[dim]sha256 {report.digest}[/dim]")
    for outcome in report.invalid:
        console.print(f"  [red]invalid[/red] message {outcome.message_id}: {escape(outcome.reason or '')}")
    for issue in report.merge.warnings:
        console.print(f"  [yellow]{escape(issue.to_log_message())}[/yellow]")

    lint_report = report.lint
    style = "green" if lint_report.valid else "red"
    console.print(
        f"Lint: [{style}]{'VALID' if lint_report.valid else 'INVALID'}[/{style}] "
        f"({lint_report.summary.errors} errors, {lint_report.summary.warnings} warnings, "
        f"{lint_report.summary.info} info)"
    )

    if out:
        out.write_text(artifact.to_json() + "\n", encoding="utf-8")
        console.print(f"[green]✓ Wrote {out}[/green]")
    if markdown:
        markdown.write_text(report.markdown, encoding="utf-8")
        console.print(f"[green]✓ Wrote {markdown}[/green]")


@app.command()
def lint(
    artifact_file: Path = typer.Argument(..., help="Artifact JSON file"),
    output_format: str = typer.Option(
        "table", "--format", "-f", help="Output format: 'table', 'human' or 'json'"
    ),
    name: Optional[str] = typer.Option(None, "--name", help="Artifact name shown in the report"),
):
    """
    Lint a compiled artifact. Exits 1 when any error-severity issue is found.
    """
    artifact = _load_artifact(artifact_file)
    report = lint_artifact(artifact)
    label = name or artifact.metadata.thread_id

    if output_format == "json":
        typer.echo(format_lint_report_json(report, label))
    elif output_format == "human":
        typer.echo(format_lint_report_human(report, label))
    elif output_format == "table":
        table = Table(title=f"Lint: {label}", show_header=True, header_style="bold cyan")
        table.add_column("Rule")
        table.add_column("Severity")
        table.add_column("Entry")
        table.add_column("Message")
        for issue in report.issues:
            style = _SEVERITY_STYLES[issue.severity]
            table.add_row(
                issue.rule_id,
                f"[{style}]{issue.severity.value}[/{style}]",
                issue.entry_id or "",
                escape(issue.message),
            )
        console.print(table)
        summary = report.summary
        console.print(
            f"{'VALID' if report.valid else 'INVALID'}: {summary.errors} errors, "
            f"{summary.warnings} warnings, {summary.info} info"
        )
    else:
        console.print(f"[red]Invalid format: {output_format}. Use 'table', 'human' or 'json'.[/red]")
        raise typer.Exit(1)

    if not report.valid:
        raise typer.Exit(1)


@app.command()
def render(
    artifact_file: Path = typer.Argument(..., help="Artifact JSON file"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write markdown here"),
):
    """
    Render an artifact to canonical markdown.
    """
    _write_or_print(render_artifact(_load_artifact(artifact_file)), out)


@app.command()
def status(
    messages_file: Path = typer.Argument(..., help="JSON file with the thread's messages"),
    as_json: bool = typer.Option(False, "--json", help="Print the ThreadStatus as JSON"),
):
    """
    Show round, phase, role completion and pending acknowledgements.
    """
    result = thread_status(_load_messages(messages_file))
    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return
    console.print(format_thread_status_summary(result), markup=False)


@app.command()
def schema(
    section: DeltaSection = typer.Argument(..., help="Artifact section"),
):
    """
    Print the JSON schema of a section's delta payload.
    """
    typer.echo(json.dumps(payload_model_for(section).model_json_schema(), indent=2))


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
