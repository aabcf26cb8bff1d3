"""Command-line interface for surveyflow."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from surveyflow import __version__
from surveyflow.config import load_settings
from surveyflow.errors import SurveyflowError
from surveyflow.models import Finding, PipelineResult

app = typer.Typer(
    name="surveyflow",
    help="Questionnaire response mapping and survey statistics.",
    no_args_is_help=True,
)
console = Console(width=min(80, Console().width))


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"surveyflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version", "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Questionnaire response mapping and survey statistics."""


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_error(exc: SurveyflowError) -> None:
    label = f"{exc.kind} error"
    if exc.stage:
        label += f" in {exc.stage}"
    console.print(f"[red]{label.capitalize()}:[/red] {exc.message}")
    for finding in getattr(exc, "findings", []):
        console.print(f"   [dim red]{finding.message}[/dim red]")


def _print_findings(title: str, findings: list[Finding]) -> None:
    if not findings:
        return
    console.print(f"\n  [yellow]{title}[/yellow]")
    for finding in findings:
        console.print(f"   [dim yellow]{finding}[/dim yellow]")


def _print_pipeline_summary(result: PipelineResult) -> None:
    """Print flow distribution, completion and the report location."""
    from surveyflow.pipeline import _format_duration

    stats = result.statistics
    console.print(
        f"\n  [dim]{stats.total_respondents} respondents · "
        f"{len(stats.questions)} questions · "
        f"{stats.completion_rate}% completion[/dim]"
    )

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Flow")
    table.add_column("Respondents", justify="right")
    for flow, count in stats.flow_distribution.items():
        table.add_row(flow.value, str(count))
    console.print(table)

    warnings = result.warnings
    if not warnings.is_empty:
        console.print(f"\n  [yellow]{warnings.total} warning(s)[/yellow]")

    report_path = result.report_path
    if report_path and report_path.exists():
        file_url = f"file://{report_path.resolve()}"
        console.print(f"\n  Report:  [link={file_url}]{report_path.name}[/link]")

    if result.elapsed_seconds:
        console.print(f"\n  [green]Done[/green] in {_format_duration(result.elapsed_seconds)}")
    else:
        console.print("\n  [green]Done.[/green]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def run(
    structure: Annotated[
        Path,
        typer.Argument(
            help="Questionnaire structure (.js/.ts literal, .json or .yaml).",
            exists=True,
            dir_okay=False,
        ),
    ],
    responses: Annotated[
        Path,
        typer.Argument(
            help="Response table (.xlsx workbook or .csv).",
            exists=True,
            dir_okay=False,
        ),
    ],
    output_dir: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output directory for the JSON report. [default: output]"),
    ] = None,
    project_name: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Project name shown in the report."),
    ] = None,
    correlation_mode: Annotated[
        str | None,
        typer.Option(
            "--correlation",
            help="Correlation pairing: joined (by respondent) or positional. [default: joined]",
        ),
    ] = None,
    completion: Annotated[
        str | None,
        typer.Option(
            "--completion",
            help="Completion denominator: global or per-flow. [default: global]",
        ),
    ] = None,
    no_report: Annotated[
        bool,
        typer.Option("--no-report", help="Do not write the JSON report."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Only print the summary."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Map survey responses onto a questionnaire and compute statistics."""
    settings = load_settings(
        output_dir=output_dir,
        project_name=project_name,
        correlation_mode=correlation_mode,
        completion_denominator=completion,
        write_report=False if no_report else None,
    )

    from surveyflow.pipeline import Pipeline

    try:
        pipeline = Pipeline(settings, verbose=verbose, quiet=quiet)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2)

    console.print(f"\nsurveyflow [dim]v{__version__} · {settings.project_name}[/dim]\n")
    try:
        result = pipeline.run(structure, responses, output_dir)
    except SurveyflowError as exc:
        _print_error(exc)
        raise typer.Exit(1)

    _print_pipeline_summary(result)


@app.command()
def check(
    structure: Annotated[
        Path,
        typer.Argument(
            help="Questionnaire structure (.js/.ts literal, .json or .yaml).",
            exists=True,
            dir_okay=False,
        ),
    ],
    responses: Annotated[
        Path | None,
        typer.Argument(
            help="Optional response table to check against the structure.",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
) -> None:
    """Validate inputs without computing statistics.

    Exits 1 when the structure has errors; warnings alone exit 0.
    """
    from surveyflow.stages.ingest import get_ingest_findings, get_unmatched_columns, read_responses
    from surveyflow.stages.mapping import (
        get_mapping_findings,
        map_responses,
        validate_mapped_data,
    )
    from surveyflow.stages.structure import load_structure

    settings = load_settings()
    try:
        check_result = load_structure(structure, settings.structure_identifier)
    except SurveyflowError as exc:
        _print_error(exc)
        raise typer.Exit(1)

    if not check_result.ok:
        console.print(f"[red]{structure.name}: {len(check_result.errors)} error(s)[/red]")
        for finding in check_result.errors:
            console.print(f"   [dim red]{finding.message}[/dim red]")
        raise typer.Exit(1)

    console.print(
        f" [green]✓[/green] {structure.name}: {len(check_result.questions)} questions"
    )
    _print_findings("Structure warnings", check_result.warnings)

    if responses is None:
        return

    try:
        records = read_responses(responses)
    except SurveyflowError as exc:
        _print_error(exc)
        raise typer.Exit(1)

    console.print(f" [green]✓[/green] {responses.name}: {len(records)} rows")
    _print_findings("Response table", get_ingest_findings(records, settings.required_columns))
    unmatched = get_unmatched_columns(
        records, [q.id for q in check_result.questions], settings.metadata_columns,
    )
    if unmatched:
        console.print(f"\n  [yellow]Columns with no matching question[/yellow]: {', '.join(unmatched)}")

    mapped = validate_mapped_data(map_responses(check_result.questions, records), check_result.questions)
    _print_findings("Mapped data", get_mapping_findings(mapped))
