"""Pipeline orchestrator: runs all stages in sequence."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console

from surveyflow.config import SurveyflowSettings
from surveyflow.errors import ComputationError, FormatError, SurveyflowError
from surveyflow.models import (
    Finding,
    PipelineResult,
    Question,
    RawResponseRecord,
    ValidationReport,
)

logger = logging.getLogger(__name__)
console = Console(width=min(80, Console().width))

STAGE_PARSE_STRUCTURE = "parse_structure"
STAGE_INGEST = "ingest"
STAGE_MAP_RESPONSES = "map_responses"
STAGE_STATISTICS = "statistics"
STAGE_CORRELATION = "correlation"
STAGE_WRITE_REPORT = "write_report"


# ---------------------------------------------------------------------------
# CLI output helpers
# ---------------------------------------------------------------------------


def _format_duration(seconds: float) -> str:
    """Format seconds as '0.1s' or '3m 41s'."""
    if seconds >= 60:
        m, s = divmod(int(seconds), 60)
        return f"{m}m {s:02d}s"
    return f"{seconds:.1f}s"


def _print_step(message: str, elapsed: float) -> None:
    """Print a completed pipeline step with green ✓ and right-aligned timing."""
    time_str = _format_duration(elapsed)
    padding = max(1, 58 - len(message))
    console.print(f" [green]✓[/green] {message}{' ' * padding}[dim]{time_str}[/dim]")


def _print_warn(message: str) -> None:
    console.print(f"   [dim yellow]{message}[/dim yellow]")


@contextmanager
def _stage(name: str, *, wrap_unexpected: bool = False) -> Iterator[None]:
    """Label errors raised inside the block with the stage *name*.

    With *wrap_unexpected*, any non-surveyflow exception becomes a
    ComputationError.
    """
    try:
        yield
    except SurveyflowError as exc:
        if not exc.stage:
            exc.stage = name
        raise
    except Exception as exc:
        if not wrap_unexpected:
            raise
        raise ComputationError(f"Unexpected failure: {exc}", stage=name) from exc


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class Pipeline:
    """Orchestrates the survey processing stages.

    Each call is independent: the settings object is the only state shared
    between runs.
    """

    def __init__(
        self,
        settings: SurveyflowSettings,
        verbose: bool = False,
        quiet: bool = False,
    ) -> None:
        from surveyflow.analysis.correlation import CORRELATION_MODES
        from surveyflow.analysis.statistics import COMPLETION_DENOMINATORS

        if settings.correlation_mode not in CORRELATION_MODES:
            raise ValueError(f"Unknown correlation mode: {settings.correlation_mode!r}")
        if settings.completion_denominator not in COMPLETION_DENOMINATORS:
            raise ValueError(
                f"Unknown completion denominator: {settings.completion_denominator!r}"
            )
        self.settings = settings
        self.verbose = verbose
        self.quiet = quiet
        self._logging_configured = False

    def _configure_logging(self, output_dir: Path | None) -> None:
        """Set up terminal + log file handlers (idempotent)."""
        if self._logging_configured:
            return
        from surveyflow.logging import setup_logging

        setup_logging(output_dir=output_dir, verbose=self.verbose)
        self._logging_configured = True

    def _step(self, message: str, t0: float) -> None:
        if not self.quiet:
            _print_step(message, time.perf_counter() - t0)

    # -- Stages that touch files --------------------------------------------

    def load_questions(self, structure_path: Path) -> tuple[list[Question], list[Finding]]:
        """Read and check the structure file.

        Returns the questions and the WARNING findings; ERROR findings
        raise StructureError.
        """
        from surveyflow.stages.structure import load_structure, raise_for_errors

        with _stage(STAGE_PARSE_STRUCTURE):
            check = load_structure(structure_path, self.settings.structure_identifier)
            raise_for_errors(check)
        return check.questions, check.warnings

    def load_responses(self, responses_path: Path) -> list[RawResponseRecord]:
        from surveyflow.stages.ingest import read_responses

        with _stage(STAGE_INGEST):
            return read_responses(responses_path)

    def run(
        self,
        structure_path: Path,
        responses_path: Path,
        output_dir: Path | None = None,
    ) -> PipelineResult:
        """Run every stage on two input files.

        The report is written to *output_dir* (default: the configured
        output directory) unless ``write_report`` is off.
        """
        out = output_dir or self.settings.output_dir
        self._configure_logging(out if self.settings.write_report else None)
        pipeline_start = time.perf_counter()

        t0 = time.perf_counter()
        questions, structure_warnings = self.load_questions(structure_path)
        self._step(f"Parsed structure, {len(questions)} questions", t0)

        t0 = time.perf_counter()
        records = self.load_responses(responses_path)
        self._step(f"Read responses, {len(records)} rows", t0)

        result = self.process(questions, records, structure_warnings=structure_warnings)

        if self.settings.write_report:
            from surveyflow.output import write_report

            t0 = time.perf_counter()
            with _stage(STAGE_WRITE_REPORT):
                try:
                    result.report_path = write_report(result, out)
                except OSError as exc:
                    raise FormatError(f"Could not write report: {exc}") from exc
            self._step("Wrote report", t0)

        result.elapsed_seconds = time.perf_counter() - pipeline_start
        logger.info("Pipeline finished in %s", _format_duration(result.elapsed_seconds))
        return result

    # -- In-memory processing -----------------------------------------------

    def process(
        self,
        questions: Sequence[Question],
        records: Sequence[RawResponseRecord],
        *,
        structure_warnings: Sequence[Finding] = (),
    ) -> PipelineResult:
        """Map, validate and analyse already-loaded inputs."""
        from surveyflow.analysis.correlation import build_correlation_matrix
        from surveyflow.analysis.statistics import compute_statistics
        from surveyflow.stages.ingest import get_ingest_findings, get_unmatched_columns
        from surveyflow.stages.mapping import (
            get_mapping_findings,
            map_responses,
            validate_mapped_data,
        )

        report = ValidationReport(survey_structure=list(structure_warnings))

        t0 = time.perf_counter()
        with _stage(STAGE_MAP_RESPONSES):
            mapped = map_responses(questions, records)
            validate_mapped_data(mapped, questions)
            report.response_data = get_ingest_findings(records, self.settings.required_columns)
            report.mapped_data = get_mapping_findings(mapped)
            unmatched = get_unmatched_columns(
                records, [q.id for q in questions], self.settings.metadata_columns,
            )
        if unmatched:
            logger.info("Columns with no matching question: %s", ", ".join(unmatched))
        self._step(f"Mapped {len(mapped)} respondents", t0)

        t0 = time.perf_counter()
        with _stage(STAGE_STATISTICS, wrap_unexpected=True):
            statistics = compute_statistics(
                mapped, questions, denominator=self.settings.completion_denominator,
            )
        self._step("Computed statistics", t0)

        t0 = time.perf_counter()
        with _stage(STAGE_CORRELATION, wrap_unexpected=True):
            correlation = build_correlation_matrix(
                mapped, [q.id for q in questions], mode=self.settings.correlation_mode,
            )
        self._step("Computed correlations", t0)

        for finding in (*report.survey_structure, *report.response_data, *report.mapped_data):
            logger.info("Finding (%s): %s", finding.code.value, finding.message)
            if not self.quiet:
                _print_warn(finding.message)

        return PipelineResult(
            project_name=self.settings.project_name,
            questions=list(questions),
            responses=list(records),
            mapped_data=mapped,
            statistics=statistics,
            correlation=correlation,
            warnings=report,
        )


def process_survey(
    structure_text: str,
    records: Sequence[RawResponseRecord],
    settings: SurveyflowSettings | None = None,
) -> PipelineResult:
    """Process a structure literal and loaded rows without touching the disk."""
    from surveyflow.config import load_settings
    from surveyflow.stages.structure import (
        check_structure,
        raise_for_errors,
        read_structure_literal,
    )

    pipeline = Pipeline(settings or load_settings(), quiet=True)
    with _stage(STAGE_PARSE_STRUCTURE):
        check = check_structure(
            read_structure_literal(structure_text, pipeline.settings.structure_identifier)
        )
        raise_for_errors(check)
    return pipeline.process(check.questions, records, structure_warnings=check.warnings)
