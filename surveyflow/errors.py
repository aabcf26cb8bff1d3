"""Fatal error kinds raised by the processing stages.

Validation findings are never raised; they are collected as
:class:`~surveyflow.models.Finding` objects and returned alongside the
output.  The exceptions here abort the stage that raised them and, through
the pipeline, every stage after it.

Each error carries a ``kind`` (stable, machine-readable) and a ``stage``
(filled in by the pipeline) so callers can choose their own presentation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from surveyflow.models import Finding


class SurveyflowError(Exception):
    """Base class for fatal processing errors."""

    kind = "error"

    def __init__(self, message: str, *, stage: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class FormatError(SurveyflowError):
    """Input cannot be read: empty or malformed structure, missing table, corrupt sheet."""

    kind = "format"


class StructureError(FormatError):
    """The structure parsed but failed validation.

    ``findings`` holds the ERROR-severity findings that made it fatal.
    """

    kind = "structure"

    def __init__(
        self,
        message: str,
        findings: list[Finding] | None = None,
        *,
        stage: str = "",
    ) -> None:
        super().__init__(message, stage=stage)
        self.findings = list(findings or [])


class MappingError(SurveyflowError):
    """Structurally invalid inputs to the response mapper (e.g. ``None`` collections)."""

    kind = "mapping"


class ComputationError(SurveyflowError):
    """Unexpected invariant break while computing statistics or correlations."""

    kind = "computation"
