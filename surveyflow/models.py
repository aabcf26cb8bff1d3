"""Pydantic models shared across the processing stages.

Attributes are snake_case in Python; serialisation uses camelCase aliases so
the JSON report keeps the field names of the questionnaire format
(``questionId``, ``rawValue``, ``freeTextPlaceholder``...).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# One respondent row: column name -> cell value.  A missing key (or None) is an
# absent cell; "" is an explicit empty answer.
RawResponseRecord = dict[str, Union[str, int, float, None]]


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Questionnaire structure
# ---------------------------------------------------------------------------


class QuestionType(str, Enum):
    """Question kinds understood by the questionnaire format."""

    SINGLE_CHOICE = "singleChoice"
    FREE_TEXT = "freeText"
    COMMUNE = "commune"
    STREET = "street"
    GARE = "gare"


QUESTION_TYPES = [t.value for t in QuestionType]

# Types whose answers are free-form and therefore always valid.
OPEN_TYPES = (QuestionType.FREE_TEXT, QuestionType.COMMUNE, QuestionType.STREET, QuestionType.GARE)


class Option(_Model):
    """One answer option of a single-choice question."""

    id: int
    text: str
    next: str


class _QuestionBase(_Model):
    id: str
    text: str
    next: str | None = None
    image: str | None = None
    image_alt: str | None = None
    free_text_placeholder: str | None = None


class ChoiceQuestion(_QuestionBase):
    """A ``singleChoice`` question: the answer is one option id."""

    type: Literal["singleChoice"]
    options: list[Option] = Field(min_length=1)


class OpenQuestion(_QuestionBase):
    """A free-form question (free text, commune, street or station)."""

    type: Literal["freeText", "commune", "street", "gare"]
    options: list[Option] | None = None


Question = Annotated[Union[ChoiceQuestion, OpenQuestion], Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Validation findings
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingCode(str, Enum):
    """Machine-readable finding kinds."""

    # Structure
    DUPLICATE_QUESTION_ID = "duplicate_question_id"
    MISSING_QUESTION_ID = "missing_question_id"
    MISSING_QUESTION_TEXT = "missing_question_text"
    MISSING_QUESTION_TYPE = "missing_question_type"
    INVALID_QUESTION_TYPE = "invalid_question_type"
    MISSING_OPTIONS = "missing_options"
    EMPTY_OPTIONS = "empty_options"
    INVALID_OPTION = "invalid_option"
    MISSING_OPTION_ID = "missing_option_id"
    NON_NUMERIC_OPTION_ID = "non_numeric_option_id"
    MISSING_OPTION_TEXT = "missing_option_text"
    MISSING_OPTION_NEXT = "missing_option_next"
    DUPLICATE_OPTION_ID = "duplicate_option_id"
    MISSING_PLACEHOLDER = "missing_placeholder"

    # Response table
    NO_DATA = "no_data"
    EMPTY_TABLE = "empty_table"
    INVALID_ROW = "invalid_row"
    MISSING_COLUMNS = "missing_columns"
    EMPTY_ROWS = "empty_rows"
    DUPLICATE_RESPONDENT_ID = "duplicate_respondent_id"

    # Mapped data
    NO_MAPPED_DATA = "no_mapped_data"
    NO_RESPONSES = "no_responses"
    UNKNOWN_FLOW = "unknown_flow"
    INVALID_RESPONSES = "invalid_responses"
    INVALID_RESPONSE_DETAIL = "invalid_response_detail"
    QUESTION_ERRORS = "question_errors"


class Finding(_Model):
    """A non-fatal validation finding, collected rather than raised."""

    code: FindingCode
    message: str
    severity: Severity = Severity.ERROR
    question_id: str | None = None
    count: int | None = None

    def __str__(self) -> str:
        return self.message


class ValidationReport(_Model):
    """Non-fatal findings partitioned by the input they concern."""

    survey_structure: list[Finding] = Field(default_factory=list)
    response_data: list[Finding] = Field(default_factory=list)
    mapped_data: list[Finding] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.survey_structure or self.response_data or self.mapped_data)

    @property
    def total(self) -> int:
        return len(self.survey_structure) + len(self.response_data) + len(self.mapped_data)


# ---------------------------------------------------------------------------
# Mapped responses
# ---------------------------------------------------------------------------


class FlowType(str, Enum):
    """Respondent segment, derived from the classification question."""

    MONTANTS = "MONTANTS"
    ACCOMPAGNATEURS = "ACCOMPAGNATEURS"
    DESCENDANTS = "DESCENDANTS"
    UNKNOWN = "UNKNOWN"


class MappedResponse(_Model):
    """One answer located, typed and (after the second pass) validated."""

    question_id: str
    question_text: str
    response_type: str
    raw_value: str | int | float | None = None
    label: str | None = None
    is_valid: bool = True
    validation_error: str | None = None


class MappedRespondent(_Model):
    """A respondent's applicable answers plus their flow."""

    id: str
    responses: list[MappedResponse] = Field(default_factory=list)
    flow_type: FlowType
    validation_errors: list[str] | None = None

    def response_for(self, question_id: str) -> MappedResponse | None:
        for response in self.responses:
            if response.question_id == question_id:
                return response
        return None


# ---------------------------------------------------------------------------
# Statistics and correlation
# ---------------------------------------------------------------------------


class ResponseCount(_Model):
    value: str
    label: str | None = None
    count: int
    percentage: int


class QuestionStatistic(_Model):
    question_id: str
    question_text: str
    response_type: str
    total_responses: int
    skipped_responses: int  # includes respondents the question does not apply to
    not_applicable_responses: int = 0
    response_counts: list[ResponseCount] = Field(default_factory=list)


class SurveyStatistics(_Model):
    total_respondents: int
    flow_distribution: dict[FlowType, int]
    completion_rate: int  # 0-100
    questions: list[QuestionStatistic] = Field(default_factory=list)


class CorrelationMatrix(_Model):
    """Square matrix of pairwise coefficients, indexed by ``question_ids``."""

    question_ids: list[str] = Field(default_factory=list)
    values: list[list[float]] = Field(default_factory=list)
    mode: str = "joined"

    def coefficient(self, a: str, b: str) -> float:
        """Look up the coefficient between two question ids."""
        i = self.question_ids.index(a)
        j = self.question_ids.index(b)
        return self.values[i][j]


# ---------------------------------------------------------------------------
# Pipeline result
# ---------------------------------------------------------------------------


class PipelineResult(_Model):
    """Everything one pipeline run produces."""

    project_name: str
    questions: list[Question]
    responses: list[RawResponseRecord]
    mapped_data: list[MappedRespondent]
    statistics: SurveyStatistics
    correlation: CorrelationMatrix
    warnings: ValidationReport = Field(default_factory=ValidationReport)
    report_path: Path | None = None
    elapsed_seconds: float = 0.0

    def get_question_statistics(self, question_id: str) -> QuestionStatistic | None:
        for stat in self.statistics.questions:
            if stat.question_id == question_id:
                return stat
        return None

    def get_respondent(self, respondent_id: str) -> MappedRespondent | None:
        for respondent in self.mapped_data:
            if respondent.id == respondent_id:
                return respondent
        return None

    def get_flow_statistics(self, flow_type: FlowType | str) -> SurveyStatistics:
        """Recompute statistics for the respondents of a single flow."""
        from surveyflow.analysis.statistics import flow_statistics

        return flow_statistics(self.mapped_data, self.questions, FlowType(flow_type))
