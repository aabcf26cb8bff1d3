"""Stage 4: join the structure with raw rows into per-respondent responses.

Mapping is two passes.  :func:`map_responses` locates and types every
applicable answer; :func:`validate_mapped_data` then checks each answer
against its question and sets ``is_valid`` / ``validation_error`` in place.
Statistics and correlation only run once both passes are done.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence

from surveyflow.config import ID_COLUMN
from surveyflow.errors import MappingError
from surveyflow.models import (
    OPEN_TYPES,
    Finding,
    FindingCode,
    FlowType,
    MappedRespondent,
    MappedResponse,
    Question,
    QuestionType,
)
from surveyflow.stages.flow import classify_flow, question_applies_to_flow
from surveyflow.utils.values import coerce_int, is_blank

logger = logging.getLogger(__name__)

NO_RESPONSES_ERROR = "No valid response found for this respondent"
UNKNOWN_FLOW_ERROR = "Unknown flow type (invalid Q1)"


def respondent_id(record: Mapping[str, object], index: int) -> str:
    """The row's ``ID_questionnaire``, or ``Respondent_<n>`` (1-based)."""
    value = record.get(ID_COLUMN)
    if is_blank(value):
        return f"Respondent_{index + 1}"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _option_label(question: Question, value: object) -> str | None:
    if question.type != QuestionType.SINGLE_CHOICE or not question.options:
        return None
    choice = coerce_int(value)
    if choice is None:
        return None
    for option in question.options:
        if option.id == choice:
            return option.text
    return None


def map_respondent(
    structure: Sequence[Question],
    record: Mapping[str, object],
    index: int = 0,
) -> MappedRespondent:
    """Map one raw row.

    Questions are visited in declared order.  A question is skipped when the
    respondent's flow does not admit it or when its cell is absent (missing or
    None); an explicit empty string is kept as an answer.
    """
    flow = classify_flow(record)
    responses: list[MappedResponse] = []

    for question in structure:
        if not question_applies_to_flow(question.id, flow):
            continue
        value = record.get(question.id)
        if value is None:
            continue
        responses.append(MappedResponse(
            question_id=question.id,
            question_text=question.text,
            response_type=question.type,
            raw_value=value,
            label=_option_label(question, value),
        ))

    return MappedRespondent(id=respondent_id(record, index), responses=responses, flow_type=flow)


_CELL_TYPES = (str, int, float)


def _check_record(record: object, index: int) -> None:
    if not isinstance(record, Mapping):
        raise MappingError(f"Invalid response data: row {index + 1} is not a record")
    for column, value in record.items():
        if not isinstance(column, str):
            raise MappingError(
                f"Invalid response data: row {index + 1} has a non-text column name {column!r}"
            )
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, _CELL_TYPES):
            raise MappingError(
                f"Invalid response data: row {index + 1}, column \"{column}\" "
                f"holds a {type(value).__name__}; expected text or a number"
            )


def map_responses(
    structure: Sequence[Question] | None,
    records: Sequence[Mapping[str, object]] | None,
) -> list[MappedRespondent]:
    """Map every row.

    Raises MappingError when either collection is missing, or when a row is not
    a record or holds a cell that is neither text nor a number.
    """
    if structure is None or not isinstance(structure, (list, tuple)):
        raise MappingError("Invalid questionnaire structure")
    if records is None or not isinstance(records, (list, tuple)):
        raise MappingError("Invalid response data")
    for index, record in enumerate(records):
        _check_record(record, index)

    mapped = [map_respondent(structure, record, i) for i, record in enumerate(records)]
    logger.info(
        "Mapped %d respondent(s), %d response(s)",
        len(mapped),
        sum(len(r.responses) for r in mapped),
    )
    return mapped


# -- Validation -------------------------------------------------------------------


def validate_response(question: Question, value: object) -> bool:
    """Whether *value* is an acceptable answer to *question*.

    Free-form types accept anything.  A single-choice answer is valid when
    blank (the respondent did not answer) or when it names an option id.
    """
    if question.type in OPEN_TYPES:
        return True
    if question.type == QuestionType.SINGLE_CHOICE and question.options:
        if is_blank(value):
            return True
        choice = coerce_int(value)
        return choice is not None and any(o.id == choice for o in question.options)
    return True


def response_validation_error(question: Question, value: object) -> str:
    """Describe why *value* was rejected for *question*."""
    if question.type == QuestionType.SINGLE_CHOICE and question.options:
        if is_blank(value):
            return "Empty answer to a choice question (legitimate if the respondent did not answer)"
        choice = coerce_int(value)
        if choice is None:
            return f'Answer "{value}" is not a valid number for a choice question'
        valid = ", ".join(str(o.id) for o in question.options)
        return f'Option "{choice}" is invalid. Valid options: {valid}'
    return f'Invalid answer for question of type "{question.type}"'


def validate_mapped_data(
    mapped: list[MappedRespondent],
    structure: Sequence[Question],
) -> list[MappedRespondent]:
    """Second pass: validate each response against its question, in place.

    Returns *mapped* for chaining.
    """
    by_id = {q.id: q for q in structure}

    for respondent in mapped:
        for response in respondent.responses:
            question = by_id.get(response.question_id)
            if question is None:
                response.is_valid = False
                response.validation_error = (
                    f'Question "{response.question_id}" not found in the structure'
                )
                continue
            response.is_valid = validate_response(question, response.raw_value)
            response.validation_error = (
                None if response.is_valid
                else response_validation_error(question, response.raw_value)
            )

        errors: list[str] = []
        if not respondent.responses:
            errors.append(NO_RESPONSES_ERROR)
        if respondent.flow_type == FlowType.UNKNOWN:
            errors.append(UNKNOWN_FLOW_ERROR)
        respondent.validation_errors = errors or None

    return mapped


def get_mapping_findings(mapped: Sequence[MappedRespondent] | None) -> list[Finding]:
    """Summarise a validated dataset as findings.

    Invalid responses are broken down by distinct error message and by
    question id, most frequent first; ties keep first-seen order.
    """
    if mapped is None:
        return [Finding(code=FindingCode.NO_MAPPED_DATA, message="Invalid mapped data")]
    if not mapped:
        return [Finding(code=FindingCode.NO_MAPPED_DATA, message="No response data found")]

    findings: list[Finding] = []

    no_responses = sum(1 for r in mapped if not r.responses)
    if no_responses:
        findings.append(Finding(
            code=FindingCode.NO_RESPONSES,
            message=f"{no_responses} respondent(s) have no valid response",
            count=no_responses,
        ))

    unknown_flow = sum(1 for r in mapped if r.flow_type == FlowType.UNKNOWN)
    if unknown_flow:
        findings.append(Finding(
            code=FindingCode.UNKNOWN_FLOW,
            message=f"{unknown_flow} respondent(s) have an unknown flow type (invalid Q1)",
            count=unknown_flow,
        ))

    by_message: Counter[str] = Counter()
    by_question: Counter[str] = Counter()
    for respondent in mapped:
        for response in respondent.responses:
            if response.is_valid:
                continue
            by_message[response.validation_error or "Invalid answer"] += 1
            by_question[response.question_id] += 1

    invalid = sum(by_message.values())
    if invalid:
        findings.append(Finding(
            code=FindingCode.INVALID_RESPONSES,
            message=f"{invalid} invalid response(s) found in the data",
            count=invalid,
        ))
        for message, count in by_message.most_common():
            findings.append(Finding(
                code=FindingCode.INVALID_RESPONSE_DETAIL,
                message=f"- {count} response(s): {message}",
                count=count,
            ))
        for question_id, count in by_question.most_common():
            findings.append(Finding(
                code=FindingCode.QUESTION_ERRORS,
                message=f"- {question_id}: {count} error(s)",
                question_id=question_id,
                count=count,
            ))

    return findings
