"""Stage 1: questionnaire structure parsing, validation and decoding.

The legacy structure format is a JavaScript module exporting one array
literal::

    export const templateSurveyQuestions = [
      { id: 'Q1', text: 'Role?', type: 'singleChoice', options: [...] },
    ];

It is turned into JSON with a fixed sequence of text rewrites (comments,
trailing commas, bare keys, single quotes). That is enough for the constrained
literal shape the questionnaires use; it is not a JavaScript parser.  JSON and YAML
structure files skip the rewriting entirely.

Validation is a single pass producing :class:`Finding` objects; whether they
are fatal is the caller's decision (:func:`check_structure` returns them,
:func:`parse_structure` raises on ERROR findings).
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, TypeAdapter, ValidationError

from surveyflow.config import DEFAULT_STRUCTURE_IDENTIFIER
from surveyflow.errors import FormatError, StructureError
from surveyflow.models import (
    QUESTION_TYPES,
    Finding,
    FindingCode,
    Question,
    QuestionType,
    Severity,
)
from surveyflow.utils.values import coerce_int

logger = logging.getLogger(__name__)

_STRUCTURE_ADAPTER: TypeAdapter[list[Question]] = TypeAdapter(list[Question])

# -- Literal-to-JSON rewrites ---------------------------------------------------

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,])\s*([a-zA-Z_$][a-zA-Z0-9_$]*)\s*:")
_SINGLE_QUOTED_VALUE_RE = re.compile(r":\s*'([^']*)'")


def _binding_pattern(identifier: str) -> re.Pattern[str]:
    return re.compile(
        rf"(?:export\s+)?(?:const|let|var)\s+{re.escape(identifier)}\s*=\s*(\[.*\])\s*;?",
        re.DOTALL,
    )


def extract_array_literal(text: str, identifier: str = DEFAULT_STRUCTURE_IDENTIFIER) -> str:
    """Return the array literal bound to *identifier*, or raise FormatError."""
    if not text or not text.strip():
        raise FormatError("The structure file is empty")
    m = _binding_pattern(identifier).search(text)
    if m is None:
        raise FormatError(
            f"Could not find the questionnaire structure in the file. "
            f'It must define an array named "{identifier}".'
        )
    return m.group(1)


def literal_to_json(literal: str) -> str:
    """Rewrite a JavaScript array literal into JSON text."""
    out = _BLOCK_COMMENT_RE.sub("", literal)
    out = _LINE_COMMENT_RE.sub("", out)
    out = _TRAILING_COMMA_RE.sub(r"\1", out)
    out = _BARE_KEY_RE.sub(r'\1"\2":', out)
    out = _SINGLE_QUOTED_VALUE_RE.sub(r':"\1"', out)
    return out


def _require_question_list(raw: object) -> list[Any]:
    if not isinstance(raw, list):
        raise FormatError("The questionnaire structure must be an array")
    if not raw:
        raise FormatError("The questionnaire structure is empty")
    return raw


def read_structure_literal(text: str, identifier: str = DEFAULT_STRUCTURE_IDENTIFIER) -> list[Any]:
    """Extract and deserialise the structure array without validating it."""
    json_text = literal_to_json(extract_array_literal(text, identifier))
    try:
        raw = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise FormatError(f"Syntax error in structure file: {exc}") from exc
    return _require_question_list(raw)


# -- Validation -------------------------------------------------------------------


def _as_dict(question: object) -> object:
    if isinstance(question, BaseModel):
        return question.model_dump(by_alias=True)
    return question


def _question_label(question_id: object, index: int) -> str:
    return f'"{question_id}"' if question_id else f"at index {index}"


def _duplicates(values: Iterable[object]) -> list[object]:
    """Values seen more than once, in order of their first repeat."""
    seen: list[object] = []
    dups: list[object] = []
    for v in values:
        if v in seen:
            if v not in dups:
                dups.append(v)
        else:
            seen.append(v)
    return dups


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _error(code: FindingCode, message: str, question_id: object = None) -> Finding:
    return Finding(
        code=code,
        message=message,
        question_id=str(question_id) if question_id else None,
    )


def validate_structure(structure: Sequence[object]) -> list[Finding]:
    """Check a structure for problems without raising.

    Accepts raw dicts (as deserialised) or decoded question models.
    Every finding is ERROR severity except a free-text question without a
    placeholder, which is a WARNING.
    """
    questions = [_as_dict(q) for q in structure]
    findings: list[Finding] = []

    ids = [q.get("id") for q in questions if isinstance(q, dict)]
    dup_ids = _duplicates(ids)
    if dup_ids:
        findings.append(_error(
            FindingCode.DUPLICATE_QUESTION_ID,
            f"Duplicate question IDs found: {', '.join(str(d) for d in dup_ids)}",
        ))

    for index, question in enumerate(questions):
        if not isinstance(question, dict):
            findings.append(_error(
                FindingCode.MISSING_QUESTION_ID,
                f"Question at index {index} is not an object",
            ))
            continue
        findings.extend(_validate_question(question, index))

    return findings


def _validate_question(question: dict[str, Any], index: int) -> list[Finding]:
    findings: list[Finding] = []
    qid = question.get("id")
    label = _question_label(qid, index)

    if not qid:
        findings.append(_error(FindingCode.MISSING_QUESTION_ID, f"Question at index {index} has no ID"))
    if not question.get("text"):
        findings.append(_error(FindingCode.MISSING_QUESTION_TEXT, f"Question {label} has no text", qid))

    qtype = question.get("type")
    if not qtype:
        findings.append(_error(FindingCode.MISSING_QUESTION_TYPE, f"Question {label} has no type", qid))
    elif qtype not in QUESTION_TYPES:
        findings.append(_error(
            FindingCode.INVALID_QUESTION_TYPE,
            f"Question {label} has an invalid type: {qtype}",
            qid,
        ))

    if qtype == QuestionType.SINGLE_CHOICE:
        findings.extend(_validate_options(question.get("options"), qid))

    if qtype == QuestionType.FREE_TEXT and not question.get("freeTextPlaceholder"):
        findings.append(Finding(
            code=FindingCode.MISSING_PLACEHOLDER,
            message=f"Question {label} of type freeText has no placeholder",
            severity=Severity.WARNING,
            question_id=str(qid) if qid else None,
        ))

    return findings


def _validate_options(options: object, qid: object) -> list[Finding]:
    if options is None or not isinstance(options, list):
        return [_error(
            FindingCode.MISSING_OPTIONS,
            f'Question "{qid}" of type singleChoice must have an options list',
            qid,
        )]
    if not options:
        return [_error(
            FindingCode.EMPTY_OPTIONS,
            f'Question "{qid}" of type singleChoice must have at least one option',
            qid,
        )]

    findings: list[Finding] = []
    for index, option in enumerate(options):
        if not isinstance(option, dict):
            findings.append(_error(
                FindingCode.INVALID_OPTION,
                f'Option at index {index} of question "{qid}" is not an object',
                qid,
            ))
            continue
        oid = option.get("id")
        if oid is None:
            findings.append(_error(
                FindingCode.MISSING_OPTION_ID,
                f'Option at index {index} of question "{qid}" has no ID',
                qid,
            ))
        elif not _is_number(oid):
            findings.append(_error(
                FindingCode.NON_NUMERIC_OPTION_ID,
                f'Option "{oid}" of question "{qid}" has an ID that is not a number',
                qid,
            ))
        elif coerce_int(oid) is None:
            findings.append(_error(
                FindingCode.NON_NUMERIC_OPTION_ID,
                f'Option "{oid}" of question "{qid}" has an ID that is not an integer',
                qid,
            ))
        if not option.get("text"):
            findings.append(_error(
                FindingCode.MISSING_OPTION_TEXT,
                f'Option "{oid}" of question "{qid}" has no text',
                qid,
            ))
        if option.get("next") is None:
            findings.append(_error(
                FindingCode.MISSING_OPTION_NEXT,
                f'Option "{oid}" of question "{qid}" has no "next" property',
                qid,
            ))

    option_ids = [o.get("id") for o in options if isinstance(o, dict)]
    dup_option_ids = _duplicates(option_ids)
    if dup_option_ids:
        findings.append(_error(
            FindingCode.DUPLICATE_OPTION_ID,
            f'Duplicate option IDs in question "{qid}": {", ".join(str(d) for d in dup_option_ids)}',
            qid,
        ))
    return findings


# -- Decoding ---------------------------------------------------------------------


def decode_structure(raw: Sequence[object]) -> list[Question]:
    """Decode validated dicts into question models (tagged on ``type``)."""
    try:
        return _STRUCTURE_ADAPTER.validate_python(list(raw))
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        raise StructureError(f"Invalid questionnaire structure at {where}: {first['msg']}") from exc


@dataclass
class StructureCheck:
    """Outcome of the single validation pass over a raw structure.

    ``questions`` is empty when any ERROR finding is present.
    """

    questions: list[Question] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors


def check_structure(raw: Sequence[object]) -> StructureCheck:
    """Validate *raw* once and decode it when there are no errors."""
    findings = validate_structure(raw)
    check = StructureCheck(findings=findings)
    if check.ok:
        check.questions = decode_structure(raw)
    for finding in check.findings:
        logger.debug("Structure finding (%s): %s", finding.severity.value, finding.message)
    return check


def raise_for_errors(check: StructureCheck) -> None:
    """Raise StructureError when *check* holds ERROR findings."""
    if check.ok:
        return
    lines = "\n".join(f.message for f in check.errors)
    raise StructureError(f"Validation errors in questionnaire structure:\n{lines}", check.errors)


def parse_structure(text: str, identifier: str = DEFAULT_STRUCTURE_IDENTIFIER) -> list[Question]:
    """Parse a JavaScript structure literal into validated questions.

    Raises FormatError (StructureError for validation failures).
    """
    check = check_structure(read_structure_literal(text, identifier))
    raise_for_errors(check)
    return check.questions


# -- Files ------------------------------------------------------------------------


def read_structure_file(path: Path, identifier: str = DEFAULT_STRUCTURE_IDENTIFIER) -> list[Any]:
    """Read a structure file into raw dicts, choosing the reader by suffix.

    ``.json`` and ``.yaml``/``.yml`` hold either the array itself or a
    mapping with the array under *identifier*.  Anything else is read as a
    JavaScript literal.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FormatError(f"Could not read structure file {path.name}: {exc}") from exc

    suffix = path.suffix.lower()
    if suffix == ".json":
        try:
            raw = json.loads(text) if text.strip() else None
        except json.JSONDecodeError as exc:
            raise FormatError(f"Syntax error in structure file: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise FormatError(f"Syntax error in structure file: {exc}") from exc
    else:
        return read_structure_literal(text, identifier)

    if raw is None:
        raise FormatError("The structure file is empty")
    if isinstance(raw, dict):
        if identifier not in raw:
            raise FormatError(
                f'Could not find the questionnaire structure in the file. '
                f'Expected a list or a "{identifier}" key.'
            )
        raw = raw[identifier]
    return _require_question_list(raw)


def load_structure(path: Path, identifier: str = DEFAULT_STRUCTURE_IDENTIFIER) -> StructureCheck:
    """Read and check a structure file.  Raises only for unreadable input."""
    raw = read_structure_file(path, identifier)
    logger.info("Read %d question(s) from %s", len(raw), path.name)
    return check_structure(raw)


# -- Lookups ----------------------------------------------------------------------


def get_question_by_id(structure: Sequence[Question], question_id: str) -> Question | None:
    for question in structure:
        if question.id == question_id:
            return question
    return None


def get_question_ids(structure: Sequence[Question]) -> list[str]:
    return [q.id for q in structure]
