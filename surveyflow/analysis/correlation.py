"""Pairwise question-to-question correlation matrix.

Every answer is turned into a number first: numbers pass through, strings
with a numeric prefix are read as floats, and any other string is replaced by
:func:`string_hash` of itself.  Categorical answers therefore still produce a
coefficient, but one that only says "these answers co-vary", not how.

Two ways of pairing the series of questions A and B:

``joined``
    Values are paired by respondent: only respondents who answered both
    questions contribute.
``positional``
    Each question's series lists every answer in dataset order and the i-th
    elements are paired, whoever they came from.  Series of unequal length
    correlate as 0.  Kept for parity with older reports.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from surveyflow.analysis.metrics import pearson
from surveyflow.models import CorrelationMatrix, MappedRespondent

logger = logging.getLogger(__name__)

CORRELATION_MODES = ("joined", "positional")

# Longest leading decimal literal, as a float parser would accept it
_NUMERIC_PREFIX = re.compile(r"\s*([+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)")


def string_hash(text: str) -> int:
    """Deterministic non-negative hash of *text*.

    ``h = h * 31 + unit`` over the UTF-16 code units, wrapped to a signed
    32-bit integer at each step; the absolute value of the result is
    returned.  Stable across processes, unlike :func:`hash`.
    """
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def to_numeric(value: str | int | float | None) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = "" if value is None else str(value)
    m = _NUMERIC_PREFIX.match(text)
    if m:
        return float(m.group(1))
    return float(string_hash(text))


def build_series(mapped: Sequence[MappedRespondent], question_id: str) -> list[str | int | float | None]:
    """Raw answers to *question_id*, in respondent order."""
    series: list[str | int | float | None] = []
    for respondent in mapped:
        response = respondent.response_for(question_id)
        if response is not None:
            series.append(response.raw_value)
    return series


def _numeric_by_respondent(
    mapped: Sequence[MappedRespondent],
    question_ids: Sequence[str],
) -> list[dict[str, float]]:
    """Per question, respondent index -> numeric answer."""
    wanted = {qid: i for i, qid in enumerate(question_ids)}
    columns: list[dict[str, float]] = [{} for _ in question_ids]
    for index, respondent in enumerate(mapped):
        key = f"{index}:{respondent.id}"
        for response in respondent.responses:
            col = wanted.get(response.question_id)
            if col is not None and key not in columns[col]:
                columns[col][key] = to_numeric(response.raw_value)
    return columns


def _joined_pair(a: dict[str, float], b: dict[str, float]) -> float:
    shared = [k for k in a if k in b]
    return pearson([a[k] for k in shared], [b[k] for k in shared])


def build_correlation_matrix(
    mapped: Sequence[MappedRespondent],
    question_ids: Sequence[str],
    mode: str = "joined",
) -> CorrelationMatrix:
    """Square matrix of Pearson coefficients between questions.

    The diagonal is 1; each off-diagonal pair is computed once and mirrored.
    """
    if mode not in CORRELATION_MODES:
        raise ValueError(f"Unknown correlation mode: {mode!r}")

    ids = list(question_ids)
    n = len(ids)
    values = [[0.0] * n for _ in range(n)]

    if mode == "positional":
        series = [[to_numeric(v) for v in build_series(mapped, qid)] for qid in ids]
        for i in range(n):
            values[i][i] = 1.0
            for j in range(i + 1, n):
                values[i][j] = values[j][i] = pearson(series[i], series[j])
    else:
        columns = _numeric_by_respondent(mapped, ids)
        for i in range(n):
            values[i][i] = 1.0
            for j in range(i + 1, n):
                values[i][j] = values[j][i] = _joined_pair(columns[i], columns[j])

    logger.debug("Built %dx%d correlation matrix (%s)", n, n, mode)
    return CorrelationMatrix(question_ids=ids, values=values, mode=mode)
