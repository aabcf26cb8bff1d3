"""Stage 3: respondent flow classification and question applicability."""

from __future__ import annotations

from collections.abc import Mapping

from surveyflow.models import FlowType
from surveyflow.utils.values import coerce_int

# The gating question; its answer alone decides the flow.
CLASSIFICATION_QUESTION = "Q1"

_FLOW_BY_ANSWER = {
    1: FlowType.MONTANTS,
    2: FlowType.DESCENDANTS,
    3: FlowType.ACCOMPAGNATEURS,
    4: FlowType.ACCOMPAGNATEURS,
}

_FLOW_SUFFIXES = {
    FlowType.MONTANTS: "_MONTANTS",
    FlowType.ACCOMPAGNATEURS: "_ACCOMPAGNATEURS",
}


def classify_flow(record: Mapping[str, object]) -> FlowType:
    """Derive a respondent's flow from their answer to ``Q1``.

    Never raises: an absent or unparseable answer is ``UNKNOWN``.
    """
    answer = coerce_int(record.get(CLASSIFICATION_QUESTION))
    if answer is None:
        return FlowType.UNKNOWN
    return _FLOW_BY_ANSWER.get(answer, FlowType.UNKNOWN)


def question_applies_to_flow(question_id: str, flow: FlowType) -> bool:
    """Whether respondents of *flow* are asked *question_id*.

    ``DESCENDANTS`` only answer the gating question.  ``MONTANTS`` and
    ``ACCOMPAGNATEURS`` also answer the questions carrying their suffix.
    ``UNKNOWN`` admits everything so unclassified rows stay visible.
    """
    if flow == FlowType.UNKNOWN:
        return True
    if question_id == CLASSIFICATION_QUESTION:
        return True
    suffix = _FLOW_SUFFIXES.get(flow)
    return suffix is not None and question_id.endswith(suffix)


def applicable_question_ids(question_ids: list[str], flow: FlowType) -> list[str]:
    return [qid for qid in question_ids if question_applies_to_flow(qid, flow)]
