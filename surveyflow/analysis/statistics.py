"""Aggregate statistics over a mapped, validated dataset.

Two counting rules are kept deliberately:

- The completion rate divides by one *global* denominator, the number of
  questions in the richest flow, unless ``denominator="per_flow"`` is asked
  for.  Under the global rule a DESCENDANTS respondent (who can only ever
  answer Q1) scores low by construction.
- ``skipped_responses`` counts everyone who has no response to a question,
  including respondents whose flow never asks it.
  ``not_applicable_responses`` breaks that second group out.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from surveyflow.analysis.metrics import mean, percentage, round_half_up
from surveyflow.models import (
    FlowType,
    MappedRespondent,
    MappedResponse,
    Question,
    QuestionStatistic,
    QuestionType,
    ResponseCount,
    SurveyStatistics,
)
from surveyflow.stages.flow import applicable_question_ids, question_applies_to_flow
from surveyflow.utils.values import value_key

logger = logging.getLogger(__name__)

# Bucket value for "" and absent answers.
NOT_ANSWERED = "Non répondu"

COMPLETION_DENOMINATORS = ("global", "per_flow")


def compute_flow_distribution(mapped: Sequence[MappedRespondent]) -> dict[FlowType, int]:
    """Respondents per flow, with every flow present (zero-filled)."""
    distribution = {flow: 0 for flow in FlowType}
    for respondent in mapped:
        distribution[respondent.flow_type] += 1
    return distribution


def max_possible_responses(structure: Sequence[Question]) -> int:
    """Questions asked in the richest flow (MONTANTS or ACCOMPAGNATEURS), at least 1."""
    ids = [q.id for q in structure]
    return max(
        len(applicable_question_ids(ids, FlowType.MONTANTS)),
        len(applicable_question_ids(ids, FlowType.ACCOMPAGNATEURS)),
        1,
    )


def compute_completion_rate(
    mapped: Sequence[MappedRespondent],
    structure: Sequence[Question],
    denominator: str = "global",
) -> int:
    """Mean share of questions answered, as a 0-100 integer.

    ``denominator`` is ``"global"`` (see :func:`max_possible_responses`) or
    ``"per_flow"`` (questions applicable to each respondent's own flow).
    """
    if denominator not in COMPLETION_DENOMINATORS:
        raise ValueError(f"Unknown completion denominator: {denominator!r}")
    if not mapped:
        return 0

    ids = [q.id for q in structure]
    global_max = max_possible_responses(structure)
    ratios: list[float] = []
    for respondent in mapped:
        if denominator == "per_flow":
            possible = max(len(applicable_question_ids(ids, respondent.flow_type)), 1)
        else:
            possible = global_max
        ratios.append(len(respondent.responses) / possible)

    return min(100, round_half_up(mean(ratios) * 100))


def compute_response_counts(
    responses: Sequence[MappedResponse],
    question: Question,
) -> list[ResponseCount]:
    """Group answers by value, most frequent first.

    Percentages are rounded per bucket and need not sum to 100.  Ties keep
    first-seen order.
    """
    if not responses:
        return []

    counts: dict[str, int] = {}
    for response in responses:
        key = value_key(response.raw_value)
        counts[key] = counts.get(key, 0) + 1

    labels: dict[str, str] = {}
    if question.type == QuestionType.SINGLE_CHOICE and question.options:
        labels = {str(o.id): o.text for o in question.options}

    total = len(responses)
    buckets = [
        ResponseCount(
            value=key or NOT_ANSWERED,
            label=labels.get(key),
            count=count,
            percentage=percentage(count, total),
        )
        for key, count in counts.items()
    ]
    buckets.sort(key=lambda b: b.count, reverse=True)
    return buckets


def compute_question_statistics(
    mapped: Sequence[MappedRespondent],
    structure: Sequence[Question],
) -> list[QuestionStatistic]:
    """One statistic per question, in structure order."""
    total_respondents = len(mapped)
    stats: list[QuestionStatistic] = []

    for question in structure:
        answers: list[MappedResponse] = []
        not_applicable = 0
        for respondent in mapped:
            response = respondent.response_for(question.id)
            if response is not None:
                answers.append(response)
            elif not question_applies_to_flow(question.id, respondent.flow_type):
                not_applicable += 1

        stats.append(QuestionStatistic(
            question_id=question.id,
            question_text=question.text,
            response_type=question.type,
            total_responses=len(answers),
            skipped_responses=total_respondents - len(answers),
            not_applicable_responses=not_applicable,
            response_counts=compute_response_counts(answers, question),
        ))

    return stats


def compute_statistics(
    mapped: Sequence[MappedRespondent],
    structure: Sequence[Question],
    *,
    denominator: str = "global",
) -> SurveyStatistics:
    """Full statistics for a mapped dataset."""
    stats = SurveyStatistics(
        total_respondents=len(mapped),
        flow_distribution=compute_flow_distribution(mapped),
        completion_rate=compute_completion_rate(mapped, structure, denominator),
        questions=compute_question_statistics(mapped, structure),
    )
    logger.debug(
        "Statistics: %d respondent(s), completion %d%%",
        stats.total_respondents,
        stats.completion_rate,
    )
    return stats


def flow_statistics(
    mapped: Sequence[MappedRespondent],
    structure: Sequence[Question],
    flow: FlowType,
    *,
    denominator: str = "global",
) -> SurveyStatistics:
    """Statistics restricted to the respondents of one flow."""
    subset = [r for r in mapped if r.flow_type == flow]
    return compute_statistics(subset, structure, denominator=denominator)


def most_common_responses(stat: QuestionStatistic, limit: int = 5) -> list[ResponseCount]:
    """The first *limit* response buckets (they are already sorted)."""
    return stat.response_counts[:limit]
