"""Low-level arithmetic for the statistics and correlation engines.

Pure functions over plain numbers: no pydantic models, no I/O.
"""

from __future__ import annotations

import math
from collections.abc import Sequence


def round_half_up(x: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    Percentages use this rather than :func:`round`, whose banker's rounding
    would turn 12.5% into 12.
    """
    return math.floor(x + 0.5)


def percentage(count: int, total: int) -> int:
    """``count / total`` as a whole percentage; 0 when *total* is 0."""
    if total == 0:
        return 0
    return round_half_up(count / total * 100)


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean.  Returns 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson correlation coefficient of two paired series.

    Returns 0 when the series differ in length, are empty, or either has
    zero variance.  The result is clamped to [-1, 1] against float drift.
    """
    n = len(xs)
    if n == 0 or n != len(ys):
        return 0.0

    mx = mean(xs)
    my = mean(ys)
    sxy = 0.0
    sxx = 0.0
    syy = 0.0
    for x, y in zip(xs, ys):
        dx = x - mx
        dy = y - my
        sxy += dx * dy
        sxx += dx * dx
        syy += dy * dy

    if sxx == 0 or syy == 0:
        return 0.0
    r = sxy / math.sqrt(sxx * syy)
    return max(-1.0, min(1.0, r))
