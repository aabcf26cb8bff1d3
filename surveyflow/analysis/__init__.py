"""Analysis over mapped survey data: statistics and correlation."""

from surveyflow.analysis.correlation import build_correlation_matrix, string_hash
from surveyflow.analysis.statistics import compute_statistics, flow_statistics

__all__ = [
    "build_correlation_matrix",
    "compute_statistics",
    "flow_statistics",
    "string_hash",
]
