"""
Grouped percentage views over labeled locations and individual summaries.
"""

from .grouping import (
    GROUPINGS,
    points_frame,
    state_breakdown,
    transition_breakdown,
    summaries_frame,
    individual_covariates,
    summary_breakdown,
    all_breakdowns,
)

__all__ = [
    "GROUPINGS",
    "points_frame",
    "state_breakdown",
    "transition_breakdown",
    "summaries_frame",
    "individual_covariates",
    "summary_breakdown",
    "all_breakdowns",
]
