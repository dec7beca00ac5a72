"""
Grouped views over classified and transition-labeled locations.

Percentages are always computed against the group's own row count, never
against the global total. Transition views keep 'undefined' rows in the
counts but give them no percentage.
"""

import logging
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..common.records import IndividualSummary, LabeledPoint, StateLabel, Transition

logger = logging.getLogger(__name__)

COVARIATES = ["home_population", "sex", "age_class", "age_sex"]

# Standard grouping views
GROUPINGS: Dict[str, List[str]] = {
    "age_class": ["age_class"],
    "sex": ["sex"],
    "age_sex": ["age_sex"],
    "home_population": ["home_population"],
}


def points_frame(labeled_points: Sequence[LabeledPoint]) -> pd.DataFrame:
    """One row per labeled point, with covariates and labels as strings."""
    rows = []
    for lp in labeled_points:
        loc = lp.location
        rows.append({
            "individual_id": loc.individual_id,
            "home_population": loc.home_population,
            "sex": loc.sex,
            "age_class": loc.age_class,
            "age_sex": loc.age_sex,
            "timestamp": loc.timestamp,
            "x": loc.x,
            "y": loc.y,
            "state": lp.state.value,
            "population": lp.population,
            "transition": lp.transition.value,
        })
    columns = ["individual_id"] + COVARIATES + [
        "timestamp", "x", "y", "state", "population", "transition"
    ]
    return pd.DataFrame(rows, columns=columns)


def _check_keys(frame: pd.DataFrame, by: Sequence[str]) -> List[str]:
    by = [by] if isinstance(by, str) else list(by)
    missing = [c for c in by if c not in frame.columns]
    if missing:
        raise KeyError(f"Unknown grouping column(s): {missing}")
    return by


def _label_breakdown(
    frame: pd.DataFrame,
    by: List[str],
    label_col: str,
    labels: List[str]
) -> pd.DataFrame:
    # dropna=False keeps individuals with unknown sex / age as their own group
    totals = frame.groupby(by, dropna=False).size().rename("group_total")
    counts = (
        frame.groupby(by + [label_col], dropna=False)
        .size()
        .unstack(label_col, fill_value=0)
        .reindex(columns=labels, fill_value=0)
    )
    long = (
        counts.stack()
        .rename("n")
        .reset_index()
        .rename(columns={"level_%d" % len(by): label_col})
    )
    long = long.merge(totals.reset_index(), on=by, how="left")
    long["percent"] = 100.0 * long["n"] / long["group_total"]
    return long[by + [label_col, "n", "group_total", "percent"]]


def state_breakdown(
    frame: pd.DataFrame,
    by: Union[str, Sequence[str]]
) -> pd.DataFrame:
    """
    Count and percentage of points per state, within each group.

    Args:
        frame: Output of points_frame
        by: Grouping column(s), e.g. ["sex"] or ["home_population", "sex"]

    Returns:
        DataFrame with columns by + [state, n, group_total, percent]
    """
    by = _check_keys(frame, by)
    return _label_breakdown(frame, by, "state", [s.value for s in StateLabel])


def transition_breakdown(
    frame: pd.DataFrame,
    by: Union[str, Sequence[str]]
) -> pd.DataFrame:
    """
    Count and percentage of points per transition label, within each group.

    The denominator is group_total, the group's full row count including
    'undefined' rows (one per individual). 'undefined' itself gets a NaN
    percent, so no_change plus the six switches sum to less than 100 in
    any group holding a first location.

    Returns:
        DataFrame with columns by + [transition, n, group_total, percent]
    """
    by = _check_keys(frame, by)
    result = _label_breakdown(frame, by, "transition", [t.value for t in Transition])
    result.loc[result["transition"] == Transition.UNDEFINED.value, "percent"] = np.nan
    return result


def summaries_frame(summaries: Sequence[IndividualSummary]) -> pd.DataFrame:
    """One row per individual summary record."""
    return pd.DataFrame([s.to_dict() for s in summaries])


def individual_covariates(frame: pd.DataFrame) -> pd.DataFrame:
    """First recorded covariates per individual, from a points frame."""
    return (
        frame.sort_values("timestamp", kind="stable")
        .groupby("individual_id", as_index=False)[COVARIATES]
        .first()
    )


def summary_breakdown(
    summaries: pd.DataFrame,
    covariates: pd.DataFrame,
    by: Union[str, Sequence[str]]
) -> pd.DataFrame:
    """
    Per-group statistics over individual summaries.

    Args:
        summaries: Output of summaries_frame
        covariates: Output of individual_covariates
        by: Grouping column(s) present in covariates

    Returns:
        DataFrame with n_individuals, pct_in_transit, mean/median switches per year
    """
    by = _check_keys(covariates, by)
    merged = summaries.merge(covariates, on="individual_id", how="left")
    grouped = merged.groupby(by, dropna=False)
    result = pd.DataFrame({
        "n_individuals": grouped.size(),
        "pct_in_transit": 100.0 * grouped["in_transit"].mean(),
        "mean_switches_per_year": grouped["switches_per_year"].mean(),
        "median_switches_per_year": grouped["switches_per_year"].median(),
        "total_state_switches": grouped["total_state_switches"].sum(),
    })
    return result.reset_index()


def all_breakdowns(
    frame: pd.DataFrame,
    groupings: Optional[Dict[str, List[str]]] = None
) -> Dict[str, pd.DataFrame]:
    """State and transition breakdowns for each named grouping."""
    groupings = groupings or GROUPINGS
    views = {}
    for name, by in groupings.items():
        views[f"states_by_{name}"] = state_breakdown(frame, by)
        views[f"transitions_by_{name}"] = transition_breakdown(frame, by)
    logger.info(f"Computed {len(views)} grouped views")
    return views
