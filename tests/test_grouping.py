"""
Tests for grouped percentage views.

Tests cover:
- points_frame layout
- state_breakdown: per-group percentages
- transition_breakdown: undefined counted but without percentage
- summary_breakdown over individual summaries
"""

import pytest
import numpy as np
import pandas as pd
from datetime import datetime, timedelta
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from range_transitions.aggregation.grouping import (
    GROUPINGS,
    all_breakdowns,
    individual_covariates,
    points_frame,
    state_breakdown,
    summaries_frame,
    summary_breakdown,
    transition_breakdown,
)
from range_transitions.common.records import LabeledPoint, LocationRecord, StateLabel
from range_transitions.transitions.summary import summarize
from range_transitions.transitions.tracker import label_transitions

T0 = datetime(2020, 1, 1)


def make_points(individual_id, states, sex, age_class, home="Alpha"):
    return [
        LabeledPoint(
            location=LocationRecord(
                individual_id=individual_id,
                home_population=home,
                timestamp=T0 + timedelta(days=i),
                x=float(i),
                y=0.0,
                sex=sex,
                age_class=age_class,
            ),
            state=StateLabel(s),
            population=None if s == "transit" else home,
        )
        for i, s in enumerate(states)
    ]


# ============== Fixtures ==============

@pytest.fixture
def labeled_points():
    """F1: home, home, transit; M1: other."""
    points = (
        make_points("F1", ["home", "home", "transit"], "F", "adult")
        + make_points("M1", ["other"], "M", "adult", home="Beta")
    )
    return label_transitions(points)


@pytest.fixture
def frame(labeled_points):
    return points_frame(labeled_points)


def row(df, **conditions):
    mask = np.ones(len(df), dtype=bool)
    for col, value in conditions.items():
        mask &= (df[col] == value).values
    assert mask.sum() == 1, f"expected one row for {conditions}"
    return df[mask].iloc[0]


# ============== points_frame Tests ==============

class TestPointsFrame:
    """Test the flat point table."""

    def test_columns_and_rows(self, frame):
        assert len(frame) == 4
        for col in ["individual_id", "home_population", "sex", "age_class", "age_sex",
                    "state", "population", "transition"]:
            assert col in frame.columns

    def test_labels_are_strings(self, frame):
        assert set(frame["state"]) == {"home", "transit", "other"}
        assert frame.loc[frame["individual_id"] == "M1", "transition"].tolist() == ["undefined"]

    def test_age_sex(self, frame):
        assert set(frame["age_sex"]) == {"adult_F", "adult_M"}

    def test_empty(self):
        df = points_frame([])
        assert len(df) == 0
        assert "state" in df.columns


# ============== state_breakdown Tests ==============

class TestStateBreakdown:
    """Percentages are per group, not global."""

    def test_percent_against_group_total(self, frame):
        result = state_breakdown(frame, ["sex"])

        home_f = row(result, sex="F", state="home")
        assert home_f["n"] == 2
        assert home_f["group_total"] == 3
        assert home_f["percent"] == pytest.approx(200 / 3)

        other_m = row(result, sex="M", state="other")
        assert other_m["percent"] == pytest.approx(100.0)

    def test_all_states_listed(self, frame):
        """Absent states appear with zero count."""
        result = state_breakdown(frame, "sex")
        assert row(result, sex="F", state="other")["n"] == 0
        assert len(result) == 2 * 3

    def test_group_percentages_sum_to_100(self, frame):
        result = state_breakdown(frame, ["home_population"])
        sums = result.groupby("home_population")["percent"].sum()
        np.testing.assert_allclose(sums.values, 100.0)

    def test_multiple_keys(self, frame):
        result = state_breakdown(frame, ["sex", "age_class"])
        assert row(result, sex="F", age_class="adult", state="transit")["n"] == 1

    def test_unknown_column(self, frame):
        with pytest.raises(KeyError):
            state_breakdown(frame, ["colour"])


# ============== transition_breakdown Tests ==============

class TestTransitionBreakdown:
    """'undefined' is counted but gets no percentage."""

    def test_undefined_counted_without_percent(self, frame):
        result = transition_breakdown(frame, ["sex"])
        undefined_f = row(result, sex="F", transition="undefined")
        assert undefined_f["n"] == 1
        assert undefined_f["group_total"] == 3
        assert np.isnan(undefined_f["percent"])

    def test_switch_percent_against_group_total(self, frame):
        result = transition_breakdown(frame, ["sex"])
        assert row(result, sex="F", transition="home_to_transit")["percent"] == pytest.approx(100 / 3)
        assert row(result, sex="F", transition="no_change")["percent"] == pytest.approx(100 / 3)

    def test_single_point_group(self, frame):
        result = transition_breakdown(frame, ["sex"])
        m = result[result["sex"] == "M"]
        assert m["n"].sum() == 1
        assert m.loc[m["transition"] != "undefined", "percent"].sum() == 0


# ============== Summary Views Tests ==============

class TestSummaryBreakdown:
    """Test per-group statistics over individuals."""

    def test_summary_breakdown(self, labeled_points, frame):
        by_id = {}
        for p in labeled_points:
            by_id.setdefault(p.individual_id, []).append(p)
        summaries = summaries_frame([summarize(i, pts) for i, pts in by_id.items()])
        covariates = individual_covariates(frame)

        result = summary_breakdown(summaries, covariates, ["sex"])
        f = row(result, sex="F")
        assert f["n_individuals"] == 1
        assert f["pct_in_transit"] == pytest.approx(100.0)
        assert f["total_state_switches"] == 1
        assert row(result, sex="M")["pct_in_transit"] == pytest.approx(0.0)

    def test_covariates_one_row_per_individual(self, frame):
        covariates = individual_covariates(frame)
        assert sorted(covariates["individual_id"]) == ["F1", "M1"]

    def test_all_breakdowns(self, frame):
        views = all_breakdowns(frame)
        assert set(views) == {
            f"{kind}_by_{name}" for name in GROUPINGS for kind in ("states", "transitions")
        }
        assert all(isinstance(v, pd.DataFrame) for v in views.values())
