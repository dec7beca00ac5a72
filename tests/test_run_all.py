"""
Tests for the orchestrator.

Tests cover:
- run_pipeline: end-to-end labels and summaries
- Per-individual failure isolation
- Frame mismatch aborting the run
- export_results and the CLI entry point
"""

import json
import pytest
import pandas as pd
import geopandas as gpd
from datetime import datetime, timedelta
from pathlib import Path
import sys

from shapely.geometry import box

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from range_transitions import run_all
from range_transitions.classification.state_classifier import RangeSet
from range_transitions.common.config import Config
from range_transitions.common.errors import CoordinateFrameMismatch, UnknownPopulationIdentifier
from range_transitions.common.records import LocationRecord, RangePolygon, StateLabel, Transition

T0 = datetime(2021, 3, 1)


def track(individual_id, home, coords, sex="F", age_class="adult", crs="EPSG:32611"):
    return [
        LocationRecord(
            individual_id=individual_id,
            home_population=home,
            timestamp=T0 + timedelta(days=i),
            x=x,
            y=y,
            crs=crs,
            sex=sex,
            age_class=age_class,
        )
        for i, (x, y) in enumerate(coords)
    ]


# ============== Fixtures ==============

@pytest.fixture
def ranges():
    return RangeSet([
        RangePolygon("Alpha", box(0, 0, 10_000, 10_000)),
        RangePolygon("Beta", box(20_000, 0, 30_000, 10_000)),
        RangePolygon("Gamma", box(25_000, 5_000, 28_000, 8_000)),  # overlaps Beta
    ])


@pytest.fixture
def locations():
    # S1: home -> transit -> other, given out of order
    s1 = track("S1", "Alpha", [(5_000, 5_000), (15_000, 5_000), (21_000, 1_000)])
    # S2: always home
    s2 = track("S2", "Beta", [(21_000, 2_000)] * 10, sex="M")
    # S3: wanders into the Beta/Gamma overlap
    s3 = track("S3", "Alpha", [(5_000, 5_000), (26_000, 6_000)])
    return [s1[2], s1[0], s1[1]] + s2 + s3


# ============== run_pipeline Tests ==============

class TestRunPipeline:
    """Test the in-memory pipeline."""

    def test_scenario(self, ranges, locations):
        result = run_all.run_pipeline(locations, ranges, Config())
        s1 = [p for p in result.labeled_points if p.individual_id == "S1"]

        assert [p.state for p in s1] == [StateLabel.HOME, StateLabel.TRANSIT, StateLabel.OTHER]
        assert [p.transition for p in s1] == [
            Transition.UNDEFINED, Transition.HOME_TO_TRANSIT, Transition.TRANSIT_TO_OTHER
        ]

        summaries = {s.individual_id: s for s in result.summaries}
        assert summaries["S1"].total_state_switches == 2
        assert summaries["S1"].popns_visited == "Alpha;Beta"
        assert summaries["S2"].total_state_switches == 0
        assert summaries["S2"].in_transit is False

    def test_failed_individual_isolated(self, ranges, locations):
        """An overlap error drops S3 only and is reported with context."""
        result = run_all.run_pipeline(locations, ranges, Config())

        assert sorted(s.individual_id for s in result.summaries) == ["S1", "S2"]
        assert all(p.individual_id != "S3" for p in result.labeled_points)
        assert len(result.errors) == 1
        assert result.errors[0]["individual_id"] == "S3"
        assert result.errors[0]["error"] == "OverlappingRanges"

    def test_frame_mismatch_aborts(self, ranges):
        points = track("S1", "Alpha", [(1, 1)]) + track("S2", "Alpha", [(1, 1)], crs="EPSG:32610")
        with pytest.raises(CoordinateFrameMismatch):
            run_all.run_pipeline(points, ranges)

    def test_unparseable_frame_aborts(self, ranges):
        points = track("S1", "Alpha", [(1, 1)], crs="not-a-crs")
        with pytest.raises(CoordinateFrameMismatch):
            run_all.run_pipeline(points, ranges)

    def test_unsorted_input_summarized_in_time_order(self, ranges):
        """Summaries count switches in time order, whatever the input order."""
        s1 = track("S1", "Alpha", [(5_000, 5_000), (15_000, 5_000), (5_000, 5_000)])
        result = run_all.run_pipeline(list(reversed(s1)), ranges)
        summary = result.summaries[0]
        assert summary.home_to_transit == 1
        assert summary.transit_to_home == 1

    def test_unknown_population_reported(self, ranges):
        points = track("S1", "Delta", [(5_000, 5_000), (15_000, 5_000)])
        with pytest.warns(UnknownPopulationIdentifier):
            result = run_all.run_pipeline(points, ranges)
        assert result.unknown_populations == {"Delta"}
        assert result.summaries[0].other_to_transit == 1

    def test_empty_input(self, ranges):
        result = run_all.run_pipeline([], ranges)
        assert result.n_individuals == 0
        assert result.errors == []


# ============== Export Tests ==============

class TestExport:
    """Test CSV export."""

    def test_export_results(self, ranges, locations, tmp_path):
        result = run_all.run_pipeline(locations, ranges, Config())
        written = run_all.export_results(result, tmp_path)

        points = pd.read_csv(written["points"])
        assert len(points) == 3 + 10
        summaries = pd.read_csv(written["summaries"])
        assert set(summaries["individual_id"]) == {"S1", "S2"}
        assert (tmp_path / "views" / "states_by_sex.csv").exists()
        assert (tmp_path / "views" / "individuals_by_home_population.csv").exists()

    def test_export_custom_grouping(self, ranges, locations, tmp_path):
        result = run_all.run_pipeline(locations, ranges, Config())
        written = run_all.export_results(result, tmp_path, group_by=["sex", "age_class"])
        assert "transitions_by_custom" in written
        assert "states_by_sex" not in written


# ============== CLI Tests ==============

class TestMain:
    """Test the command-line entry point."""

    @pytest.fixture
    def inputs(self, tmp_path):
        ranges_path = tmp_path / "ranges.geojson"
        gpd.GeoDataFrame({
            "popn": ["Alpha"],
            "geometry": [box(0, 0, 10_000, 10_000)],
        }, crs="EPSG:32611").to_file(ranges_path, driver="GeoJSON")

        locations_path = tmp_path / "locations.csv"
        pd.DataFrame({
            "individual_id": ["S1"],
            "popn": ["Alpha"],
            "timestamp": ["2021-03-01"],
            "x": [5_000.0],
            "y": [5_000.0],
        }).to_csv(locations_path, index=False)
        return locations_path, ranges_path

    def test_frame_abort_writes_summary(self, inputs, tmp_path, monkeypatch):
        """An unreadable location frame ends the run with exit 1 and a summary."""
        locations_path, ranges_path = inputs
        to_locations = run_all.frame_to_locations
        monkeypatch.setattr(
            run_all, "frame_to_locations", lambda frame, crs: to_locations(frame, "not-a-crs")
        )
        out = tmp_path / "out"
        monkeypatch.setattr(sys, "argv", [
            "range-transitions",
            "--locations", str(locations_path),
            "--ranges", str(ranges_path),
            "--output", str(out),
        ])
        with pytest.raises(SystemExit) as exc:
            run_all.main()
        assert exc.value.code == 1

        summary = json.loads((out / "run_summary.json").read_text())
        assert summary["aborted"] is True
        assert summary["n_individuals"] == 0
        assert summary["errors"][0]["error"] == "CoordinateFrameMismatch"
        assert summary["errors"][0]["individual_id"] == "S1"

    def test_main(self, tmp_path, monkeypatch):
        ranges_path = tmp_path / "ranges.geojson"
        gpd.GeoDataFrame({
            "popn": ["Alpha", "Beta"],
            "geometry": [box(0, 0, 10_000, 10_000), box(20_000, 0, 30_000, 10_000)],
        }, crs="EPSG:32611").to_file(ranges_path, driver="GeoJSON")

        locations_path = tmp_path / "locations.csv"
        pd.DataFrame({
            "individual_id": ["S1", "S1", "S2"],
            "popn": ["alpha", "alpha", "Beta"],
            "timestamp": ["2021-03-01", "2021-03-02", "2021-03-01"],
            "x": [5_000.0, 15_000.0, 25_000.0],
            "y": [5_000.0, 5_000.0, 5_000.0],
        }).to_csv(locations_path, index=False)

        name_map = tmp_path / "map.json"
        name_map.write_text(json.dumps({"alpha": "Alpha"}))

        out = tmp_path / "out"
        monkeypatch.setattr(sys, "argv", [
            "range-transitions",
            "--locations", str(locations_path),
            "--ranges", str(ranges_path),
            "--name-map", str(name_map),
            "--output", str(out),
        ])
        run_all.main()

        summary = json.loads((out / "run_summary.json").read_text())
        assert summary["n_individuals"] == 2
        assert summary["aborted"] is False
        assert summary["errors"] == []
        assert summary["unresolved_populations"] == []
        summaries = pd.read_csv(out / "individual_summaries.csv")
        assert summaries.set_index("individual_id").loc["S1", "home_to_transit"] == 1
