#!/usr/bin/env python3
"""
Range Transitions - Orchestrator

Classify every location against population ranges, derive per-individual
transitions and summaries, and export points, summaries and grouped views.

Usage:
    python -m range_transitions.run_all --locations data/locations.csv --ranges data/ranges.geojson
    python -m range_transitions.run_all --locations data/locations.csv --ranges data/ranges.shp \
        --name-map data/name_map.json --group-by sex age_class
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from tqdm import tqdm

from .aggregation.grouping import (
    GROUPINGS,
    all_breakdowns,
    individual_covariates,
    points_frame,
    summaries_frame,
    summary_breakdown,
)
from .classification.state_classifier import (
    RangeSet,
    check_frames,
    check_home_populations,
    classify_points,
)
from .common.config import Config, OverlapPolicy
from .common.errors import CoordinateFrameMismatch, RangeStateError
from .common.io import (
    frame_to_locations,
    harmonize_population_names,
    load_locations,
    load_name_mapping,
    load_ranges,
    write_breakdowns,
    write_frame,
)
from .common.records import IndividualSummary, LabeledPoint, LocationRecord
from .transitions.summary import summarize
from .transitions.tracker import group_by_individual, label_transitions

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outputs of one classification run."""
    labeled_points: List[LabeledPoint] = field(default_factory=list)
    summaries: List[IndividualSummary] = field(default_factory=list)
    unknown_populations: Set[str] = field(default_factory=set)
    errors: List[Dict] = field(default_factory=list)

    @property
    def n_individuals(self) -> int:
        return len(self.summaries)


def process_individual(
    individual_id: str,
    points: Sequence[LocationRecord],
    range_set: RangeSet,
    config: Config
) -> Tuple[List[LabeledPoint], IndividualSummary]:
    """
    Classify, label and summarize one individual.

    Home populations are checked once per run by run_pipeline, not here.
    """
    classified = classify_points(points, range_set, check_populations=False)
    labeled = label_transitions(classified)
    summary = summarize(individual_id, labeled, days_per_year=config.days_per_year)
    return labeled, summary


def run_pipeline(
    locations: Sequence[LocationRecord],
    range_set: RangeSet,
    config: Optional[Config] = None,
    show_progress: bool = False
) -> PipelineResult:
    """
    Run classification and transition tracking over all individuals.

    A failure in one individual drops only that individual's records and is
    reported in `errors`; a frame mismatch aborts the whole run.

    Args:
        locations: Location records, any order
        range_set: Loaded range polygons
        config: Run configuration
        show_progress: Show a progress bar over individuals

    Returns:
        PipelineResult

    Raises:
        CoordinateFrameMismatch: locations and ranges are in different frames
    """
    config = config or Config()
    result = PipelineResult()

    check_frames(locations, range_set)
    result.unknown_populations = check_home_populations(locations, range_set)

    by_individual = group_by_individual(locations)

    logger.info(f"Processing {len(locations)} points from {len(by_individual)} individuals")

    for individual_id in tqdm(sorted(by_individual), desc="individuals", disable=not show_progress):
        try:
            labeled, summary = process_individual(
                individual_id, by_individual[individual_id], range_set, config
            )
        except CoordinateFrameMismatch:
            raise
        except RangeStateError as e:
            if e.individual_id is None:
                e.individual_id = individual_id
            logger.error(f"Individual {individual_id} failed: {e}")
            result.errors.append(e.to_dict())
            continue

        result.labeled_points.extend(labeled)
        result.summaries.append(summary)

    logger.info(
        f"Summarized {result.n_individuals} individuals, "
        f"{sum(s.total_state_switches for s in result.summaries)} state switches, "
        f"{len(result.errors)} errors"
    )
    return result


def export_results(
    result: PipelineResult,
    output_dir: Path,
    group_by: Optional[List[str]] = None
) -> Dict[str, str]:
    """
    Write labeled points, summaries and grouped views as CSV.

    Returns:
        Mapping of output name to written path
    """
    output_dir = Path(output_dir)
    written = {}

    points = points_frame(result.labeled_points)
    summaries = summaries_frame(result.summaries)
    written["points"] = str(write_frame(points, output_dir / "labeled_points.csv"))
    written["summaries"] = str(write_frame(summaries, output_dir / "individual_summaries.csv"))

    if len(points) == 0:
        logger.warning("No labeled points; skipping grouped views")
        return written

    groupings = {"custom": group_by} if group_by else GROUPINGS
    views = all_breakdowns(points, groupings)
    covariates = individual_covariates(points)
    for name, by in groupings.items():
        views[f"individuals_by_{name}"] = summary_breakdown(summaries, covariates, by)

    for path in write_breakdowns(views, output_dir / "views"):
        written[path.stem] = str(path)
    return written


def save_summary(summary: Dict, output_dir: Path) -> Path:
    """Write the run summary as run_summary.json."""
    summary_path = Path(output_dir) / "run_summary.json"
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)
    logger.info(f"Summary saved to: {summary_path}")
    return summary_path


def main():
    parser = argparse.ArgumentParser(
        description="Range Transitions - classify locations and derive state transitions"
    )
    parser.add_argument(
        "--locations", "-l",
        type=Path,
        required=True,
        help="Location records (CSV or parquet)"
    )
    parser.add_argument(
        "--ranges", "-r",
        type=Path,
        required=True,
        help="Range polygons (shapefile, GeoJSON, ...)"
    )
    parser.add_argument(
        "--name-map", "-n",
        type=Path,
        default=None,
        help="JSON mapping of raw to canonical population names"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Config JSON file"
    )
    parser.add_argument(
        "--overlap-policy",
        choices=[p.value for p in OverlapPolicy],
        default=None,
        help="How to resolve points covered by more than one range"
    )
    parser.add_argument(
        "--keep-unresolved",
        action="store_true",
        help="Keep individuals whose home population matches no range"
    )
    parser.add_argument(
        "--group-by", "-g",
        nargs="+",
        default=None,
        help="Grouping columns for the views (default: standard views)"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Output directory"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )

    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    # Build config
    config = Config.from_json(args.config) if args.config else Config()
    if args.overlap_policy:
        config.overlap_policy = OverlapPolicy(args.overlap_policy)
    if args.name_map:
        config.name_mapping_path = args.name_map
    if args.keep_unresolved:
        config.exclude_unresolved = False
    if args.output:
        config.output_dir = args.output

    range_set = load_ranges(args.ranges, config)
    overlaps = range_set.overlapping_pairs()
    if overlaps:
        logger.warning(f"Overlapping ranges: {overlaps} (policy: {config.overlap_policy.value})")

    frame = load_locations(args.locations, config)
    mapping = load_name_mapping(config.name_mapping_path) if config.name_mapping_path else {}
    frame, unresolved = harmonize_population_names(
        frame, mapping, set(range_set.populations), config.exclude_unresolved
    )
    locations = frame_to_locations(frame, config.crs)

    summary = {
        "timestamp": datetime.now().isoformat(),
        "config": config.to_dict(),
        "inputs": {"locations": str(args.locations), "ranges": str(args.ranges)},
        "unresolved_populations": sorted(unresolved),
    }

    try:
        result = run_pipeline(locations, range_set, config, show_progress=True)
    except CoordinateFrameMismatch as e:
        logger.error(f"Aborting run: {e}")
        summary.update({"aborted": True, "n_points": 0, "n_individuals": 0, "errors": [e.to_dict()]})
        save_summary(summary, config.output_dir)
        sys.exit(1)

    written = export_results(result, config.output_dir, args.group_by)

    summary.update({
        "aborted": False,
        "n_points": len(result.labeled_points),
        "n_individuals": result.n_individuals,
        "unknown_populations": sorted(result.unknown_populations),
        "outputs": written,
        "errors": result.errors
    })
    save_summary(summary, config.output_dir)
    logger.info(f"COMPLETE: {result.n_individuals} individuals, {len(result.errors)} errors")

    if result.errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
