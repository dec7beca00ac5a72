#!/usr/bin/env python3
"""
Generate synthetic location and range data for smoke-testing the pipeline.

Creates, in UTM Zone 11N metres:
- ranges.geojson: square range polygons, one per population (attribute 'popn')
- locations.csv: individual_id, popn, timestamp, x, y, sex, age_class
- name_map.json: a raw -> canonical population name correction

Individuals mostly stay in their home range, with occasional forays through
unclaimed ground into a neighbouring range.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import box

# Seed for reproducibility
np.random.seed(42)

CRS = "EPSG:32611"

# Range centres (easting, northing) in metres, roughly the Sierra Nevada
POPULATIONS = {
    "Mono Basin": (330_000.0, 4_210_000.0),
    "Mt Langley": (390_000.0, 4_040_000.0),
    "Wheeler": (345_000.0, 4_150_000.0),
    "Baxter": (380_000.0, 4_090_000.0),
}
RANGE_HALF_WIDTH = 15_000.0

# Raw names as they appear in the collar database
RAW_NAMES = {
    "Mono Basin": "Mono",
    "Mt Langley": "Langley",
    "Wheeler": "Wheeler Ridge",
    "Baxter": "Baxter",
}


def generate_ranges() -> gpd.GeoDataFrame:
    """Square range polygons, one per population."""
    rows = []
    for name, (cx, cy) in POPULATIONS.items():
        rows.append({
            "popn": name,
            "geometry": box(cx - RANGE_HALF_WIDTH, cy - RANGE_HALF_WIDTH,
                            cx + RANGE_HALF_WIDTH, cy + RANGE_HALF_WIDTH),
        })
    return gpd.GeoDataFrame(rows, crs=CRS)


def generate_track_segment(start, end, n_points, noise_scale=1500.0):
    """Noisy straight-line walk between two points."""
    t = np.linspace(0, 1, n_points)
    x = start[0] + (end[0] - start[0]) * t + np.random.normal(0, noise_scale, n_points)
    y = start[1] + (end[1] - start[1]) * t + np.random.normal(0, noise_scale, n_points)
    return x, y


def generate_individual(individual_id, home, start_date, n_days=400):
    """
    One individual's fixes: resident at home, with 0-2 forays elsewhere.
    """
    centre = POPULATIONS[home]
    others = [p for p in POPULATIONS if p != home]

    legs = [(centre, centre)]
    for _ in range(np.random.randint(0, 3)):
        target = POPULATIONS[others[np.random.randint(len(others))]]
        legs += [(centre, target), (target, target), (target, centre), (centre, centre)]

    all_x, all_y = [], []
    for start, end in legs:
        x, y = generate_track_segment(start, end, np.random.randint(20, 60))
        all_x.extend(x)
        all_y.extend(y)

    # Roughly even spacing across the tracking period
    step_hours = n_days * 24.0 / len(all_x)
    times = [start_date + timedelta(hours=step_hours * i + np.random.uniform(0, 1)) for i in range(len(all_x))]

    return pd.DataFrame({
        "individual_id": individual_id,
        "popn": RAW_NAMES[home],
        "timestamp": [t.strftime("%Y-%m-%d %H:%M:%S") for t in times],
        "x": all_x,
        "y": all_y,
        "sex": np.random.choice(["F", "M"]),
        "age_class": np.random.choice(["adult", "yearling"], p=[0.8, 0.2]),
    })


def main():
    output_dir = Path(__file__).parent.parent / "data" / "sample"
    output_dir.mkdir(parents=True, exist_ok=True)

    ranges = generate_ranges()
    ranges_path = output_dir / "ranges.geojson"
    ranges.to_file(ranges_path, driver="GeoJSON")

    frames = []
    for i, home in enumerate(np.random.choice(list(POPULATIONS), size=24)):
        frames.append(generate_individual(f"S{i + 1:03d}", home, datetime(2019, 1, 1)))
    locations = pd.concat(frames, ignore_index=True)
    locations_path = output_dir / "locations.csv"
    locations.to_csv(locations_path, index=False)

    name_map_path = output_dir / "name_map.json"
    with open(name_map_path, "w") as f:
        json.dump({raw: canonical for canonical, raw in RAW_NAMES.items()}, f, indent=2)

    print(f"Ranges: {len(ranges)} -> {ranges_path}")
    print(f"Locations: {len(locations)} points, {locations['individual_id'].nunique()} individuals -> {locations_path}")
    print(f"Name map: {name_map_path}")


if __name__ == "__main__":
    main()
