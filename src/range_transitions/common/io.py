"""
Data I/O utilities.

Handles loading location records and range polygons into the canonical
projected frame, correcting population names, and exporting results.
Canonical location columns: individual_id, home_population, timestamp, x, y,
sex, age_class
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import geopandas as gpd
import pandas as pd

from .config import Config
from .coords import CoordinateTransformer, crs_to_string
from .records import LocationRecord, RangePolygon

logger = logging.getLogger(__name__)

# Accepted source column names, in order of preference
COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "individual_id": ["individual_id", "individual-local-identifier", "animal_id", "id"],
    "home_population": ["home_population", "popn", "population", "herd"],
    "timestamp": ["timestamp", "datetime", "study-local-timestamp", "time"],
    "x": ["x", "utm_e", "easting", "x_m"],
    "y": ["y", "utm_n", "northing", "y_m"],
    "lon": ["location-long", "longitude", "lon"],
    "lat": ["location-lat", "latitude", "lat"],
    "sex": ["sex", "animal-sex"],
    "age_class": ["age_class", "age", "animal-life-stage"],
}


def _find_column(df: pd.DataFrame, candidates: List[str]) -> Optional[str]:
    """Find first matching column name from candidates."""
    for col in candidates:
        if col in df.columns:
            return col
    return None


def load_locations(path: Path, config: Optional[Config] = None) -> pd.DataFrame:
    """
    Load location records from CSV or parquet file.

    Projected x/y columns are used as-is when present; otherwise lon/lat
    columns are projected to the configured UTM zone.

    Args:
        path: Path to data file
        config: Run configuration (UTM zone)

    Returns:
        DataFrame with canonical columns, sorted by individual then timestamp
    """
    config = config or Config()
    path = Path(path)

    if path.suffix == '.parquet':
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path)

    logger.info(f"Loaded {len(df)} points from {path}")

    cols = {name: _find_column(df, cands) for name, cands in COLUMN_CANDIDATES.items()}
    for required in ("individual_id", "home_population", "timestamp"):
        if cols[required] is None:
            raise ValueError(f"Could not find {required} column in {df.columns.tolist()}")

    out = pd.DataFrame({
        "individual_id": df[cols["individual_id"]].astype(str),
        "home_population": df[cols["home_population"]].astype(str).str.strip(),
        "timestamp": pd.to_datetime(df[cols["timestamp"]]),
    })

    if cols["x"] and cols["y"]:
        out["x"] = df[cols["x"]].astype(float)
        out["y"] = df[cols["y"]].astype(float)
    elif cols["lon"] and cols["lat"]:
        transformer = CoordinateTransformer(config.utm_zone, config.utm_hemisphere)
        utm = transformer.to_utm(df[cols["lon"]].values, df[cols["lat"]].values)
        out["x"] = utm.x_m
        out["y"] = utm.y_m
        logger.info(f"Projected lon/lat to {transformer.crs}")
    else:
        raise ValueError(f"Could not find x/y or lat/lon columns in {df.columns.tolist()}")

    for optional in ("sex", "age_class"):
        if cols[optional]:
            out[optional] = df[cols[optional]].where(df[cols[optional]].notna(), None)
        else:
            out[optional] = None

    n_before = len(out)
    out = out.dropna(subset=["timestamp", "x", "y"])
    if len(out) < n_before:
        logger.warning(f"Dropped {n_before - len(out)} rows with missing time or coordinates")

    return out.sort_values(["individual_id", "timestamp"], kind="stable").reset_index(drop=True)


def load_name_mapping(path: Path) -> Dict[str, str]:
    """Load a {raw_name: canonical_name} population name mapping from JSON."""
    with open(path) as f:
        mapping = json.load(f)
    if not isinstance(mapping, dict):
        raise ValueError(f"Name mapping in {path} must be a JSON object")
    return {str(k): str(v) for k, v in mapping.items()}


def harmonize_population_names(
    frame: pd.DataFrame,
    mapping: Dict[str, str],
    known_populations: Set[str],
    exclude_unresolved: bool = True
) -> Tuple[pd.DataFrame, Set[str]]:
    """
    Apply a population name correction to home populations.

    The input frame is never modified; a corrected copy is returned.

    Args:
        frame: Locations frame (load_locations output)
        mapping: {raw_name: canonical_name}
        known_populations: Population names present in the range polygons
        exclude_unresolved: Drop rows whose home population is still unknown

    Returns:
        (corrected frame, set of unresolved home population names)
    """
    corrected = frame.copy()
    corrected["home_population"] = corrected["home_population"].map(
        lambda name: mapping.get(name, name)
    )

    unresolved = set(corrected["home_population"].unique()) - set(known_populations)
    if unresolved:
        affected = corrected.loc[corrected["home_population"].isin(unresolved), "individual_id"].nunique()
        logger.warning(
            f"Unresolved home populations {sorted(unresolved)} ({affected} individuals)"
        )
        if exclude_unresolved:
            corrected = corrected[~corrected["home_population"].isin(unresolved)].reset_index(drop=True)
            logger.warning(f"Excluded {affected} individuals with unresolved home population")

    return corrected, unresolved


def frame_to_locations(frame: pd.DataFrame, crs: str) -> List[LocationRecord]:
    """Convert a canonical locations frame to LocationRecord objects."""
    records = []
    for row in frame.itertuples(index=False):
        sex = getattr(row, "sex", None)
        age_class = getattr(row, "age_class", None)
        records.append(LocationRecord(
            individual_id=str(row.individual_id),
            home_population=str(row.home_population),
            timestamp=pd.Timestamp(row.timestamp).to_pydatetime(),
            x=float(row.x),
            y=float(row.y),
            crs=crs,
            sex=None if pd.isna(sex) else str(sex),
            age_class=None if pd.isna(age_class) else str(age_class),
        ))
    return records


def load_ranges(path: Path, config: Optional[Config] = None):
    """
    Load population range polygons, reprojected to the configured frame.

    Multiple features of one population are dissolved into one geometry.

    Args:
        path: Any vector file geopandas can read (shapefile, GeoJSON, ...)
        config: Run configuration (frame, population field, overlap policy)

    Returns:
        RangeSet in config.crs
    """
    from ..classification.state_classifier import RangeSet

    config = config or Config()
    gdf = gpd.read_file(path)
    if config.population_field not in gdf.columns:
        raise ValueError(
            f"Population field '{config.population_field}' not in {gdf.columns.tolist()}"
        )
    if gdf.crs is None:
        raise ValueError(f"Range polygons in {path} have no CRS")

    gdf = gdf[gdf.geometry.notna()].to_crs(config.crs)
    gdf[config.population_field] = gdf[config.population_field].astype(str).str.strip()
    dissolved = gdf.dissolve(by=config.population_field)

    polygons = [
        RangePolygon(population=str(name), geometry=geom)
        for name, geom in zip(dissolved.index, dissolved.geometry)
    ]
    logger.info(f"Loaded {len(polygons)} ranges from {path}")
    return RangeSet(polygons, crs=crs_to_string(dissolved.crs), overlap_policy=config.overlap_policy)


def write_frame(frame: pd.DataFrame, path: Path) -> Path:
    """Write a frame to CSV, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    logger.info(f"Saved {len(frame)} rows: {path}")
    return path


def write_breakdowns(views: Dict[str, pd.DataFrame], output_dir: Path) -> List[Path]:
    """Write each grouped view to <output_dir>/<name>.csv."""
    output_dir = Path(output_dir)
    return [write_frame(view, output_dir / f"{name}.csv") for name, view in views.items()]
