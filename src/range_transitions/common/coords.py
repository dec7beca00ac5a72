"""
Coordinate frame utilities.

Unit Flow:
Raw GPS (lat/lon, degrees) → UTM Zone 11N → meters (x, y)

Classification never reprojects: it only checks that points and range
polygons already share a frame (see frames_match).
"""

import numpy as np
from typing import Tuple, Union
from dataclasses import dataclass
from functools import lru_cache
import logging

from pyproj import Transformer, CRS

logger = logging.getLogger(__name__)


@dataclass
class UTMCoordinates:
    """UTM coordinates in meters."""
    x_m: np.ndarray  # Easting in meters
    y_m: np.ndarray  # Northing in meters
    zone: int
    hemisphere: str

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Return (x_min, x_max, y_min, y_max) in meters."""
        return (
            float(np.min(self.x_m)),
            float(np.max(self.x_m)),
            float(np.min(self.y_m)),
            float(np.max(self.y_m))
        )


class CoordinateTransformer:
    """
    Transform GPS coordinates to UTM (meters).

    Used by ingestion only; the classifier consumes already-projected data.
    """

    def __init__(self, utm_zone: int = 11, hemisphere: str = "N"):
        """
        Initialize transformer.

        Args:
            utm_zone: UTM zone number (default 11)
            hemisphere: 'N' or 'S'
        """
        self.utm_zone = utm_zone
        self.hemisphere = hemisphere.upper()

        self.crs_wgs84 = CRS.from_epsg(4326)
        self.epsg_utm = 32600 + utm_zone if self.hemisphere == "N" else 32700 + utm_zone
        self.crs_utm = CRS.from_epsg(self.epsg_utm)
        self.transformer = Transformer.from_crs(
            self.crs_wgs84, self.crs_utm, always_xy=True
        )
        logger.debug(f"Using pyproj for UTM Zone {utm_zone}{self.hemisphere} (EPSG:{self.epsg_utm})")

    @property
    def crs(self) -> str:
        return f"EPSG:{self.epsg_utm}"

    def to_utm(
        self,
        lon: Union[float, np.ndarray],
        lat: Union[float, np.ndarray]
    ) -> UTMCoordinates:
        """
        Transform longitude/latitude to UTM coordinates in meters.

        Args:
            lon: Longitude array (degrees)
            lat: Latitude array (degrees)

        Returns:
            UTMCoordinates with x_m, y_m in meters
        """
        lon = np.asarray(lon, dtype=np.float64)
        lat = np.asarray(lat, dtype=np.float64)

        x_m, y_m = self.transformer.transform(lon, lat)

        return UTMCoordinates(
            x_m=np.asarray(x_m, dtype=np.float64),
            y_m=np.asarray(y_m, dtype=np.float64),
            zone=self.utm_zone,
            hemisphere=self.hemisphere
        )


@lru_cache(maxsize=64)
def _as_crs(spec: str) -> CRS:
    return CRS.from_user_input(spec)


def frames_match(a: Union[str, CRS], b: Union[str, CRS]) -> bool:
    """
    Check whether two CRS specifications denote the same reference frame.

    Accepts anything pyproj understands ("EPSG:32611", WKT, CRS objects).
    """
    crs_a = _as_crs(a) if isinstance(a, str) else CRS.from_user_input(a)
    crs_b = _as_crs(b) if isinstance(b, str) else CRS.from_user_input(b)
    return crs_a == crs_b


def crs_to_string(crs: Union[str, CRS]) -> str:
    """Short, stable string for a CRS (EPSG code when one exists)."""
    crs = CRS.from_user_input(crs)
    epsg = crs.to_epsg()
    if epsg is not None:
        return f"EPSG:{epsg}"
    return crs.to_string()
