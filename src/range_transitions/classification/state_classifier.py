"""
State Classifier Module

Assigns each location one of three spatial states relative to a set of
population range polygons:
- home: inside the polygon owned by the individual's home population
- other: inside a polygon owned by a different population
- transit: inside no polygon

Containment is boundary-inclusive (a point on a polygon edge is contained).
"""

import logging
import warnings
from itertools import combinations
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from pyproj.exceptions import CRSError
from shapely import STRtree
from shapely.geometry import Point

from ..common.config import OverlapPolicy
from ..common.coords import frames_match
from ..common.errors import (
    CoordinateFrameMismatch,
    OverlappingRanges,
    UnknownPopulationIdentifier,
)
from ..common.records import (
    DEFAULT_CRS,
    LabeledPoint,
    LocationRecord,
    RangePolygon,
    StateLabel,
)

logger = logging.getLogger(__name__)


class RangeSet:
    """
    Immutable set of range polygons in one reference frame.

    Loaded once per run and shared read-only by every classification call.
    """

    def __init__(
        self,
        polygons: Iterable[RangePolygon],
        crs: str = DEFAULT_CRS,
        overlap_policy: OverlapPolicy = OverlapPolicy.ERROR
    ):
        """
        Args:
            polygons: Range polygons, one per population
            crs: Reference frame the polygons are expressed in
            overlap_policy: Resolution rule for points covered by >1 polygon
        """
        self._polygons: Tuple[RangePolygon, ...] = tuple(polygons)
        self.crs = crs
        self.overlap_policy = OverlapPolicy(overlap_policy)

        seen: Set[str] = set()
        for poly in self._polygons:
            if poly.population in seen:
                raise ValueError(f"Duplicate range polygon for population '{poly.population}'")
            seen.add(poly.population)
        self._populations = frozenset(seen)

        self._tree = STRtree([p.geometry for p in self._polygons])
        self._verified_frames: Set[str] = set()

        logger.info(f"Loaded {len(self._polygons)} range polygons ({self.crs})")

    def __len__(self) -> int:
        return len(self._polygons)

    def __iter__(self):
        return iter(self._polygons)

    @property
    def populations(self) -> frozenset:
        return self._populations

    def check_frame(self, crs: str, record: Optional[LocationRecord] = None) -> None:
        """
        Raise CoordinateFrameMismatch unless `crs` matches the polygon frame.

        Frames already verified are remembered, so repeated checks are cheap.
        A frame pyproj cannot parse is a mismatch too.
        """
        if crs in self._verified_frames:
            return
        individual_id = record.individual_id if record is not None else None
        try:
            match = frames_match(crs, self.crs)
        except CRSError as e:
            raise CoordinateFrameMismatch(
                f"Location frame {crs!r} is not a valid CRS: {e}",
                individual_id=individual_id,
                record=record
            ) from e
        if not match:
            raise CoordinateFrameMismatch(
                f"Location frame {crs} does not match range polygon frame {self.crs}",
                individual_id=individual_id,
                record=record
            )
        self._verified_frames.add(crs)

    def find_containing(self, x: float, y: float) -> List[RangePolygon]:
        """Return every polygon covering (x, y), boundary included."""
        pt = Point(x, y)
        candidates = self._tree.query(pt)
        return [
            self._polygons[i] for i in sorted(int(i) for i in candidates)
            if self._polygons[i].geometry.covers(pt)
        ]

    def overlapping_pairs(self) -> List[Tuple[str, str]]:
        """List population pairs whose range polygons share interior area."""
        pairs = []
        for a, b in combinations(self._polygons, 2):
            if a.geometry.intersects(b.geometry) and a.geometry.intersection(b.geometry).area > 0:
                pairs.append((a.population, b.population))
        return pairs


def _resolve_owner(
    point: LocationRecord,
    covering: Sequence[RangePolygon],
    policy: OverlapPolicy
) -> RangePolygon:
    if len(covering) == 1:
        return covering[0]
    if policy is OverlapPolicy.SMALLEST_AREA:
        return min(covering, key=lambda p: (p.area, p.population))
    raise OverlappingRanges(
        f"Point ({point.x}, {point.y}) at {point.timestamp} is covered by "
        f"{len(covering)} ranges: {', '.join(p.population for p in covering)}",
        individual_id=point.individual_id,
        record=point
    )


def classify(
    point: LocationRecord,
    range_set: RangeSet
) -> Tuple[StateLabel, Optional[str]]:
    """
    Classify one location against the range polygons.

    Args:
        point: Location in the same frame as `range_set`
        range_set: Loaded range polygons

    Returns:
        (state label, population of the containing polygon or None)

    Raises:
        CoordinateFrameMismatch: point and polygons are in different frames
        OverlappingRanges: point covered by >1 polygon under the ERROR policy
    """
    range_set.check_frame(point.crs, point)

    covering = range_set.find_containing(point.x, point.y)
    if not covering:
        return StateLabel.TRANSIT, None

    owner = _resolve_owner(point, covering, range_set.overlap_policy)
    if owner.population == point.home_population:
        return StateLabel.HOME, owner.population
    return StateLabel.OTHER, owner.population


def check_home_populations(
    points: Iterable[LocationRecord],
    range_set: RangeSet
) -> Set[str]:
    """
    Find home populations that have no range polygon.

    Individuals of such populations are still classifiable but can never
    reach the 'home' state, so this is reported as a warning, not an error.

    Returns:
        Set of unknown home population identifiers
    """
    unknown = {p.home_population for p in points} - range_set.populations
    if unknown:
        message = (
            f"{len(unknown)} home population(s) match no range polygon and can never be "
            f"'home': {', '.join(sorted(unknown))}"
        )
        logger.warning(message)
        warnings.warn(message, UnknownPopulationIdentifier, stacklevel=2)
    return unknown


def check_frames(points: Sequence[LocationRecord], range_set: RangeSet) -> None:
    """Check every distinct frame of a batch against the range polygons."""
    for crs in sorted({p.crs for p in points}, key=str):
        first = next(p for p in points if p.crs == crs)
        range_set.check_frame(crs, first)


def classify_points(
    points: Sequence[LocationRecord],
    range_set: RangeSet,
    check_populations: bool = True
) -> List[LabeledPoint]:
    """
    Classify a batch of locations.

    Every distinct frame in the batch is checked before any point is
    classified, so a mismatch never yields a partially labeled batch.

    Args:
        points: Locations, any order
        range_set: Loaded range polygons
        check_populations: Run check_home_populations on the batch first;
            callers that already checked the whole run pass False

    Returns:
        LabeledPoint per input location, in input order (transition UNDEFINED)
    """
    check_frames(points, range_set)
    if check_populations:
        check_home_populations(points, range_set)

    labeled = []
    for point in points:
        state, population = classify(point, range_set)
        labeled.append(LabeledPoint(location=point, state=state, population=population))

    counts = {s: sum(1 for lp in labeled if lp.state is s) for s in StateLabel}
    logger.debug(
        f"Classified {len(labeled)} points: "
        + ", ".join(f"{s.value}={n}" for s, n in counts.items())
    )
    return labeled
