"""
Typed records shared by every stage.

Unit Model:
- Location x/y are planar metres in one projected frame (UTM Zone 11N by default)
- Range polygons are expressed in that same frame
"""

from enum import Enum
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Dict, Any

from shapely.geometry.base import BaseGeometry

DEFAULT_CRS = "EPSG:32611"


class StateLabel(Enum):
    """
    Spatial state of a single location.

    HOME: inside the range polygon of the individual's own population
    OTHER: inside the range polygon of a different population
    TRANSIT: inside no range polygon
    """
    HOME = "home"
    OTHER = "other"
    TRANSIT = "transit"


class Transition(Enum):
    """
    Transition label attached to a location.

    UNDEFINED marks the first location of an individual (no predecessor).
    NO_CHANGE means the state equals the previous location's state.
    The remaining six members are the directed state switches.
    """
    UNDEFINED = "undefined"
    NO_CHANGE = "no_change"
    HOME_TO_OTHER = "home_to_other"
    HOME_TO_TRANSIT = "home_to_transit"
    OTHER_TO_HOME = "other_to_home"
    OTHER_TO_TRANSIT = "other_to_transit"
    TRANSIT_TO_HOME = "transit_to_home"
    TRANSIT_TO_OTHER = "transit_to_other"

    @property
    def is_switch(self) -> bool:
        return self not in (Transition.UNDEFINED, Transition.NO_CHANGE)

    @property
    def previous(self) -> Optional[StateLabel]:
        if not self.is_switch:
            return None
        return StateLabel(self.value.split("_to_")[0])

    @property
    def current(self) -> Optional[StateLabel]:
        if not self.is_switch:
            return None
        return StateLabel(self.value.split("_to_")[1])

    @classmethod
    def between(cls, previous: StateLabel, current: StateLabel) -> "Transition":
        """Transition from `previous` to `current` (NO_CHANGE if equal)."""
        if previous == current:
            return cls.NO_CHANGE
        return cls(f"{previous.value}_to_{current.value}")

    @classmethod
    def switches(cls) -> tuple:
        """The six directed transitions, in declaration order."""
        return tuple(t for t in cls if t.is_switch)


@dataclass(frozen=True)
class LocationRecord:
    """A single GPS fix of a tracked individual, in projected metres."""
    individual_id: str
    home_population: str
    timestamp: datetime
    x: float  # Easting in meters
    y: float  # Northing in meters
    crs: str = DEFAULT_CRS
    sex: Optional[str] = None
    age_class: Optional[str] = None

    @property
    def age_sex(self) -> Optional[str]:
        if self.sex is None or self.age_class is None:
            return None
        return f"{self.age_class}_{self.sex}"


@dataclass(frozen=True)
class RangePolygon:
    """Manager-delineated range of one population."""
    population: str
    geometry: BaseGeometry

    @property
    def area(self) -> float:
        return float(self.geometry.area)


@dataclass(frozen=True)
class LabeledPoint:
    """A location with its classified state and (later) its transition label."""
    location: LocationRecord
    state: StateLabel
    population: Optional[str] = None  # owner of the containing polygon
    transition: Transition = Transition.UNDEFINED

    @property
    def individual_id(self) -> str:
        return self.location.individual_id

    @property
    def timestamp(self) -> datetime:
        return self.location.timestamp

    def with_transition(self, transition: Transition) -> "LabeledPoint":
        return replace(self, transition=transition)


@dataclass(frozen=True)
class IndividualSummary:
    """
    Per-individual summary derived from a labeled, time-ordered sequence.

    Invariants:
    - total_state_switches == sum of the six directed counts
    - tot_popns_and_transit == tot_popns + (1 if in_transit else 0)
    """
    individual_id: str
    tot_popns: int
    in_transit: bool
    tot_popns_and_transit: int
    popns_visited: str
    first_timestamp: Optional[datetime]
    last_timestamp: Optional[datetime]
    duration_days: float
    total_state_switches: int
    home_to_other: int = 0
    home_to_transit: int = 0
    other_to_home: int = 0
    other_to_transit: int = 0
    transit_to_home: int = 0
    transit_to_other: int = 0
    switches_per_year: float = 0.0

    def switch_count(self, transition: Transition) -> int:
        """Count for one directed transition."""
        return getattr(self, transition.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "individual_id": self.individual_id,
            "tot_popns": self.tot_popns,
            "in_transit": self.in_transit,
            "tot_popns_and_transit": self.tot_popns_and_transit,
            "popns_visited": self.popns_visited,
            "first_timestamp": self.first_timestamp,
            "last_timestamp": self.last_timestamp,
            "duration_days": self.duration_days,
            "total_state_switches": self.total_state_switches,
            "home_to_other": self.home_to_other,
            "home_to_transit": self.home_to_transit,
            "other_to_home": self.other_to_home,
            "other_to_transit": self.other_to_transit,
            "transit_to_home": self.transit_to_home,
            "transit_to_other": self.transit_to_other,
            "switches_per_year": self.switches_per_year,
        }
