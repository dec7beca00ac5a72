"""
Configuration and constants for range-state classification.

Unit Model:
- Locations and range polygons share one projected frame
- Default frame is UTM Zone 11N (EPSG:32611), metres
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import json
from pathlib import Path


class OverlapPolicy(Enum):
    """
    What to do when a point falls inside more than one range polygon.

    ERROR (default): raise OverlappingRanges
        - Range polygons are expected not to overlap
    SMALLEST_AREA: the smallest covering polygon owns the point
        - Use when nested or shared ranges are known and accepted
    """
    ERROR = "error"
    SMALLEST_AREA = "smallest_area"


@dataclass
class Config:
    """
    Global configuration for a classification run.
    """

    # Projected frame shared by locations and ranges
    utm_zone: int = 11
    utm_hemisphere: str = "N"

    # Transition rate denominator
    days_per_year: float = 365.25

    overlap_policy: OverlapPolicy = OverlapPolicy.ERROR

    # Attribute holding the population name in the range polygon file
    population_field: str = "popn"

    # JSON {raw_name: canonical_name}, applied to home populations at ingestion
    name_mapping_path: Optional[Path] = None

    # Drop individuals whose home population stays unresolved after mapping
    exclude_unresolved: bool = True

    # Paths (relative to project root)
    data_dir: Path = field(default_factory=lambda: Path("data"))
    output_dir: Path = field(default_factory=lambda: Path("outputs"))

    @property
    def crs(self) -> str:
        """EPSG string of the configured UTM frame."""
        base = 32600 if self.utm_hemisphere.upper() == "N" else 32700
        return f"EPSG:{base + self.utm_zone}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "utm_zone": self.utm_zone,
            "utm_hemisphere": self.utm_hemisphere,
            "days_per_year": self.days_per_year,
            "overlap_policy": self.overlap_policy.value,
            "population_field": self.population_field,
            "name_mapping_path": str(self.name_mapping_path) if self.name_mapping_path else None,
            "exclude_unresolved": self.exclude_unresolved,
            "data_dir": str(self.data_dir),
            "output_dir": str(self.output_dir)
        }

    @classmethod
    def from_json(cls, path: Path) -> "Config":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        data["overlap_policy"] = OverlapPolicy(data.get("overlap_policy", "error"))
        data["data_dir"] = Path(data.get("data_dir", "data"))
        data["output_dir"] = Path(data.get("output_dir", "outputs"))
        if data.get("name_mapping_path"):
            data["name_mapping_path"] = Path(data["name_mapping_path"])
        return cls(**data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = Config()
