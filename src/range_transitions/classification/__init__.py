"""
Spatial state classification of tracked locations.
"""

from .state_classifier import (
    RangeSet,
    check_frames,
    check_home_populations,
    classify,
    classify_points,
)

__all__ = [
    "RangeSet",
    "classify",
    "classify_points",
    "check_frames",
    "check_home_populations",
]
