"""
Common modules shared by classification, tracking and aggregation.

Unit Model:
- Raw GPS → UTM Zone 11N (meters) at ingestion, never inside the core
- Locations and range polygons must share one frame
"""

from .config import Config, OverlapPolicy, DEFAULT_CONFIG
from .coords import CoordinateTransformer, frames_match
from .errors import (
    RangeStateError,
    CoordinateFrameMismatch,
    OverlappingRanges,
    InvalidStateLabel,
    UnsortedSequence,
    UnknownPopulationIdentifier,
)
from .records import (
    DEFAULT_CRS,
    StateLabel,
    Transition,
    LocationRecord,
    RangePolygon,
    LabeledPoint,
    IndividualSummary,
)

__all__ = [
    'Config', 'OverlapPolicy', 'DEFAULT_CONFIG',
    'CoordinateTransformer', 'frames_match',
    'RangeStateError', 'CoordinateFrameMismatch', 'OverlappingRanges',
    'InvalidStateLabel', 'UnsortedSequence', 'UnknownPopulationIdentifier',
    'DEFAULT_CRS', 'StateLabel', 'Transition', 'LocationRecord',
    'RangePolygon', 'LabeledPoint', 'IndividualSummary',
]
