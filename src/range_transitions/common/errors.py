"""
Error kinds raised by classification and transition tracking.

All fatal errors carry the individual id and the offending record (when
known) so a failed run can be traced back to its input rows.
"""

from typing import Any, Optional


class RangeStateError(Exception):
    """Base class for fatal classification / tracking errors."""

    def __init__(
        self,
        message: str,
        individual_id: Optional[str] = None,
        record: Any = None
    ):
        super().__init__(message)
        self.individual_id = individual_id
        self.record = record

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        return {
            "individual_id": self.individual_id,
            "error": self.kind,
            "message": str(self),
            "record": repr(self.record) if self.record is not None else None,
        }


class CoordinateFrameMismatch(RangeStateError, ValueError):
    """Points and range polygons are not in the same reference frame."""


class OverlappingRanges(RangeStateError, ValueError):
    """A point is covered by more than one range polygon."""


class InvalidStateLabel(RangeStateError, ValueError):
    """A state outside {home, other, transit} reached the tracker."""


class UnsortedSequence(RangeStateError, ValueError):
    """A location sequence handed to the tracker is not in time order."""


class UnknownPopulationIdentifier(UserWarning):
    """A home population has no range polygon; its individuals can never be 'home'."""
