"""
Transition Tracker Module

Derives, for each individual's time-ordered locations, the transition label
of every location relative to the one before it:
- undefined: first location (no predecessor)
- no_change: same state as the previous location
- <previous>_to_<current>: one of six directed state switches

Individuals are processed independently; input order is never trusted.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ..common.errors import InvalidStateLabel, UnsortedSequence
from ..common.records import LabeledPoint, StateLabel, Transition

logger = logging.getLogger(__name__)


def as_state(value, individual_id: Optional[str] = None, record=None) -> StateLabel:
    """
    Coerce a state value to StateLabel.

    Raises:
        InvalidStateLabel: value is not one of home / other / transit
    """
    if isinstance(value, StateLabel):
        return value
    try:
        return StateLabel(value)
    except ValueError:
        raise InvalidStateLabel(
            f"Invalid state label {value!r}; expected one of "
            f"{', '.join(s.value for s in StateLabel)}",
            individual_id=individual_id,
            record=record
        ) from None


def ensure_sorted(
    sequence: Sequence[Tuple[StateLabel, datetime]],
    individual_id: Optional[str] = None
) -> None:
    """
    Reject a sequence whose timestamps decrease anywhere.

    Equal consecutive timestamps are accepted.

    Raises:
        UnsortedSequence: with the index of the first out-of-order item
    """
    for i in range(1, len(sequence)):
        prev_t = sequence[i - 1][1]
        cur_t = sequence[i][1]
        if cur_t < prev_t:
            raise UnsortedSequence(
                f"Sequence not in time order at index {i}: {cur_t} precedes {prev_t}",
                individual_id=individual_id,
                record=sequence[i]
            )


def derive_transitions(
    sequence: Sequence[Tuple[StateLabel, datetime]],
    individual_id: Optional[str] = None
) -> List[Transition]:
    """
    Derive the transition label of each item of one individual's sequence.

    Args:
        sequence: (state, timestamp) pairs sorted by timestamp ascending
        individual_id: Used for error context only

    Returns:
        List of the same length; first item UNDEFINED (empty for empty input)

    Raises:
        UnsortedSequence: timestamps are not in ascending order
        InvalidStateLabel: a state outside the three-value domain
    """
    ensure_sorted(sequence, individual_id)

    states = [as_state(s, individual_id, (s, t)) for s, t in sequence]
    if not states:
        return []

    transitions = [Transition.UNDEFINED]
    for prev, cur in zip(states[:-1], states[1:]):
        transitions.append(Transition.between(prev, cur))
    return transitions


def label_individual(points: Sequence[LabeledPoint]) -> List[LabeledPoint]:
    """
    Attach transition labels to one individual's time-ordered points.

    Returns:
        New LabeledPoint objects; the inputs are not modified

    Raises:
        ValueError: points belong to more than one individual
        UnsortedSequence: points are not in time order
    """
    if not points:
        return []

    ids = {p.individual_id for p in points}
    if len(ids) > 1:
        raise ValueError(f"Expected points of one individual, got {sorted(ids)}")
    individual_id = points[0].individual_id

    transitions = derive_transitions(
        [(p.state, p.timestamp) for p in points],
        individual_id=individual_id
    )
    return [p.with_transition(t) for p, t in zip(points, transitions)]


def group_by_individual(points: Sequence) -> Dict[str, List]:
    """
    Group points by individual, each group sorted by timestamp (stable).

    Accepts LocationRecord or LabeledPoint items.
    """
    groups: Dict[str, List] = defaultdict(list)
    for p in points:
        groups[p.individual_id].append(p)
    return {
        ind_id: sorted(group, key=lambda p: p.timestamp)
        for ind_id, group in groups.items()
    }


def label_transitions(points: Sequence[LabeledPoint]) -> List[LabeledPoint]:
    """
    Group points by individual, sort each group by time, attach transitions.

    Returns:
        Labeled points ordered by individual then timestamp
    """
    labeled = []
    for ind_id, group in group_by_individual(points).items():
        labeled.extend(label_individual(group))
    logger.debug(f"Labeled transitions for {len(labeled)} points")
    return labeled
