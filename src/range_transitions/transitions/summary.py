"""
Per-individual summary statistics.

Computes, from one individual's labeled and time-ordered locations:
- populations visited (count and semicolon-joined names)
- whether the individual was ever in transit
- first / last fix and tracked duration
- state switch counts by type and switches per year
"""

import logging
import math
from typing import Sequence

from ..common.records import IndividualSummary, LabeledPoint, StateLabel, Transition
from .tracker import as_state, derive_transitions

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25


def summarize(
    individual_id: str,
    labeled_sequence: Sequence[LabeledPoint],
    days_per_year: float = DAYS_PER_YEAR
) -> IndividualSummary:
    """
    Summarize one individual's labeled sequence.

    Args:
        individual_id: Individual the sequence belongs to
        labeled_sequence: Classified points of this individual, in time order.
            Transitions are derived from the states; stored transition
            labels are only checked against them.
        days_per_year: Year length used for the switch rate

    Returns:
        IndividualSummary

    Raises:
        InvalidStateLabel: a point carries a state outside home / other / transit
        UnsortedSequence: the sequence is not in time order
        ValueError: a point belongs to another individual, or its stored
            transition contradicts the derived one
    """
    for point in labeled_sequence:
        as_state(point.state, individual_id, point)

    others = sorted({p.individual_id for p in labeled_sequence} - {individual_id})
    if others:
        raise ValueError(f"Summary of {individual_id} given points of {others}")

    transitions = derive_transitions(
        [(p.state, p.timestamp) for p in labeled_sequence], individual_id
    )
    for i, (point, derived) in enumerate(zip(labeled_sequence, transitions)):
        # UNDEFINED is what classify_points leaves before labeling
        if point.transition is not Transition.UNDEFINED and point.transition is not derived:
            raise ValueError(
                f"{individual_id}: stored transition {point.transition.value} at index {i} "
                f"contradicts derived {derived.value}"
            )

    populations = sorted({p.population for p in labeled_sequence if p.population is not None})
    in_transit = any(as_state(p.state) is StateLabel.TRANSIT for p in labeled_sequence)

    counts = {t: 0 for t in Transition.switches()}
    for transition in transitions:
        if transition.is_switch:
            counts[transition] += 1
    total = sum(counts.values())

    if labeled_sequence:
        first = labeled_sequence[0].timestamp
        last = labeled_sequence[-1].timestamp
        duration_days = (last - first).total_seconds() / 86400.0
    else:
        first = last = None
        duration_days = 0.0

    if duration_days > 0:
        per_year = total / (duration_days / days_per_year)
    elif total == 0:
        per_year = 0.0
    else:
        logger.warning(f"{individual_id}: {total} switches within zero elapsed time")
        per_year = math.nan

    return IndividualSummary(
        individual_id=individual_id,
        tot_popns=len(populations),
        in_transit=in_transit,
        tot_popns_and_transit=len(populations) + (1 if in_transit else 0),
        popns_visited=";".join(populations),
        first_timestamp=first,
        last_timestamp=last,
        duration_days=duration_days,
        total_state_switches=total,
        switches_per_year=per_year,
        **{t.value: n for t, n in counts.items()}
    )
