"""
Per-individual transition derivation and summary statistics.
"""

from .tracker import derive_transitions, ensure_sorted, label_individual, label_transitions
from .summary import summarize

__all__ = [
    "derive_transitions",
    "ensure_sorted",
    "label_individual",
    "label_transitions",
    "summarize",
]
