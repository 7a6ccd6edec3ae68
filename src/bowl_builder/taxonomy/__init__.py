"""Category taxonomy maintenance: diffing, order reconciliation and cascades."""

from .cascade import CascadePropagator, CascadeResult, StepOutcome, apply_taxonomy_change
from .diff import TaxonomyDiff, diff_taxonomy
from .reconcile import Partition, partition, reconcile, resync_limits

__all__ = [
    "CascadePropagator",
    "CascadeResult",
    "Partition",
    "StepOutcome",
    "TaxonomyDiff",
    "apply_taxonomy_change",
    "diff_taxonomy",
    "partition",
    "reconcile",
    "resync_limits",
]
