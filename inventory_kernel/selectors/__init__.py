"""Read-only selectors."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.snapshot_selector import (
    PreviousPeriodStrategy,
    SnapshotSelector,
)

__all__ = ["BaseSelector", "PreviousPeriodStrategy", "SnapshotSelector"]
