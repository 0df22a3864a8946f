"""ORM models. Importing this package registers every table on Base.metadata."""

from inventory_kernel.models.snapshot import InventorySnapshot, SnapshotRow, SnapshotState
from inventory_kernel.models.update_history import UpdateHistoryEntry, UpdateSource

__all__ = [
    "InventorySnapshot",
    "SnapshotRow",
    "SnapshotState",
    "UpdateHistoryEntry",
    "UpdateSource",
]
