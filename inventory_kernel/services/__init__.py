"""Kernel write services. All services flush; callers commit."""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.period_lock import (
    PeriodLockRegistry,
    acquire_advisory_lock,
    advisory_lock_key,
)
from inventory_kernel.services.snapshot_store import SnapshotStore
from inventory_kernel.services.update_history_service import (
    UpdateHistoryService,
    update_message,
)

__all__ = [
    "BaseService",
    "PeriodLockRegistry",
    "SnapshotStore",
    "UpdateHistoryService",
    "acquire_advisory_lock",
    "advisory_lock_key",
    "update_message",
]
