"""
inventory_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines with database
    sessions and source adapters.  This is the only layer that owns
    transactions.

Architecture position:
    Services -- orchestration over engines, sources and kernel.

        inventory_services/ -> inventory_engines/  (allowed)
        inventory_services/ -> inventory_sources/  (allowed)
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.factory import (
    build_event_adapter,
    build_inventory_source,
    build_lifecycle_manager,
    event_log_schema,
)
from inventory_services.lifecycle import EventSource, SnapshotLifecycleManager

__all__ = [
    "EventSource",
    "SnapshotLifecycleManager",
    "build_event_adapter",
    "build_inventory_source",
    "build_lifecycle_manager",
    "event_log_schema",
]
