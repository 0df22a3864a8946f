"""
inventory_services.factory -- Wire settings into collaborators.

The only place that reads ``AuditSettings`` and turns it into constructor
arguments for sources, adapters and the lifecycle manager.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from inventory_config.schema import AuditSettings, EventLogSettings, InventorySettings
from inventory_kernel.db.engine import build_engine
from inventory_kernel.domain.clock import Clock
from inventory_kernel.services.period_lock import PeriodLockRegistry
from inventory_sources.events.adapter import EventLogAdapter, NullEventLogAdapter
from inventory_sources.events.base import ContextTableSpec, EventLogSchema
from inventory_sources.events.sql_source import SqlEventLogSource
from inventory_sources.inventory.base import InventorySource
from inventory_sources.inventory.distributions import InstalledDistributionsSource
from inventory_sources.inventory.manifest import JsonManifestInventorySource
from inventory_services.lifecycle import SnapshotLifecycleManager


def event_log_schema(settings: EventLogSettings) -> EventLogSchema:
    context_table = None
    if settings.context_table is not None:
        context_table = ContextTableSpec(
            table=settings.context_table.table,
            event_id_field=settings.context_table.event_id_field,
            key_field=settings.context_table.key_field,
            value_field=settings.context_table.value_field,
        )
    return EventLogSchema(
        table=settings.table,
        timestamp_field=settings.timestamp_field,
        message_field=settings.message_field,
        context_field=settings.context_field,
        id_field=settings.id_field,
        action_field=settings.action_field,
        action_values=tuple(settings.action_values),
        message_keyword=settings.message_keyword,
        context_table=context_table,
    )


def build_event_adapter(
    settings: EventLogSettings,
    store_engine: Engine,
) -> EventLogAdapter | NullEventLogAdapter:
    """
    Event adapter for the configured source.

    The internal source and an external log without its own
    ``database_url`` are read through the snapshot store's engine.
    """
    if not settings.enabled:
        return NullEventLogAdapter()

    engine = store_engine
    if settings.source == "external" and settings.database_url:
        engine = build_engine(settings.database_url, pool_size=2, max_overflow=2)

    source = SqlEventLogSource(
        engine,
        event_log_schema(settings),
        name=settings.source,
        statement_timeout_ms=settings.statement_timeout_ms,
    )
    return EventLogAdapter(source, source.schema)


def build_inventory_source(
    settings: InventorySettings,
    clock: Clock | None = None,
    base_dir: Path | None = None,
) -> InventorySource:
    if settings.kind == "manifest":
        path = Path(settings.manifest_path)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return JsonManifestInventorySource(
            path,
            format=settings.manifest_format,
            json_path=settings.json_path or None,
            clock=clock,
        )
    return InstalledDistributionsSource(clock=clock)


def build_lifecycle_manager(
    settings: AuditSettings,
    engine: Engine,
    clock: Clock | None = None,
    inventory_source: InventorySource | None = None,
    event_source=None,
    lock_registry: PeriodLockRegistry | None = None,
    base_dir: Path | None = None,
) -> SnapshotLifecycleManager:
    """
    Lifecycle manager for ``settings`` over ``engine``.

    Explicit ``inventory_source`` / ``event_source`` override what the
    settings describe.
    """
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return SnapshotLifecycleManager(
        session_factory=session_factory,
        inventory_source=inventory_source or build_inventory_source(settings.inventory, clock, base_dir),
        event_source=event_source or build_event_adapter(settings.event_log, engine),
        clock=clock,
        lock_registry=lock_registry,
        previous_period_strategy=settings.tracking.previous_period_strategy,
        include_inactive=settings.tracking.include_inactive,
        lock_timeout_seconds=settings.generation.lock_timeout_seconds,
    )
