"""
UpdateHistoryService -- first-party record of component updates.

Responsibility:
    Records component updates as they are observed, answers history
    queries by window, period and component, and prunes old entries.
    The table it writes can be configured as the event log source, which
    lets a deployment without an external audit log still recover exact
    version transitions.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - (component_slug, new_version, updated_on) is recorded at most once.
    - capture_updates() writes nothing when tracking is disabled.
"""

from datetime import datetime, timedelta
from typing import Iterable, Mapping

from sqlalchemy import delete, select

from inventory_kernel.domain.clock import Clock, SystemClock, ensure_utc
from inventory_kernel.domain.dtos import ComponentRecord, UpdateRecord
from inventory_kernel.domain.periods import period_window
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.update_history import UpdateHistoryEntry, UpdateSource
from inventory_kernel.services.base import BaseService

logger = get_logger("services.update_history")


def update_message(name: str, previous_version: str, new_version: str) -> str:
    """Human-readable history line for one update."""
    if previous_version:
        return f'Updated component "{name}" from {previous_version} to {new_version}'
    return f'Updated component "{name}" to {new_version}'


class UpdateHistoryService(BaseService[UpdateHistoryEntry]):
    """
    Service for the component update history table.

    Contract:
        Timestamps are stored in UTC.  Callers that omit ``updated_on`` get
        the injected clock's time.
    """

    def __init__(self, session, clock: Clock | None = None, enabled: bool = True):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._enabled = enabled

    def record_update(
        self,
        slug: str,
        name: str,
        previous_version: str,
        new_version: str,
        updated_on: datetime | None = None,
        source: UpdateSource | str = UpdateSource.AUTO,
        message: str | None = None,
    ) -> UpdateRecord | None:
        """
        Insert one history entry.

        Returns:
            The new record, or None when an identical entry already exists.
        """
        updated_on = ensure_utc(updated_on) if updated_on else self._clock.now()
        source = UpdateSource(source)

        existing = self.session.execute(
            select(UpdateHistoryEntry.id).where(
                UpdateHistoryEntry.component_slug == slug,
                UpdateHistoryEntry.new_version == new_version,
                UpdateHistoryEntry.updated_on == updated_on,
            )
        ).first()
        if existing is not None:
            logger.debug(
                "update_history_duplicate",
                extra={"slug": slug, "new_version": new_version},
            )
            return None

        entry = UpdateHistoryEntry(
            component_slug=slug,
            component_name=name or slug,
            previous_version=previous_version or "",
            new_version=new_version or "",
            updated_on=updated_on,
            source=source.value,
            message=message or update_message(name or slug, previous_version, new_version),
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "update_recorded",
            extra={
                "slug": slug,
                "previous_version": entry.previous_version,
                "new_version": entry.new_version,
                "source": source.value,
            },
        )
        return UpdateRecord.from_model(entry)

    def capture_updates(
        self,
        components: Iterable[ComponentRecord],
        previous_versions: Mapping[str, str] | None = None,
    ) -> list[UpdateRecord]:
        """
        Record every component whose version moved.

        The old version comes from ``previous_versions`` when the caller
        knows it, otherwise from the component's latest history entry.
        Components with no known old version, and components whose latest
        entry already records the current version, are skipped.
        """
        if not self._enabled:
            logger.debug("update_capture_disabled")
            return []

        previous_versions = previous_versions or {}
        recorded: list[UpdateRecord] = []
        for component in components:
            latest = self.get_latest_for_component(component.slug)
            if latest is not None and latest.new_version == component.current_version:
                continue

            previous = previous_versions.get(component.slug)
            if not previous and latest is not None:
                previous = latest.new_version
            if not previous or previous == component.current_version:
                continue

            record = self.record_update(
                slug=component.slug,
                name=component.name,
                previous_version=previous,
                new_version=component.current_version,
                updated_on=component.observed_at,
                source=UpdateSource.AUTO,
            )
            if record is not None:
                recorded.append(record)
        return recorded

    def get_updates_between(self, start: datetime, end: datetime) -> list[UpdateRecord]:
        """Entries with ``start <= updated_on < end``, oldest first."""
        entries = self.session.execute(
            select(UpdateHistoryEntry)
            .where(
                UpdateHistoryEntry.updated_on >= ensure_utc(start),
                UpdateHistoryEntry.updated_on < ensure_utc(end),
            )
            .order_by(UpdateHistoryEntry.updated_on, UpdateHistoryEntry.component_slug)
        ).scalars().all()
        return [UpdateRecord.from_model(entry) for entry in entries]

    def get_updates_for_period(self, period_key: str) -> list[UpdateRecord]:
        window = period_window(period_key)
        return self.get_updates_between(window.start, window.end)

    def get_latest_for_component(self, slug: str) -> UpdateRecord | None:
        entry = self.session.execute(
            select(UpdateHistoryEntry)
            .where(UpdateHistoryEntry.component_slug == slug)
            .order_by(UpdateHistoryEntry.updated_on.desc())
            .limit(1)
        ).scalar_one_or_none()
        return UpdateRecord.from_model(entry) if entry is not None else None

    def prune(self, older_than_days: int) -> int:
        """Delete entries older than the retention window.  Returns the count."""
        if older_than_days <= 0:
            return 0
        cutoff = self._clock.now() - timedelta(days=older_than_days)
        result = self.session.execute(
            delete(UpdateHistoryEntry).where(UpdateHistoryEntry.updated_on < cutoff)
        )
        self.session.flush()
        removed = result.rowcount or 0

        logger.info(
            "update_history_pruned",
            extra={"older_than_days": older_than_days, "removed": removed},
        )
        return removed
