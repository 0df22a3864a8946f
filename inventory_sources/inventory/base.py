"""
Inventory source protocol and the validating reader.

Contract:
    InventorySource.read_current() returns the present-moment component
    list.  read_inventory() turns it into a slug-keyed mapping and is the
    only entry point the lifecycle manager uses.

Architecture: inventory_sources/inventory.  No snapshot store imports.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from inventory_kernel.domain.dtos import ComponentRecord
from inventory_kernel.exceptions import SourceUnavailableError
from inventory_kernel.logging_config import get_logger

logger = get_logger("sources.inventory")

INVENTORY_SOURCE = "inventory"


@runtime_checkable
class InventorySource(Protocol):
    """Protocol for anything that can list installed components."""

    def read_current(self) -> list[ComponentRecord]:
        """Current components.  Raises on I/O failure; never partial."""
        ...


def read_inventory(
    source: InventorySource,
    include_inactive: bool = True,
) -> dict[str, ComponentRecord]:
    """
    Read and validate the current inventory.

    Raises:
        SourceUnavailableError: the source failed, or returned the same
            slug twice.
    """
    try:
        records = list(source.read_current())
    except SourceUnavailableError:
        raise
    except Exception as exc:
        logger.error(
            "inventory_read_failed",
            extra={"source_type": type(source).__name__, "error": str(exc)},
        )
        raise SourceUnavailableError(INVENTORY_SOURCE, str(exc)) from exc

    components: dict[str, ComponentRecord] = {}
    for record in records:
        if record.slug in components:
            logger.error("inventory_duplicate_slug", extra={"slug": record.slug})
            raise SourceUnavailableError(
                INVENTORY_SOURCE, f"duplicate component slug {record.slug!r}"
            )
        components[record.slug] = record

    if not include_inactive:
        components = {slug: rec for slug, rec in components.items() if rec.active}

    logger.info(
        "inventory_read",
        extra={
            "source_type": type(source).__name__,
            "component_count": len(components),
            "filtered_inactive": len(records) - len(components),
        },
    )
    return components
