"""Inventory readers: the current component list."""

from inventory_sources.inventory.base import InventorySource, read_inventory
from inventory_sources.inventory.distributions import InstalledDistributionsSource
from inventory_sources.inventory.manifest import JsonManifestInventorySource
from inventory_sources.inventory.static import StaticInventorySource

__all__ = [
    "InstalledDistributionsSource",
    "InventorySource",
    "JsonManifestInventorySource",
    "StaticInventorySource",
    "read_inventory",
]
