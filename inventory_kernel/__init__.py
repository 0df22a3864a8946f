"""
Inventory Kernel - snapshot and reconciliation core

A period-keyed inventory snapshot store with:
- Idempotent, at-most-once-per-period generation
- Atomic full-period row replacement
- Lockable snapshots
- Annotation carry-forward across regeneration
"""

__version__ = "0.1.0"
