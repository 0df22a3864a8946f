"""
Module: inventory_kernel.models.update_history
Responsibility: First-party history of component updates.  Rows are written
    when an update is observed (upgrade hook, manual entry, import) and can
    be read back through the event log adapter as a structured source.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (component_slug, new_version, updated_on) identifies an update; the
      service refuses to insert a duplicate of that triple.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class UpdateSource(str, Enum):
    """How the update was recorded."""

    AUTO = "auto"
    IMPORT = "import"
    MANUAL = "manual"


class UpdateHistoryEntry(TrackedBase):
    """One recorded component update."""

    __tablename__ = "component_update_history"

    __table_args__ = (
        Index("idx_update_history_slug", "component_slug"),
        Index("idx_update_history_updated_on", "updated_on"),
        Index(
            "idx_update_history_identity",
            "component_slug",
            "new_version",
            "updated_on",
        ),
    )

    component_slug: Mapped[str] = mapped_column(String(190), nullable=False)
    component_name: Mapped[str] = mapped_column(String(255), nullable=False)
    previous_version: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    new_version: Mapped[str] = mapped_column(String(50), default="", nullable=False)

    updated_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    source: Mapped[str] = mapped_column(
        String(20), default=UpdateSource.AUTO.value, nullable=False
    )

    # Human-readable line, also what heuristic extractors parse
    message: Mapped[str] = mapped_column(Text, default="", nullable=False)

    def __repr__(self) -> str:
        return (
            f"<UpdateHistoryEntry {self.component_slug} "
            f"{self.previous_version}->{self.new_version}>"
        )
