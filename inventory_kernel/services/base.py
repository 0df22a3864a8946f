"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor and session contract for every service that writes
    snapshot or history rows.  Services use ``session.flush()`` and never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction; the lifecycle manager owns commit/rollback so that a
      regeneration replaces a period's rows all-or-nothing.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read DTOs; those belong in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
