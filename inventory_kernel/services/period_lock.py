"""
PeriodLockRegistry -- at most one writer per reporting period.

Responsibility:
    Serializes generation, annotation edits and lock/unlock for a single
    period_key.  Different periods never contend with each other.

Architecture position:
    Kernel > Services.  Used by the lifecycle manager around every write
    transaction.

Invariants enforced:
    - One in-process ``threading.Lock`` per period_key, created on first use.
    - The lock is held from before any snapshot state is read until the
      write transaction commits or rolls back.
    - On PostgreSQL a transaction-scoped advisory lock extends the same
      guarantee across processes.

Failure modes:
    - ConcurrentGenerationInProgressError when the bounded wait expires or
      the caller asked not to wait at all.
"""

import hashlib
import threading
import time
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import ConcurrentGenerationInProgressError
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.period_lock")

_ADVISORY_NAMESPACE = "inventory_snapshot:"


class PeriodLockRegistry:
    """
    Registry of per-period mutual exclusion locks.

    Contract:
        ``hold(period_key)`` is a context manager; the body runs with the
        period's lock held.

    Guarantees:
        - Locks for distinct period keys are independent.
        - The lock is released on every exit path, including exceptions.

    Non-goals:
        - Not re-entrant.  A thread holding a period must not ask for it
          again.
    """

    def __init__(self, default_timeout: float | None = 30.0):
        # None blocks indefinitely
        self.default_timeout = default_timeout
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, period_key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(period_key)
            if lock is None:
                lock = threading.Lock()
                self._locks[period_key] = lock
            return lock

    def is_held(self, period_key: str) -> bool:
        with self._guard:
            lock = self._locks.get(period_key)
        return lock is not None and lock.locked()

    @contextmanager
    def hold(
        self,
        period_key: str,
        timeout: float | None = None,
        wait: bool = True,
    ) -> Iterator[None]:
        """
        Hold the lock for ``period_key`` for the duration of the block.

        Args:
            period_key: Period to serialize on.
            timeout: Seconds to wait; falls back to ``default_timeout``.
            wait: When False, fail immediately if another holder exists.

        Raises:
            ConcurrentGenerationInProgressError: lock not acquired.
        """
        lock = self._lock_for(period_key)
        effective_timeout = self.default_timeout if timeout is None else timeout

        started = time.monotonic()
        if not wait:
            acquired = lock.acquire(blocking=False)
        elif effective_timeout is None:
            acquired = lock.acquire()
        else:
            acquired = lock.acquire(timeout=max(effective_timeout, 0))
        waited = time.monotonic() - started

        if not acquired:
            logger.warning(
                "period_lock_timeout",
                extra={
                    "period_key": period_key,
                    "waited_seconds": round(waited, 3),
                    "wait": wait,
                },
            )
            raise ConcurrentGenerationInProgressError(period_key, waited)

        if waited > 0.1:
            logger.debug(
                "period_lock_acquired_after_wait",
                extra={"period_key": period_key, "waited_seconds": round(waited, 3)},
            )

        try:
            yield
        finally:
            lock.release()


def advisory_lock_key(period_key: str) -> int:
    """Stable signed 64-bit key for ``pg_advisory_xact_lock``."""
    digest = hashlib.sha256(f"{_ADVISORY_NAMESPACE}{period_key}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def acquire_advisory_lock(session: Session, period_key: str) -> bool:
    """
    Take a transaction-scoped PostgreSQL advisory lock for ``period_key``.

    Released automatically at commit or rollback.  A no-op on other
    dialects, where the in-process registry is the only serialization.

    Returns:
        True if the advisory lock was taken.
    """
    bind = session.get_bind()
    if bind.dialect.name != "postgresql":
        return False
    session.execute(
        text("SELECT pg_advisory_xact_lock(:key)"),
        {"key": advisory_lock_key(period_key)},
    )
    return True
