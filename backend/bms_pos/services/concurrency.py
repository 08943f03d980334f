# Overview: Service-layer operations for concurrency; encapsulates business logic and database work.

"""
Concurrency control for shared counters (product stock, returned quantities).

Strategy (both layers are always on):
- Pessimistic: lock_for_update() issues SELECT ... FOR UPDATE on the rows a
  unit of work reads, validates and then writes. PostgreSQL honours it.
- Optimistic: hot rows carry a version_id_col, so a write based on a stale
  read raises StaleDataError. This is what protects SQLite, which ignores
  FOR UPDATE.

run_with_retry() wraps one whole unit of work (read, validate, write,
commit). On a conflict it rolls back and re-runs the work from the top, so
validation always sees fresh rows. When attempts run out the caller gets a
ConflictError (409, retryable).
"""

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db

logger = logging.getLogger(__name__)

_LOCK_MARKERS = ("lock", "deadlock", "serializ", "could not obtain")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _is_conflict(exc: Exception) -> bool:
    if isinstance(exc, (StaleDataError, IntegrityError)):
        return True
    if isinstance(exc, OperationalError):
        text = str(getattr(exc, "orig", exc)).lower()
        return any(marker in text for marker in _LOCK_MARKERS)
    return False


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.05,
    conflict_message: str = "The record was modified by another request. Please retry.",
):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on lock/deadlock OperationalError, StaleDataError (optimistic
    locking) and IntegrityError (a constraint tripped by a concurrent
    writer). Any other exception rolls the session back and propagates.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            if not _is_conflict(exc):
                raise
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d conflicting attempts: %s", attempts, exc)
                raise ConflictError(conflict_message) from exc
            logger.debug("Concurrency conflict on attempt %d, retrying: %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
