# Overview: Retry and locking helpers shared by write-path services.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

RETRYABLE = (OperationalError, StaleDataError)


def lock_for_update(query):
    """SELECT ... FOR UPDATE on engines that support it (SQLite ignores it)."""
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func, retrying on lock timeouts, deadlocks and stale rows.

    The session is rolled back before each retry, so func has to re-read
    everything it touches. Waits backoff_base * 2**n between attempts and
    re-raises the last error once attempts are used up.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            logger.warning("Concurrency conflict, retry %d of %d: %s", attempt, attempts - 1, exc)
            time.sleep(backoff_base * (2 ** (attempt - 1)))


def is_unique_violation(exc: IntegrityError, *columns: str) -> bool:
    """
    Best-effort check that an IntegrityError came from a unique constraint
    touching the given columns. Driver messages differ, so this matches on
    the message text ("UNIQUE constraint failed: invoices.invoice_number"
    on SQLite, the constraint name on PostgreSQL).
    """
    message = str(getattr(exc, "orig", exc)).lower()
    if "unique" not in message and "duplicate" not in message:
        return False
    if not columns:
        return True
    return any(col.lower() in message for col in columns)
