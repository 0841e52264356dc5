# Overview: Locking, retry and insert-or-fail helpers shared by the services.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for read-then-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def insert_or_fail(obj) -> bool:
    """
    Insert `obj` inside a savepoint.

    Returns False when a unique constraint rejected the row; the savepoint
    is rolled back and the surrounding transaction stays usable. The
    database decides, so two racing writers cannot both win.
    """
    try:
        with db.session.begin_nested():
            db.session.add(obj)
    except IntegrityError:
        if obj in db.session:
            db.session.expunge(obj)
        return False
    return True


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a single-row DB operation with retry on concurrency failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Exhausted retries surface as
    StorageError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError("Storage temporarily unavailable, please retry") from exc
            logger.warning("Retrying after storage conflict (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
