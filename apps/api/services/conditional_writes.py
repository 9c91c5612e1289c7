"""
Conditional-write helpers for the content and day-entry stores.

Invariants such as "one day entry per (user, day)" are enforced by unique
constraints; these helpers turn a constraint hit into a boolean instead of
an exception, and bound how often a transient storage failure is retried.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, TypeVar

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from core.exceptions import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, PoolTimeoutError)


def insert_if_absent(db: Session, model, values: Dict[str, Any], conflict_columns: Iterable[str]) -> bool:
    """
    Insert one row unless a row with the same key already exists.

    Returns True when this call inserted the row, False when another writer
    got there first. Never overwrites an existing row.
    """
    dialect = db.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(model.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        result = db.execute(stmt)
        return result.rowcount == 1

    # Other dialects: rely on the unique constraint inside a savepoint.
    try:
        with db.begin_nested():
            db.add(model(**values))
        return True
    except IntegrityError:
        return False


def call_with_storage_retry(db: Session, operation: Callable[[], T], *, description: str, retries: int = 1) -> T:
    """
    Run `operation`, retrying at most `retries` times on transient storage errors.

    The session is rolled back before each retry so a failed attempt leaves
    nothing behind. Exhausted retries surface as StorageError.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except TRANSIENT_ERRORS as e:
            db.rollback()
            if attempt >= retries:
                logger.error(
                    f"{description} failed after {attempt + 1} attempt(s): {e}",
                    extra={"extra_fields": {"operation": description, "attempts": attempt + 1}},
                )
                raise StorageError(f"{description} failed: data store unavailable") from e
            attempt += 1
            logger.warning(
                f"{description} hit a transient storage error, retrying once: {e}",
                extra={"extra_fields": {"operation": description, "attempt": attempt}},
            )
            time.sleep(0.05 * attempt)
