# Overview: Transaction, locking and retry helpers shared by the write-side services.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    acquire_write_lock() covers SQLite.
    """
    return query.with_for_update()


def acquire_write_lock() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so BEGIN IMMEDIATE serializes writers for the
    whole unit of work. Other engines rely on lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.driver_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func as one unit of work: write lock, body, commit.

    Any exception rolls back every write made by func before it propagates,
    so callers never observe a half-applied operation.
    """
    def _op():
        try:
            acquire_write_lock()
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
