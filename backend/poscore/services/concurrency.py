# Overview: Service-layer operations for concurrency; locking, retries and the atomic unit of work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import PersistenceUnavailable


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite writers are serialized by begin_serialized() instead.
    """
    return query.with_for_update()


def begin_serialized() -> None:
    """
    Take the database write lock up front on SQLite.

    BEGIN IMMEDIATE makes a second terminal wait (bounded by the busy timeout)
    until the first commits, so its reads see the committed stock.
    """
    if db.engine.dialect.name == "sqlite":
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


def run_in_unit_of_work(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func() and commit it as one transaction.

    - Any exception rolls the whole unit back before propagating.
    - Lock/version conflicts are retried; when retries run out, or the
      connection pool times out, PersistenceUnavailable is raised.
    """
    config = current_app.config
    if attempts is None:
        attempts = int(config.get("POS_RETRY_ATTEMPTS", 3))
    if backoff_base is None:
        backoff_base = float(config.get("POS_RETRY_BACKOFF_SECONDS", 0.1))

    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=max(1, attempts), backoff_base=backoff_base)
    except (OperationalError, StaleDataError, PoolTimeoutError) as exc:
        raise PersistenceUnavailable(
            "Storage is busy or unavailable, retry the operation",
            details={"reason": exc.__class__.__name__},
        ) from exc
