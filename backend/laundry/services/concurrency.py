# Overview: Service-layer operations for concurrency; transaction, locking and retry helpers.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LaundryError
from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks; BEGIN IMMEDIATE serializes writers for the
    whole transaction so read-then-write sequences cannot interleave.
    Must run before the first statement of the transaction.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None, retry_on_integrity: bool = False):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). IntegrityError is retried only when
    the caller opts in (e.g. order-number unique constraint collisions).

    Domain errors roll the session back and propagate unchanged.
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("RETRY_BACKOFF_SECONDS", 0.1)

    retryable = RETRYABLE_ERRORS + ((IntegrityError,) if retry_on_integrity else ())

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except LaundryError:
            db.session.rollback()
            raise
        except retryable as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.info("Retrying after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
