# Overview: Transaction helpers for units of work that touch several rows.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite use begin_write() at the start of the unit of work instead.
    """
    return query.with_for_update()


class PendingWorkError(RuntimeError):
    """A unit of work was started on a session that still holds uncommitted writes."""


def _has_pending_work() -> bool:
    session = db.session
    if session.new or session.dirty or session.deleted:
        return True
    dbapi_connection = session.connection().connection.dbapi_connection
    return bool(getattr(dbapi_connection, "in_transaction", False))


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    BEGIN IMMEDIATE makes a second writer wait (or fail with "database is
    locked", which run_with_retry retries) before it reads any stock level,
    so a check-then-decrement cannot interleave with another one.

    Raises PendingWorkError if the session already has writes of its own;
    those belong to the caller and are left in place (not rolled back).
    """
    if db.engine.dialect.name != "sqlite":
        return
    if _has_pending_work():
        raise PendingWorkError(
            "Commit or roll back pending changes before starting a write unit of work"
        )
    db.session.execute(text("BEGIN IMMEDIATE"))


def _default_attempts() -> int:
    try:
        return int(current_app.config.get("TX_RETRY_ATTEMPTS", 3))
    except RuntimeError:
        return 3


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Every other exception rolls the session
    back and propagates, so a failed unit of work leaves nothing behind.
    """
    if attempts is None:
        attempts = _default_attempts()
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except PendingWorkError:
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying unit of work after conflict (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
