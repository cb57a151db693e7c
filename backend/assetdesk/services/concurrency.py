# Overview: Retry helpers for storage-level contention around guarded updates.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageUnavailable
from ..extensions import db


logger = logging.getLogger(__name__)


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if has_app_context():
        if attempts is None:
            attempts = current_app.config.get("STORAGE_RETRY_ATTEMPTS", 3)
        if backoff_base is None:
            backoff_base = current_app.config.get("STORAGE_RETRY_BACKOFF", 0.1)
    return max(1, attempts or 3), (0.1 if backoff_base is None else backoff_base)


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    retry_on: tuple[type[Exception], ...] = (),
):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locked database, deadlocks), StaleDataError
    and any extra exception types in retry_on (e.g. IntegrityError when a
    racing writer inserted the same unique row first).
    The session is rolled back before every retry, so func must start from a
    fresh read each time. Business errors raised by func are never retried.

    Raises StorageUnavailable once the attempts are exhausted.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, *retry_on) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Storage still failing after %d attempts: %s", attempts, exc)
                raise StorageUnavailable(str(exc)) from exc
            logger.warning("Transient storage failure (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))


def guarded_update(statement) -> bool:
    """
    Execute a single conditional UPDATE or DELETE and report whether its guard held.

    The statement's WHERE clause carries the guard (e.g. available_quantity > 0,
    status = 'pending'); the database evaluates guard and write atomically, so
    of two racing callers at most one observes True. Identity-map objects are
    not synchronized; callers reload what they need.
    """
    result = db.session.execute(
        statement.execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def lock_for_update(query):
    """
    Take row locks on the rows query selects, held until commit or rollback.

    SQLite ignores SELECT ... FOR UPDATE; its writers are serialized anyway.
    """
    return query.with_for_update()
