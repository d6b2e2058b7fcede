# Overview: Row locking and optimistic-lock retry for checkout mutations.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking to a mutation's aggregate read.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id column
    on Checkout (StaleDataError on a lost race) does the serializing.
    """
    return query.with_for_update()


def _configured_attempts(default: int) -> int:
    try:
        return int(current_app.config.get("DB_RETRY_ATTEMPTS", default))
    except RuntimeError:
        # No app context (plain scripts); keep the caller's default
        return default


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a unit of work, retrying on concurrency-related failures.

    func must be re-runnable from scratch: it re-reads state under lock and
    commits its own transaction. OperationalError (locks, deadlocks) and
    StaleDataError (lost optimistic-lock race) roll back and retry; every
    other exception rolls back and propagates.
    """
    if attempts is None:
        attempts = _configured_attempts(3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Concurrent update detected (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
