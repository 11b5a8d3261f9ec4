# Overview: Retry helper for the route layer; the services themselves never retry.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func(), retrying on transient storage failures with exponential backoff.

    OperationalError covers a locked or unreachable database; StaleDataError
    covers an optimistic version conflict. The session is rolled back before
    each retry. The last failure propagates once attempts are exhausted.

    Only wrap operations that are idempotent: a retried call must not apply
    twice. Status moves, warehouse use and change polling qualify; debt
    payments and order creation do not.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "Transient storage error (attempt %d/%d), retrying in %.2fs: %s",
                attempt, attempts, delay, exc,
            )
            time.sleep(delay)
