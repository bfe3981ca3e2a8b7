from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from firesale.db import session as db_session
from firesale.db.config import (
    get_transaction_max_attempts,
    get_transaction_retry_delay_seconds,
)
from firesale.db.errors import (
    StoreError,
    StoreUnavailableError,
    TransactionConflictError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "serialization failure",
    "lock wait timeout",
    "lock timeout",
    "could not obtain lock",
)


def classify_store_error(exc: Exception) -> StoreError:
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return TransactionConflictError("database connection was invalidated")
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        if any(marker in message for marker in RETRYABLE_MARKERS):
            return TransactionConflictError("transaction conflict")
    return StoreUnavailableError("database error")


def run_in_transaction(
    operation: Callable[[Session], T],
    *,
    session_factory: sessionmaker | None = None,
    max_attempts: int | None = None,
    retry_delay_seconds: float | None = None,
) -> T:
    """Run ``operation`` in its own session and commit what it returns.

    Operations undo their own partial writes before returning a failed
    ``ServiceResult``, so the commit here never publishes half of an
    operation. Transaction conflicts are retried with linear backoff; any
    other store failure, or a conflict on the last attempt, is raised as
    ``StoreUnavailableError``.
    """
    factory = session_factory or db_session.SessionLocal
    attempts = max_attempts or get_transaction_max_attempts()
    delay = (
        get_transaction_retry_delay_seconds()
        if retry_delay_seconds is None
        else retry_delay_seconds
    )

    for attempt in range(1, attempts + 1):
        db = factory()
        try:
            result = operation(db)
            db.commit()
            return result
        except (SQLAlchemyError, TransactionConflictError) as exc:
            db.rollback()
            error = classify_store_error(exc)
            if not isinstance(error, TransactionConflictError):
                logger.error("store operation failed: %s", exc)
                raise error from exc
            if attempt == attempts:
                logger.error(
                    "transaction conflict persisted after %s attempts",
                    attempts,
                )
                raise StoreUnavailableError(
                    "store unavailable after retries"
                ) from exc
            logger.warning(
                "transaction conflict on attempt %s/%s, retrying",
                attempt,
                attempts,
            )
            time.sleep(delay * attempt)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    raise StoreUnavailableError("store unavailable after retries")
