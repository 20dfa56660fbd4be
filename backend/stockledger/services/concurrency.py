# Overview: Transaction boundary for every stock mutation; row locking and whole-transaction retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (it serializes writers at the
    database level instead), but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute one unit of work as a single transaction.

    The callable must do all of its writes and then commit. Any failure rolls
    the whole unit back, so callers never observe a partially applied
    operation:

    - OperationalError (deadlocks, locks) and StaleDataError (optimistic
      locking conflicts) are retried from scratch with exponential backoff,
      and surface as StorageError once attempts are exhausted.
    - Any other SQLAlchemyError surfaces as StorageError.
    - Domain errors propagate unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError("Storage is busy; operation rolled back", {"cause": str(exc)}) from exc
            logger.warning(
                "Concurrency failure, retrying transaction (attempt %d/%d): %s",
                attempt + 1,
                attempts,
                exc,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Storage failure, transaction rolled back: %s", exc)
            raise StorageError("Storage failure; operation rolled back", {"cause": str(exc)}) from exc
        except Exception:
            db.session.rollback()
            raise

