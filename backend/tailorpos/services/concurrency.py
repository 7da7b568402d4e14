# Overview: Retry and locking helpers shared by every multi-record write.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError, TransientIOError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Correctness never depends on it: stock and counters are changed with
    guarded/atomic UPDATE statements.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run one unit of work (read + validate + write + commit) with bounded retry.

    - ConflictError / StaleDataError: a concurrent writer won; the session is
      rolled back and func re-runs from scratch, re-reading and re-validating.
    - OperationalError (locked database, dropped connection): retried with
      exponential backoff; surfaces as TransientIOError once attempts run out.
    - Anything else (ValidationError, NotFoundError, ...): rolled back and
      raised immediately. Nothing from a failed attempt is ever committed.
    """
    if attempts is None:
        attempts = current_app.config.get("CHECKOUT_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("RETRY_BACKOFF_BASE", 0.1)
    attempts = max(int(attempts), 1)

    for attempt in range(attempts):
        try:
            return func()
        except (ConflictError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, ConflictError):
                    raise
                raise ConflictError("Record was modified by another operator") from exc
            current_app.logger.warning(
                "Concurrent modification, retrying (attempt %s/%s): %s",
                attempt + 1, attempts, exc,
            )
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise TransientIOError("Database is unavailable, please try again") from exc
            current_app.logger.warning(
                "Database operational error, retrying (attempt %s/%s): %s",
                attempt + 1, attempts, exc,
            )
        except Exception:
            db.session.rollback()
            raise
        time.sleep(backoff_base * (2 ** attempt))
