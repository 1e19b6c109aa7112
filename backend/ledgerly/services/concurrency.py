# Overview: Transaction, locking and retry helpers shared by every mutating service.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InternalError, LedgerError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    Every write path takes its row locks in one order:
        customer -> invoice / estimate -> payment -> company -> document sequence
        -> products (by id) -> purchase lots

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the whole write transaction is serialized by begin_immediate().
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    Take SQLite's RESERVED lock up front so concurrent writers queue on it
    instead of failing with "database is locked" at their first write.
    No-op on other dialects and when a transaction is already open.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.driver_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_in_transaction(func, *, operation: str):
    """
    Run `func` as one unit of work: commit on success, full rollback on any
    error. Storage failures are translated so callers never see driver text:

    - IntegrityError / lock timeouts / stale versions -> ConflictError
    - any other SQLAlchemyError                     -> InternalError

    No retry: failures surface to the caller.
    """
    try:
        begin_immediate()
        result = func()
        db.session.commit()
        return result
    except LedgerError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("%s hit a uniqueness conflict: %s", operation, exc.orig)
        raise ConflictError(f"{operation} conflicted with a concurrent write") from exc
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        logger.warning("%s could not acquire its locks: %s", operation, exc)
        raise ConflictError(f"{operation} could not acquire a lock, retry later") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("%s failed in storage", operation)
        raise InternalError(f"{operation} failed") from exc
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an idempotent DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks) and StaleDataError (optimistic
    locking conflicts). Only used for maintenance writes such as the lazy
    overdue write-back; lifecycle operations go through run_in_transaction.
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
