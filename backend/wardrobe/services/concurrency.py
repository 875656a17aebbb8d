# Overview: Transaction scope helpers; row locks, SQLite write serialization and bounded retry.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, LedgerError, StorageUnavailableError


logger = logging.getLogger("wardrobe.ledger")

# OperationalError messages that mean "someone else holds the lock"
_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "lock wait timeout",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes a re-locked row overwrite any stale copy already
    sitting in the identity map.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() serializes
    writers there instead.
    """
    return query.with_for_update().populate_existing()


def begin_write(session) -> None:
    """
    Open the write transaction.

    On SQLite this issues BEGIN IMMEDIATE so the database write lock is taken
    before any stock is read; concurrent writers then queue on the lock
    instead of failing at commit time. Other dialects rely on FOR UPDATE.
    """
    if session.get_bind().dialect.name != "sqlite":
        return
    connection = session.connection()
    if not connection.connection.dbapi_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def is_lock_contention(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


def run_with_retry(session, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute one transactional unit with retry on concurrency failures.

    - StaleDataError (optimistic version check) and lock-contention
      OperationalErrors roll back and retry with exponential backoff; once
      the budget is spent they surface as ConflictError.
    - Any other database failure rolls back and surfaces as
      StorageUnavailableError without retry.
    - LedgerErrors (validation, stock, transitions) roll back and propagate
      unchanged.
    """
    attempts = max(1, int(attempts))
    last_exc = None

    for attempt in range(attempts):
        try:
            return func()
        except LedgerError:
            session.rollback()
            raise
        except StaleDataError as exc:
            session.rollback()
            last_exc = exc
        except OperationalError as exc:
            session.rollback()
            if not is_lock_contention(exc):
                raise StorageUnavailableError(
                    "Storage unavailable",
                    details={"reason": str(getattr(exc, "orig", exc))},
                ) from exc
            last_exc = exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageUnavailableError(
                "Storage unavailable",
                details={"reason": str(getattr(exc, "orig", exc))},
            ) from exc
        except Exception:
            session.rollback()
            raise

        if attempt < attempts - 1:
            delay = backoff_base * (2 ** attempt)
            logger.warning(
                "Concurrent update detected (attempt %s/%s), retrying in %.3fs: %s",
                attempt + 1, attempts, delay, last_exc,
            )
            time.sleep(delay)

    raise ConflictError(
        "Concurrent update conflict; retry the transaction",
        details={"attempts": attempts},
    ) from last_exc
