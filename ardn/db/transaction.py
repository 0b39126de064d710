"""Atomic unit-of-work helper shared by every ledger-mutating service.

``run_atomic`` runs a callable against the session and commits once. Any
failure rolls the whole unit back. Transient storage conflicts are retried a
bounded number of times; domain errors and integrity violations propagate
on the first attempt.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ardn.core.config import get_settings
from ardn.core.errors import TransactionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_TRANSIENT_PGCODES = {"40001", "40P01"}
_TRANSIENT_MESSAGE_MARKERS = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
)


def is_transient_error(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _TRANSIENT_PGCODES:
        return True
    message = str(orig).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)


def run_atomic(db: Session, work: Callable[[], T], *, label: str, retries: int | None = None) -> T:
    attempts = 1 + (get_settings().transaction_retries if retries is None else retries)
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except IntegrityError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            if attempt < attempts and is_transient_error(exc):
                logger.warning("Transient storage conflict in %s (attempt %d/%d), retrying: %s", label, attempt, attempts, exc)
                continue
            logger.exception("Transaction %s failed", label)
            raise TransactionError("Storage failure, no changes were applied") from exc
        except Exception:
            db.rollback()
            raise
    raise AssertionError("unreachable")
