"""Transaction helpers: bounded retries for lock and serialization conflicts."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings, get_settings
from ..errors import ConcurrentDrawError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_JITTER_RATIO = 0.2

# SQLSTATEs for serialization failure, deadlock, and lock timeout.
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

# MySQL/MariaDB error codes for lock wait timeout and deadlock.
RETRYABLE_MYSQL_CODES = frozenset({1205, 1213})

# SQLite reports lock contention only through the message text.
SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked", "database is busy")


def retry_backoff_seconds(
    attempt: int,
    *,
    base_seconds: float,
    max_seconds: float,
    rng: Optional[random.Random] = None,
) -> float:
    """Return the delay before retry number ``attempt`` (1-based).

    The delay doubles with each attempt, is capped at ``max_seconds``, and
    gets up to ``RETRY_JITTER_RATIO`` extra jitter so that competing callers
    do not retry in lockstep.
    """
    safe_attempt = max(1, int(attempt))
    base_delay = min(max_seconds, base_seconds * 2 ** (safe_attempt - 1))
    if base_delay <= 0:
        return 0.0
    jitter = (rng or random).uniform(0, base_delay * RETRY_JITTER_RATIO)
    return min(max_seconds, base_delay + jitter)


def is_retryable_db_error(exc: BaseException) -> bool:
    """Return ``True`` for lock-timeout, deadlock, and serialization failures.

    Other operational errors (missing tables, refused connections) are
    configuration faults and are not retried.
    """
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in RETRYABLE_SQLSTATES:
        return True
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in RETRYABLE_MYSQL_CODES:
        return True
    message = str(orig).lower()
    return any(fragment in message for fragment in SQLITE_LOCK_MESSAGES)


def apply_lock_timeout(session: Session, seconds: float) -> None:
    """Bound how long the current transaction waits for row locks.

    Only PostgreSQL has a transaction-scoped setting (``SET LOCAL``). SQLite
    (busy timeout) and MySQL (``innodb_lock_wait_timeout``) are bounded per
    connection when :func:`giftshuffle.db.engine.make_engine` opens it, so
    nothing here outlives the transaction on a pooled connection.
    """
    dialect = session.get_bind().dialect.name
    millis = max(1, int(seconds * 1000))
    if dialect == "postgresql":
        session.execute(text(f"SET LOCAL lock_timeout = {millis}"))


def run_in_transaction(
    session_factory: sessionmaker,
    work: Callable[[Session], T],
    *,
    settings: Optional[Settings] = None,
    description: str = "transaction",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``work`` inside a fresh transaction, retrying on lock conflicts.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory producing sessions bound to the store.
    work : Callable[[Session], T]
        Unit of work. It is re-run from scratch on every attempt, so it must
        not keep state between calls.
    settings : Optional[Settings], default: None
        Retry budget and lock timeout. Defaults to :func:`get_settings`.
    description : str, default: "transaction"
        Label used in log messages and in the final error.
    sleep : Callable[[float], None], default: time.sleep
        Injected for tests.

    Returns
    -------
    T
        Whatever ``work`` returned on the successful attempt.

    Raises
    ------
    ConcurrentDrawError
        If every attempt failed with a retryable database error.
    """
    cfg = settings or get_settings()
    attempts = cfg.draw_max_attempts
    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            with session_factory.begin() as session:
                apply_lock_timeout(session, cfg.lock_timeout_seconds)
                return work(session)
        except DBAPIError as exc:
            if not is_retryable_db_error(exc):
                raise
            last_error = exc
            logger.warning(
                "%s attempt %d/%d hit a lock conflict: %s",
                description,
                attempt,
                attempts,
                exc.orig,
            )
            if attempt < attempts:
                sleep(
                    retry_backoff_seconds(
                        attempt,
                        base_seconds=cfg.draw_backoff_seconds,
                        max_seconds=cfg.draw_backoff_max_seconds,
                    )
                )

    raise ConcurrentDrawError(
        f"{description} failed after {attempts} attempt(s) due to concurrent access",
        attempts=attempts,
    ) from last_error


__all__ = [
    "retry_backoff_seconds",
    "is_retryable_db_error",
    "apply_lock_timeout",
    "run_in_transaction",
]
