"""Per-session draw lock.

Every write that reads slot or stock counters first bumps the session row's
``updated_at``. On PostgreSQL and MySQL that takes the row lock; on SQLite
the first write of a transaction takes the database write lock. Either way a
second writer for the same session waits (bounded by the lock timeout) until
the first commits, so slot assignment is linearized per session.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..errors import SessionNotFoundError
from ..models import ShuffleSession


def lock_shuffle_session(session: Session, session_id: int) -> ShuffleSession:
    """Take the draw lock for ``session_id`` and return the fresh session row.

    Raises
    ------
    SessionNotFoundError
        If no such session exists.
    """
    result = session.execute(
        update(ShuffleSession)
        .where(ShuffleSession.id == session_id)
        .values(updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise SessionNotFoundError(f"Session {session_id} not found")

    return session.scalars(
        select(ShuffleSession)
        .where(ShuffleSession.id == session_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).one()


__all__ = ["lock_shuffle_session"]
