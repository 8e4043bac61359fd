"""Fire-and-forget audit sinks.

Sinks are invoked after the primary transaction has committed. A failing
sink is logged and otherwise ignored; it can never undo the state change it
was reporting.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from .models import ActivityLog

logger = logging.getLogger(__name__)


class AuditSink:
    """Interface for audit sinks."""

    def record(
        self,
        actor_id: Optional[int],
        action: str,
        detail: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        raise NotImplementedError


class LoggingAuditSink(AuditSink):
    """Writes audit entries to the ``giftshuffle.audit`` logger."""

    def record(self, actor_id, action, detail, extra=None) -> None:
        logger.info("actor=%s action=%s %s", actor_id, action, detail)


class DatabaseAuditSink(AuditSink):
    """Stores audit entries as :class:`ActivityLog` rows in their own transaction."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def record(self, actor_id, action, detail, extra=None) -> None:
        with self._session_factory.begin() as session:
            session.add(
                ActivityLog(actor_id=actor_id, action=action, detail=detail, extra=extra)
            )


def safe_record(
    sink: Optional[AuditSink],
    actor_id: Optional[int],
    action: str,
    detail: str,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Deliver an entry to ``sink`` without ever raising."""
    if sink is None:
        return
    try:
        sink.record(actor_id, action, detail, extra)
    except Exception:
        logger.exception("Audit sink %r failed to record %s", sink, action)


DEFAULT_AUDIT_SINK: AuditSink = LoggingAuditSink()

__all__ = [
    "AuditSink",
    "LoggingAuditSink",
    "DatabaseAuditSink",
    "safe_record",
    "DEFAULT_AUDIT_SINK",
]
