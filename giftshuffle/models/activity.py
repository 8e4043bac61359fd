from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import ID_TYPE, Base


class ActivityLog(Base):
    """Audit trail of operator actions written by the database audit sink."""

    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    actor_id: Mapped[Optional[int]] = mapped_column(ID_TYPE, nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    extra: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("ix_activity_log_actor_time", "actor_id", "occurred_at"),)
