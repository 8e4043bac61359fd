"""Shuffle sessions: one live giveaway run against a breakdown."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    func,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .breakdown import GiftBreakdown

SESSION_ACTIVE = "active"
SESSION_COMPLETED = "completed"


class ShuffleSession(Base):
    """One running giveaway instance."""

    __tablename__ = "shuffle_sessions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Name of the event the giveaway runs at."""

    vehicle_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    """Optional identifier of the vehicle or stand hosting the draw."""

    breakdown_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("gift_breakdowns.id", ondelete="RESTRICT"), nullable=False
    )
    """Prize-pool template every round of this session is seeded from."""

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SESSION_ACTIVE, index=True
    )
    """Either ``"active"`` or ``"completed"``; only moves forward."""

    access_code: Mapped[str] = mapped_column(String(12), nullable=False, unique=True)
    """Short code the audience display uses to follow the session."""

    collect_customer_info: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """When set, every draw must name the winner."""

    breakdown_round: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    """Cached breakdown cycle of the latest slot. Always recomputable."""

    created_by: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    """Operator who owns the session."""

    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    """Bumped by every draw; the write doubles as the per-session draw lock."""

    breakdown: Mapped["GiftBreakdown"] = relationship()

    @property
    def is_active(self) -> bool:
        return self.status == SESSION_ACTIVE

    def winners_count(self, session: Session) -> int:
        """Return how many winners have been drawn in this session."""
        from .winner import GiftWinner

        return session.scalar(
            select(func.count(GiftWinner.id)).where(GiftWinner.session_id == self.id)
        ) or 0

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<ShuffleSession(id={id}, event_name={name}, status={status})>".format(
            id=self.id, name=self.event_name, status=self.status
        )

    @classmethod
    def get_by_access_code(
        cls, session: Session, access_code: str
    ) -> Optional["ShuffleSession"]:
        """Return the session identified by ``access_code`` if it exists."""
        return session.scalar(
            select(cls).where(cls.access_code == access_code.strip().upper())
        )
