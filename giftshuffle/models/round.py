"""Rounds and their per-gift inventory."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .gift import Gift

ROUND_ACTIVE = "active"
ROUND_COMPLETED = "completed"


class BreakdownRound(Base):
    """One cycle of ``total_number`` winner slots with its own inventory."""

    __tablename__ = "breakdown_rounds"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("shuffle_sessions.id", ondelete="CASCADE"), nullable=False
    )
    breakdown_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("gift_breakdowns.id", ondelete="RESTRICT"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """1-based cycle index within the session."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ROUND_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    gifts: Mapped[list["RoundGift"]] = relationship(
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="RoundGift.gift_id",
    )

    __table_args__ = (
        UniqueConstraint("session_id", "round_number", name="uq_breakdown_rounds_session_round"),
        Index("ix_breakdown_rounds_session_status", "session_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ROUND_ACTIVE

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<BreakdownRound(id={id}, session_id={sid}, round_number={num}, status={status})>".format(
            id=self.id, sid=self.session_id, num=self.round_number, status=self.status
        )


class RoundGift(Base):
    """Stock of one gift within one round."""

    __tablename__ = "round_gifts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("breakdown_rounds.id", ondelete="CASCADE"), nullable=False
    )
    gift_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("gifts.id", ondelete="RESTRICT"), nullable=False
    )
    quantity_available: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    round: Mapped["BreakdownRound"] = relationship(back_populates="gifts")
    gift: Mapped["Gift"] = relationship()

    __table_args__ = (
        UniqueConstraint("round_id", "gift_id", name="uq_round_gifts_round_gift"),
        CheckConstraint("quantity_used >= 0", name="quantity_used_non_negative"),
        CheckConstraint(
            "quantity_used <= quantity_available", name="quantity_used_within_available"
        ),
    )

    @property
    def remaining(self) -> int:
        return max(0, self.quantity_available - self.quantity_used)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<RoundGift(round_id={rid}, gift_id={gid}, used={used}/{avail})>".format(
            rid=self.round_id,
            gid=self.gift_id,
            used=self.quantity_used,
            avail=self.quantity_available,
        )
