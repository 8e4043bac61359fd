from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .gift import Gift


class GiftWinner(Base):
    """One resolved draw. Rows are never updated after insert."""

    __tablename__ = "gift_winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("shuffle_sessions.id", ondelete="CASCADE"), nullable=False
    )
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("breakdown_rounds.id", ondelete="CASCADE"), nullable=False
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Global slot: 1-based, session-scoped, never resets across rounds."""

    gift_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("gifts.id", ondelete="RESTRICT"), nullable=False
    )
    boosted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    winner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    winner_nic: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    winner_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    win_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    gift: Mapped["Gift"] = relationship()

    __table_args__ = (
        UniqueConstraint("session_id", "round_number", name="uq_gift_winners_session_slot"),
        Index("ix_gift_winners_round", "round_id"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiftWinner(id={id}, session_id={sid}, slot={slot}, gift_id={gid}, boosted={boosted})>".format(
            id=self.id,
            sid=self.session_id,
            slot=self.round_number,
            gid=self.gift_id,
            boosted=self.boosted,
        )
