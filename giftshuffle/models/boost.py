from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .gift import Gift


class GiftBoost(Base):
    """Operator override forcing a gift to win at a future global slot.

    Boosts are deleted once consumed by a draw or removed by their owner;
    they are never edited in place.
    """

    __tablename__ = "gift_boosts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("shuffle_sessions.id", ondelete="CASCADE"), nullable=False
    )
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("breakdown_rounds.id", ondelete="CASCADE"), nullable=False
    )
    gift_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("gifts.id", ondelete="RESTRICT"), nullable=False
    )
    target_round: Mapped[int] = mapped_column(Integer, nullable=False)
    """Global slot number the gift is forced onto."""

    created_by: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("operators.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    gift: Mapped["Gift"] = relationship()

    __table_args__ = (
        UniqueConstraint("session_id", "target_round", name="uq_gift_boosts_session_target"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiftBoost(id={id}, session_id={sid}, gift_id={gid}, target_round={target})>".format(
            id=self.id, sid=self.session_id, gid=self.gift_id, target=self.target_round
        )
