"""Prize-pool templates: how many slots a round has and which gifts fill them."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .gift import Gift


class GiftBreakdown(Base):
    """Reusable prize-pool template.

    A breakdown fixes ``total_number`` winner slots per round and how many
    units of each gift those slots hold. Every new round of a session copies
    these allotments into its own inventory.
    """

    __tablename__ = "gift_breakdowns"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    """Label shown to operators when starting a session."""

    total_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Winner slots per round; equals the sum of the gift allotments."""

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    """Inactive breakdowns cannot start sessions or seed new rounds."""

    created_by: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("operators.id", ondelete="SET NULL"), nullable=True
    )
    """Operator who defined the breakdown."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    items: Mapped[list["BreakdownGift"]] = relationship(
        back_populates="breakdown",
        cascade="all, delete-orphan",
        order_by="BreakdownGift.gift_id",
    )
    """Per-gift allotments, ordered by gift id."""

    __table_args__ = (
        UniqueConstraint("name", name="uq_gift_breakdowns_name"),
        CheckConstraint("total_number > 0", name="total_number_positive"),
    )

    def allotments(self) -> dict[int, int]:
        """Return ``{gift_id: quantity}`` for every allotment with stock."""
        return {item.gift_id: item.quantity for item in self.items if item.quantity > 0}

    def is_usable(self) -> bool:
        """Whether the breakdown can seed a new round."""
        return bool(self.is_active and self.allotments())

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiftBreakdown(id={id}, name={name}, total_number={total})>".format(
            id=self.id, name=self.name, total=self.total_number
        )

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["GiftBreakdown"]:
        """Return the breakdown called ``name`` if it exists."""
        return session.scalar(select(cls).where(cls.name == name))


class BreakdownGift(Base):
    """Quantity of one gift allotted to every round of a breakdown."""

    __tablename__ = "breakdown_gifts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    breakdown_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("gift_breakdowns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    gift_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("gifts.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    breakdown: Mapped["GiftBreakdown"] = relationship(back_populates="items")
    gift: Mapped["Gift"] = relationship()

    __table_args__ = (
        UniqueConstraint("breakdown_id", "gift_id", name="uq_breakdown_gifts_breakdown_gift"),
        CheckConstraint("quantity > 0", name="quantity_positive"),
    )
