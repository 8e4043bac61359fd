"""Per-round gift stock and the conditional commit that consumes it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from ..errors import InsufficientInventoryError, ValidationError
from ..models import BreakdownRound, RoundGift

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryTotals:
    """Aggregated stock of one round.

    Attributes
    ----------
    total : int
        Sum of ``quantity_available`` across the round's gifts.
    used : int
        Sum of ``quantity_used``.
    remaining : int
        Sum of the per-gift remaining stock (each clamped at zero).
    """

    total: int
    used: int
    remaining: int


class GiftInventory:
    """Reads and mutates :class:`RoundGift` stock within a single round.

    Stock never moves between rounds. The only write path is :meth:`commit`,
    which increments ``quantity_used`` with a conditional ``UPDATE`` so the
    store itself rejects an over-consumption even if a caller skipped locking.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def seed(self, round_: BreakdownRound, allotments: Mapping[int, int]) -> list[RoundGift]:
        """Create fresh stock rows for ``round_`` from ``{gift_id: quantity}``."""
        rows = [
            RoundGift(
                round_id=round_.id,
                gift_id=gift_id,
                quantity_available=quantity,
                quantity_used=0,
            )
            for gift_id, quantity in sorted(allotments.items())
        ]
        self._session.add_all(rows)
        self._session.flush()
        return rows

    def lock_round(self, round_: BreakdownRound) -> list[RoundGift]:
        """Lock every stock row of ``round_`` and return them, fresh from the store.

        Rows are locked in gift order so concurrent lockers never deadlock on
        each other.
        """
        stmt = (
            select(RoundGift)
            .where(RoundGift.round_id == round_.id)
            .order_by(RoundGift.gift_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(self._session.scalars(stmt))

    def _row(self, round_id: int, gift_id: int) -> RoundGift | None:
        return self._session.scalar(
            select(RoundGift).where(
                RoundGift.round_id == round_id, RoundGift.gift_id == gift_id
            )
        )

    def remaining(self, round_: BreakdownRound, gift_id: int) -> int:
        """Units of ``gift_id`` still drawable in ``round_`` (zero if not stocked)."""
        row = self._row(round_.id, gift_id)
        if row is None:
            return 0
        return row.remaining

    def candidates(self, round_: BreakdownRound) -> list[RoundGift]:
        """Stock rows with at least one unit left, ordered by gift id."""
        stmt = (
            select(RoundGift)
            .where(
                RoundGift.round_id == round_.id,
                RoundGift.quantity_used < RoundGift.quantity_available,
            )
            .order_by(RoundGift.gift_id)
        )
        return list(self._session.scalars(stmt))

    def totals(self, round_: BreakdownRound) -> InventoryTotals:
        """Aggregate stock for ``round_``."""
        remaining_expr = func.sum(
            case(
                (
                    RoundGift.quantity_used < RoundGift.quantity_available,
                    RoundGift.quantity_available - RoundGift.quantity_used,
                ),
                else_=0,
            )
        )
        total, used, remaining = self._session.execute(
            select(
                func.coalesce(func.sum(RoundGift.quantity_available), 0),
                func.coalesce(func.sum(RoundGift.quantity_used), 0),
                func.coalesce(remaining_expr, 0),
            ).where(RoundGift.round_id == round_.id)
        ).one()
        return InventoryTotals(total=int(total), used=int(used), remaining=int(remaining))

    def commit(self, round_: BreakdownRound, gift_id: int, count: int = 1) -> RoundGift:
        """Consume ``count`` units of ``gift_id`` from ``round_``.

        Parameters
        ----------
        round_ : BreakdownRound
            Round whose stock is consumed.
        gift_id : int
            Gift to consume.
        count : int, default: 1
            Units to consume; must be a positive integer.

        Returns
        -------
        RoundGift
            The stock row, refreshed after the increment.

        Raises
        ------
        ValidationError
            If ``count`` is not a positive integer.
        InsufficientInventoryError
            If fewer than ``count`` units remain. Nothing is written.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValidationError("count must be a positive integer")

        result = self._session.execute(
            update(RoundGift)
            .where(
                RoundGift.round_id == round_.id,
                RoundGift.gift_id == gift_id,
                RoundGift.quantity_used + count <= RoundGift.quantity_available,
            )
            .values(quantity_used=RoundGift.quantity_used + count)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InsufficientInventoryError(round_.id, gift_id, count)

        row = self._session.scalar(
            select(RoundGift)
            .where(RoundGift.round_id == round_.id, RoundGift.gift_id == gift_id)
            .execution_options(populate_existing=True)
        )
        logger.debug(
            "Committed %d unit(s) of gift %s in round %s (%s/%s used)",
            count,
            gift_id,
            round_.id,
            row.quantity_used,
            row.quantity_available,
        )
        return row


__all__ = ["GiftInventory", "InventoryTotals"]
