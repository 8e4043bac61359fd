"""Round bookkeeping: which round is current and when a new one is opened."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import BreakdownInactiveError, SessionNotActiveError
from ..models import (
    ROUND_ACTIVE,
    ROUND_COMPLETED,
    BreakdownRound,
    GiftBreakdown,
    GiftWinner,
    ShuffleSession,
)
from .inventory import GiftInventory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundSummary:
    """A round together with how many winners were drawn from it."""

    round: BreakdownRound
    winners: int


class RoundLedger:
    """Creates and looks up the rounds of a shuffle session.

    Writes (:meth:`ensure_current_round`, :meth:`start_new_round`) must run
    under the session's draw lock; see
    :meth:`giftshuffle.shuffle.engine.WinnerSelector.draw`.
    """

    def __init__(self, session: Session, *, inventory: Optional[GiftInventory] = None) -> None:
        self._session = session
        self._inventory = inventory or GiftInventory(session)

    def active_round(self, shuffle: ShuffleSession) -> Optional[BreakdownRound]:
        """Return the latest round still flagged active, exhausted or not."""
        stmt = (
            select(BreakdownRound)
            .where(
                BreakdownRound.session_id == shuffle.id,
                BreakdownRound.status == ROUND_ACTIVE,
            )
            .order_by(BreakdownRound.round_number.desc())
            .limit(1)
        )
        return self._session.scalar(stmt)

    def is_exhausted(self, round_: BreakdownRound, total_number: int) -> bool:
        """A round is exhausted once all its slots are used or no stock is left."""
        totals = self._inventory.totals(round_)
        return totals.used >= total_number or totals.remaining <= 0

    def get_current_round(self, shuffle: ShuffleSession) -> Optional[BreakdownRound]:
        """Return the active round that still has open slots, if any."""
        round_ = self.active_round(shuffle)
        if round_ is None:
            return None
        if self.is_exhausted(round_, shuffle.breakdown.total_number):
            return None
        return round_

    def ensure_current_round(self, shuffle: ShuffleSession) -> tuple[BreakdownRound, bool]:
        """Return a usable round for ``shuffle``, opening a new one if needed.

        Returns
        -------
        tuple[BreakdownRound, bool]
            The usable round and whether it was created by this call.

        Raises
        ------
        SessionNotActiveError
            If the session is completed.
        BreakdownInactiveError
            If a new round is needed but the breakdown cannot seed one.
        """
        if not shuffle.is_active:
            raise SessionNotActiveError(f"Session {shuffle.id} is not active")

        current = self.get_current_round(shuffle)
        if current is not None:
            return current, False
        return self._open_round(shuffle), True

    def get_or_create_next_round(self, shuffle: ShuffleSession) -> BreakdownRound:
        """Idempotent form of :meth:`ensure_current_round` returning only the round."""
        round_, _created = self.ensure_current_round(shuffle)
        return round_

    def start_new_round(self, shuffle: ShuffleSession) -> BreakdownRound:
        """Close the active round even if stock remains and open the next one."""
        if not shuffle.is_active:
            raise SessionNotActiveError(f"Session {shuffle.id} is not active")
        return self._open_round(shuffle)

    def complete_active_rounds(self, shuffle: ShuffleSession) -> int:
        """Mark every active round of ``shuffle`` completed; return how many."""
        now = datetime.now(timezone.utc)
        rounds = self._session.scalars(
            select(BreakdownRound).where(
                BreakdownRound.session_id == shuffle.id,
                BreakdownRound.status == ROUND_ACTIVE,
            )
        ).all()
        for round_ in rounds:
            round_.status = ROUND_COMPLETED
            round_.completed_at = now
        self._session.flush()
        return len(rounds)

    def _open_round(self, shuffle: ShuffleSession) -> BreakdownRound:
        breakdown: GiftBreakdown = shuffle.breakdown
        if not breakdown.is_usable():
            raise BreakdownInactiveError(
                f"Breakdown {breakdown.id} is inactive or has no gift allotments"
            )

        self.complete_active_rounds(shuffle)
        previous_max = self._session.scalar(
            select(func.max(BreakdownRound.round_number)).where(
                BreakdownRound.session_id == shuffle.id
            )
        )
        round_ = BreakdownRound(
            session_id=shuffle.id,
            breakdown_id=breakdown.id,
            round_number=(previous_max or 0) + 1,
            status=ROUND_ACTIVE,
        )
        self._session.add(round_)
        self._session.flush()
        self._inventory.seed(round_, breakdown.allotments())
        logger.info(
            "Opened round %d (id=%s) for session %s", round_.round_number, round_.id, shuffle.id
        )
        return round_

    def list_rounds(self, shuffle: ShuffleSession) -> list[RoundSummary]:
        """Return every round of ``shuffle`` in order with its winner count."""
        counts = dict(
            self._session.execute(
                select(GiftWinner.round_id, func.count(GiftWinner.id))
                .where(GiftWinner.session_id == shuffle.id)
                .group_by(GiftWinner.round_id)
            ).all()
        )
        rounds = self._session.scalars(
            select(BreakdownRound)
            .where(BreakdownRound.session_id == shuffle.id)
            .order_by(BreakdownRound.round_number)
        )
        return [RoundSummary(round=r, winners=int(counts.get(r.id, 0))) for r in rounds]


__all__ = ["RoundLedger", "RoundSummary"]
