"""The draw: resolve the next slot of a session to a gift."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..errors import InsufficientInventoryError, RoundExhaustedError, ValidationError
from ..models import BreakdownRound, GiftWinner, ShuffleSession
from .boosts import BoostRegistry
from .cycles import breakdown_cycle, next_slot
from .inventory import GiftInventory
from .ledger import RoundLedger
from .locking import lock_shuffle_session
from .selection import pick_weighted

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WinnerDetails:
    """Optional identity of the person receiving the gift.

    Attributes
    ----------
    name : Optional[str]
        Winner's name; required when the session collects customer info.
    nic : Optional[str]
        National identity card number.
    phone : Optional[str]
        Contact phone number.
    """

    name: Optional[str] = None
    nic: Optional[str] = None
    phone: Optional[str] = None

    def cleaned(self) -> "WinnerDetails":
        def _clean(value: Optional[str]) -> Optional[str]:
            if value is None:
                return None
            value = value.strip()
            return value or None

        return WinnerDetails(
            name=_clean(self.name), nic=_clean(self.nic), phone=_clean(self.phone)
        )


@dataclass
class DrawResult:
    """Value object describing a completed draw.

    Attributes
    ----------
    winner : GiftWinner
        The persisted winner row.
    round : BreakdownRound
        Round the gift was taken from.
    round_created : bool
        Whether this draw opened ``round``.
    boost_id : Optional[int]
        Boost consumed by this draw, whether it was honoured or fell through.
    boost_fell_through : bool
        ``True`` when a boost existed for the slot but its gift was out of
        stock, so the gift was picked at random instead.
    breakdown_round : int
        Breakdown cycle of the drawn slot.
    """

    winner: GiftWinner
    round: BreakdownRound
    round_created: bool
    boost_id: Optional[int]
    boost_fell_through: bool
    breakdown_round: int

    @property
    def slot(self) -> int:
        return self.winner.round_number


class WinnerSelector:
    """Runs draws for shuffle sessions."""

    def __init__(
        self,
        session: Session,
        *,
        rng: Optional[random.Random] = None,
        ledger: Optional[RoundLedger] = None,
        boosts: Optional[BoostRegistry] = None,
        inventory: Optional[GiftInventory] = None,
    ) -> None:
        """Create a selector bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Session whose transaction the draw runs in. The caller commits.
        rng : Optional[random.Random], default: None
            Source of randomness for weighted picks. Defaults to the module
            level ``random`` functions; pass a seeded instance for
            reproducible draws.
        ledger, boosts, inventory : optional
            Collaborators; built from ``session`` when omitted.
        """
        self._session = session
        self._rng = rng
        self._inventory = inventory or GiftInventory(session)
        self._ledger = ledger or RoundLedger(session, inventory=self._inventory)
        self._boosts = boosts or BoostRegistry(session, inventory=self._inventory)

    def draw(
        self,
        session_id: int,
        details: Optional[WinnerDetails] = None,
    ) -> DrawResult:
        """Draw the next winner of session ``session_id``.

        Parameters
        ----------
        session_id : int
            Shuffle session to draw for.
        details : Optional[WinnerDetails], default: None
            Winner identity. Required (with a name) when the session collects
            customer info; ignored otherwise.

        Returns
        -------
        DrawResult
            The new winner and how it was resolved.

        Notes
        -----
        The draw proceeds as follows, all within the caller's transaction:

        1. Take the session's draw lock, make sure a round with open slots
           exists, and lock that round's stock rows.
        2. The slot being filled is ``winners_count + 1``, read under the lock.
        3. If a boost targets the slot, try to commit one unit of its gift.
           The boost is consumed either way; when the gift is out of stock the
           draw falls back to step 4 instead of failing.
        4. Otherwise pick a gift with probability proportional to its
           remaining stock and commit one unit of it.
        5. Insert the :class:`GiftWinner` row and refresh the session's cached
           breakdown cycle.

        Raises
        ------
        SessionNotFoundError
            If the session does not exist.
        SessionNotActiveError
            If the session is completed.
        BreakdownInactiveError
            If a new round is needed but the breakdown cannot seed one.
        ValidationError
            If the session collects customer info and no winner name was given.
        RoundExhaustedError
            If the round unexpectedly has no stock left.
        """
        shuffle = lock_shuffle_session(self._session, session_id)
        clean_details = self._winner_details(shuffle, details)

        round_, round_created = self._ledger.ensure_current_round(shuffle)
        self._inventory.lock_round(round_)

        slot = next_slot(shuffle.winners_count(self._session))
        boosted = False
        fell_through = False
        gift_id: Optional[int] = None

        boost = self._boosts.resolve(shuffle, slot)
        boost_id = boost.id if boost is not None else None
        if boost is not None:
            try:
                self._inventory.commit(round_, boost.gift_id)
            except InsufficientInventoryError:
                fell_through = True
                logger.info(
                    "Boost %s for slot %d in session %s fell through: gift %s is out of stock",
                    boost.id,
                    slot,
                    shuffle.id,
                    boost.gift_id,
                )
            else:
                gift_id = boost.gift_id
                boosted = True
            self._boosts.consume(boost)

        if gift_id is None:
            gift_id = self._pick_and_commit(round_)

        winner = GiftWinner(
            session_id=shuffle.id,
            round_id=round_.id,
            round_number=slot,
            gift_id=gift_id,
            boosted=boosted,
            winner_name=clean_details.name,
            winner_nic=clean_details.nic,
            winner_phone=clean_details.phone,
            win_time=datetime.now(timezone.utc),
        )
        self._session.add(winner)

        cycle = breakdown_cycle(slot, shuffle.breakdown.total_number)
        if shuffle.breakdown_round != cycle:
            shuffle.breakdown_round = cycle
        self._session.flush()

        logger.info(
            "Session %s slot %d -> gift %s (round %d, boosted=%s)",
            shuffle.id,
            slot,
            gift_id,
            round_.round_number,
            boosted,
        )
        return DrawResult(
            winner=winner,
            round=round_,
            round_created=round_created,
            boost_id=boost_id,
            boost_fell_through=fell_through,
            breakdown_round=cycle,
        )

    def _winner_details(
        self, shuffle: ShuffleSession, details: Optional[WinnerDetails]
    ) -> WinnerDetails:
        if not shuffle.collect_customer_info:
            return WinnerDetails()
        clean = (details or WinnerDetails()).cleaned()
        if clean.name is None:
            raise ValidationError(
                f"Session {shuffle.id} collects customer info; a winner name is required"
            )
        return clean

    def _pick_and_commit(self, round_: BreakdownRound) -> int:
        candidates = self._inventory.candidates(round_)
        if not candidates:
            raise RoundExhaustedError(f"Round {round_.id} has no stock left")
        chosen = pick_weighted(
            candidates, [row.remaining for row in candidates], rng=self._rng
        )
        self._inventory.commit(round_, chosen.gift_id)
        return chosen.gift_id


__all__ = ["WinnerSelector", "WinnerDetails", "DrawResult"]
