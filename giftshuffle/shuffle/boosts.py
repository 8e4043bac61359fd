"""Operator boosts: a gift forced onto a specific future slot."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import (
    BoostNotFoundError,
    DuplicateTargetError,
    GiftNotAvailableInRoundError,
    InvalidTargetSlotError,
    SessionNotActiveError,
    SessionNotFoundError,
    ShufflePermissionError,
    ValidationError,
)
from ..models import BreakdownRound, GiftBoost, ShuffleSession
from .inventory import GiftInventory

logger = logging.getLogger(__name__)


class BoostRegistry:
    """Registers, resolves and removes :class:`GiftBoost` rows.

    Registration checks are advisory: stock may run out between registering a
    boost and reaching its slot, in which case the draw falls back to a
    weighted pick (see :meth:`WinnerSelector.draw`).
    """

    def __init__(self, session: Session, *, inventory: Optional[GiftInventory] = None) -> None:
        self._session = session
        self._inventory = inventory or GiftInventory(session)

    def register(
        self,
        shuffle: ShuffleSession,
        round_: BreakdownRound,
        gift_id: int,
        target_round: int,
        *,
        actor_id: Optional[int] = None,
    ) -> GiftBoost:
        """Force ``gift_id`` to win at global slot ``target_round``.

        Parameters
        ----------
        shuffle : ShuffleSession
            Session the boost applies to; must be active.
        round_ : BreakdownRound
            Round whose stock backs the boost; must belong to ``shuffle``.
        gift_id : int
            Gift to force.
        target_round : int
            Global slot number, strictly after the slots already drawn.
        actor_id : Optional[int], default: None
            Operator registering the boost.

        Returns
        -------
        GiftBoost
            The persisted boost.

        Raises
        ------
        ValidationError
            If ``target_round`` is not a positive integer.
        SessionNotActiveError
            If the session is completed.
        InvalidTargetSlotError
            If ``target_round`` has already been drawn.
        GiftNotAvailableInRoundError
            If the gift has no stock left in ``round_`` or ``round_`` belongs
            to another session.
        DuplicateTargetError
            If another boost already targets ``target_round``.
        """
        if isinstance(target_round, bool) or not isinstance(target_round, int) or target_round <= 0:
            raise ValidationError("target_round must be a positive integer")
        if round_.session_id != shuffle.id:
            raise GiftNotAvailableInRoundError(
                f"Round {round_.id} does not belong to session {shuffle.id}"
            )
        if not shuffle.is_active:
            raise SessionNotActiveError(f"Session {shuffle.id} is not active")

        winners_count = shuffle.winners_count(self._session)
        if target_round <= winners_count:
            raise InvalidTargetSlotError(
                f"Slot {target_round} has already been drawn ({winners_count} winners so far)"
            )
        if self._inventory.remaining(round_, gift_id) <= 0:
            raise GiftNotAvailableInRoundError(
                f"Gift {gift_id} has no stock left in round {round_.id}"
            )
        if self.resolve(shuffle, target_round) is not None:
            raise DuplicateTargetError(
                f"Slot {target_round} is already boosted in session {shuffle.id}"
            )

        boost = GiftBoost(
            session_id=shuffle.id,
            round_id=round_.id,
            gift_id=gift_id,
            target_round=target_round,
            created_by=actor_id,
        )
        self._session.add(boost)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise DuplicateTargetError(
                f"Slot {target_round} is already boosted in session {shuffle.id}"
            ) from exc

        logger.info(
            "Boost %s registered: gift %s at slot %d in session %s",
            boost.id,
            gift_id,
            target_round,
            shuffle.id,
        )
        return boost

    def resolve(self, shuffle: ShuffleSession, target_round: int) -> Optional[GiftBoost]:
        """Return the boost targeting exactly ``target_round``, if any."""
        return self._session.scalar(
            select(GiftBoost).where(
                GiftBoost.session_id == shuffle.id,
                GiftBoost.target_round == target_round,
            )
        )

    def consume(self, boost: GiftBoost) -> None:
        """Delete ``boost`` as part of the draw that used (or skipped) it."""
        self._session.delete(boost)
        self._session.flush()

    def get_owned(self, boost_id: int, owner: int) -> GiftBoost:
        """Return boost ``boost_id`` after checking ``owner`` runs its session.

        The row is read from the store even if the boost is already in the
        identity map, so a boost consumed by a draw committed meanwhile is
        reported as missing.

        Raises
        ------
        BoostNotFoundError
            If the boost does not exist (or was already consumed).
        ShufflePermissionError
            If the boost's session was created by someone else.
        """
        boost = self._session.scalar(
            select(GiftBoost)
            .where(GiftBoost.id == boost_id)
            .execution_options(populate_existing=True)
        )
        if boost is None:
            raise BoostNotFoundError(f"Boost {boost_id} not found")
        shuffle = self._session.get(ShuffleSession, boost.session_id)
        if shuffle is None:
            raise SessionNotFoundError(f"Session {boost.session_id} not found")
        if shuffle.created_by != owner:
            raise ShufflePermissionError(
                f"Operator {owner} does not own session {shuffle.id}"
            )
        return boost

    def remove(self, boost_id: int, owner: int) -> GiftBoost:
        """Delete boost ``boost_id`` on behalf of ``owner`` and return it.

        Raises
        ------
        BoostNotFoundError
            If the boost is missing, or the ``DELETE`` matched no row.
        ShufflePermissionError
            If ``owner`` does not run the boost's session.
        """
        boost = self.get_owned(boost_id, owner)
        result = self._session.execute(
            delete(GiftBoost)
            .where(GiftBoost.id == boost_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise BoostNotFoundError(f"Boost {boost_id} not found")
        self._session.expunge(boost)
        logger.info("Boost %s removed by operator %s", boost_id, owner)
        return boost

    def list_for_session(self, shuffle: ShuffleSession) -> list[GiftBoost]:
        """Return the pending boosts of ``shuffle`` ordered by target slot."""
        stmt = (
            select(GiftBoost)
            .where(GiftBoost.session_id == shuffle.id)
            .order_by(GiftBoost.target_round)
        )
        return list(self._session.scalars(stmt))


__all__ = ["BoostRegistry"]
