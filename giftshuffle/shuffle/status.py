"""Read-side projections for dashboards and audience displays.

Everything here is a pure function of persisted state and takes no locks, so
polling clients can call it as often as they like. A draw committing halfway
through a projection yields at most one stale value, never an inconsistent
write. The one exception is :meth:`StatusProjector.breakdown_info`, which may
refresh the session's cached breakdown cycle.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from ..db.utils import as_utc, dt_iso
from ..errors import RoundNotFoundError, SessionNotFoundError, ValidationError
from ..models import BreakdownRound, Gift, GiftWinner, RoundGift, ShuffleSession
from .cycles import breakdown_cycle, gifts_in_current_cycle, gifts_remaining_in_cycle
from .inventory import GiftInventory, InventoryTotals
from .ledger import RoundLedger


@dataclass(frozen=True)
class SessionStatus:
    """Derived counters of a session at one point in time."""

    session_id: int
    status: str
    active: bool
    breakdown_id: int
    total_number: int
    winners_count: int
    current_round_number: int
    breakdown_round: int
    gifts_in_current_round: int
    gifts_remaining_in_round: int
    round_id: Optional[int]
    round_number: Optional[int]
    total_stock: int
    used_stock: int
    gifts_remaining: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BreakdownInfo:
    """:class:`SessionStatus` plus breakdown identity, for the control panel."""

    status: SessionStatus
    breakdown_name: str
    cached_breakdown_round: int
    reconciled: bool

    def to_dict(self) -> dict[str, Any]:
        payload = self.status.to_dict()
        payload.update(
            breakdown_name=self.breakdown_name,
            cached_breakdown_round=self.cached_breakdown_round,
            reconciled=self.reconciled,
        )
        return payload


@dataclass(frozen=True)
class WinnerView:
    id: int
    slot: int
    round_id: int
    gift_id: int
    gift_name: str
    gift_description: Optional[str]
    boosted: bool
    winner_name: Optional[str]
    win_time: Optional[datetime]

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["win_time"] = dt_iso(self.win_time)
        return payload


@dataclass(frozen=True)
class LatestWinner:
    """Answer to a delta poll keyed by the last slot the caller has seen."""

    new_winner: bool
    current_round: int
    gift: Optional[WinnerView] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_winner": self.new_winner,
            "current_round": self.current_round,
            "gift": self.gift.to_dict() if self.gift is not None else None,
        }


@dataclass(frozen=True)
class WinnerFeed:
    winners: list[WinnerView]
    new_offset: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "winners": [w.to_dict() for w in self.winners],
            "new_offset": self.new_offset,
        }


@dataclass(frozen=True)
class RoundGiftView:
    gift_id: int
    name: str
    quantity_available: int
    quantity_used: int
    remaining: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GiftStatistics:
    gift_id: int
    name: str
    wins: int
    boosted: int


@dataclass(frozen=True)
class SessionStatistics:
    """Summary of a session for the post-event report."""

    session_id: int
    winners_count: int
    boosted_count: int
    rounds: int
    per_gift: list[GiftStatistics] = field(default_factory=list)
    per_round: dict[int, int] = field(default_factory=dict)
    first_win: Optional[datetime] = None
    last_win: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["first_win"] = dt_iso(self.first_win)
        payload["last_win"] = dt_iso(self.last_win)
        return payload


class StatusProjector:
    """Computes :class:`SessionStatus` and winner-history reads."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._inventory = GiftInventory(session)
        self._ledger = RoundLedger(session, inventory=self._inventory)

    def _shuffle(self, session_id: int) -> ShuffleSession:
        shuffle = self._session.get(ShuffleSession, session_id)
        if shuffle is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return shuffle

    def _latest_slot(self, session_id: int) -> int:
        return self._session.scalar(
            select(func.coalesce(func.max(GiftWinner.round_number), 0)).where(
                GiftWinner.session_id == session_id
            )
        ) or 0

    def status(self, session_id: int) -> SessionStatus:
        """Project the counters of session ``session_id``."""
        shuffle = self._shuffle(session_id)
        total_number = shuffle.breakdown.total_number
        # Slots are gapless, so the highest slot is also the winner count.
        winners_count = self._latest_slot(session_id)

        round_ = self._ledger.active_round(shuffle)
        totals = (
            self._inventory.totals(round_)
            if round_ is not None
            else InventoryTotals(total=0, used=0, remaining=0)
        )
        return SessionStatus(
            session_id=shuffle.id,
            status=shuffle.status,
            active=shuffle.is_active,
            breakdown_id=shuffle.breakdown_id,
            total_number=total_number,
            winners_count=winners_count,
            current_round_number=winners_count,
            breakdown_round=breakdown_cycle(winners_count, total_number),
            gifts_in_current_round=gifts_in_current_cycle(winners_count, total_number),
            gifts_remaining_in_round=gifts_remaining_in_cycle(winners_count, total_number),
            round_id=round_.id if round_ is not None else None,
            round_number=round_.round_number if round_ is not None else None,
            total_stock=totals.total,
            used_stock=totals.used,
            gifts_remaining=totals.remaining,
        )

    def breakdown_info(self, session_id: int, *, reconcile: bool = True) -> BreakdownInfo:
        """Project the status and optionally repair a drifted cached cycle."""
        status = self.status(session_id)
        shuffle = self._shuffle(session_id)
        cached = shuffle.breakdown_round
        reconciled = False
        if reconcile and cached != status.breakdown_round:
            shuffle.breakdown_round = status.breakdown_round
            self._session.flush()
            reconciled = True
        return BreakdownInfo(
            status=status,
            breakdown_name=shuffle.breakdown.name,
            cached_breakdown_round=cached,
            reconciled=reconciled,
        )

    def _winner_views(self, stmt) -> list[WinnerView]:
        rows = self._session.execute(stmt).all()
        return [
            WinnerView(
                id=winner.id,
                slot=winner.round_number,
                round_id=winner.round_id,
                gift_id=winner.gift_id,
                gift_name=gift.name,
                gift_description=gift.description,
                boosted=winner.boosted,
                winner_name=winner.winner_name,
                win_time=as_utc(winner.win_time),
            )
            for winner, gift in rows
        ]

    def _winners_stmt(self, session_id: int):
        return (
            select(GiftWinner, Gift)
            .join(Gift, Gift.id == GiftWinner.gift_id)
            .where(GiftWinner.session_id == session_id)
        )

    def latest_winner(self, session_id: int, last_known_slot: int = 0) -> LatestWinner:
        """Return the newest winner if it is past ``last_known_slot``.

        The returned ``current_round`` never goes below ``last_known_slot``.
        """
        if last_known_slot < 0:
            raise ValidationError("last_known_slot cannot be negative")
        self._shuffle(session_id)

        views = self._winner_views(
            self._winners_stmt(session_id).order_by(GiftWinner.round_number.desc()).limit(1)
        )
        latest = views[0] if views else None
        if latest is None or latest.slot <= last_known_slot:
            return LatestWinner(new_winner=False, current_round=last_known_slot)
        return LatestWinner(new_winner=True, current_round=latest.slot, gift=latest)

    def recent_winners(self, session_id: int, limit: int = 10) -> list[WinnerView]:
        """Return up to ``limit`` winners, newest first."""
        if limit <= 0:
            raise ValidationError("limit must be positive")
        self._shuffle(session_id)
        return self._winner_views(
            self._winners_stmt(session_id)
            .order_by(GiftWinner.win_time.desc(), GiftWinner.id.desc())
            .limit(limit)
        )

    def winner_feed(
        self, session_id: int, after_id: int = 0, limit: Optional[int] = None
    ) -> WinnerFeed:
        """Return winners with an id above ``after_id`` in draw order."""
        if after_id < 0:
            raise ValidationError("after_id cannot be negative")
        self._shuffle(session_id)
        stmt = (
            self._winners_stmt(session_id)
            .where(GiftWinner.id > after_id)
            .order_by(GiftWinner.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        winners = self._winner_views(stmt)
        new_offset = winners[-1].id if winners else after_id
        return WinnerFeed(winners=winners, new_offset=new_offset)

    def round_gifts(self, round_id: int) -> list[RoundGiftView]:
        """Return the stock of every gift in round ``round_id``."""
        if self._session.get(BreakdownRound, round_id) is None:
            raise RoundNotFoundError(f"Round {round_id} not found")
        rows = self._session.execute(
            select(RoundGift, Gift)
            .join(Gift, Gift.id == RoundGift.gift_id)
            .where(RoundGift.round_id == round_id)
            .order_by(RoundGift.gift_id)
        ).all()
        return [
            RoundGiftView(
                gift_id=row.gift_id,
                name=gift.name,
                quantity_available=row.quantity_available,
                quantity_used=row.quantity_used,
                remaining=row.remaining,
            )
            for row, gift in rows
        ]

    def statistics(self, session_id: int) -> SessionStatistics:
        """Aggregate per-gift and per-round winner counts for a session."""
        self._shuffle(session_id)
        per_gift_rows = self._session.execute(
            select(
                Gift.id,
                Gift.name,
                func.count(GiftWinner.id),
                func.coalesce(func.sum(case((GiftWinner.boosted.is_(True), 1), else_=0)), 0),
            )
            .join(GiftWinner, GiftWinner.gift_id == Gift.id)
            .where(GiftWinner.session_id == session_id)
            .group_by(Gift.id, Gift.name)
            .order_by(Gift.id)
        ).all()
        per_gift = [
            GiftStatistics(gift_id=gid, name=name, wins=int(wins), boosted=int(boosted))
            for gid, name, wins, boosted in per_gift_rows
        ]

        per_round_rows = self._session.execute(
            select(BreakdownRound.round_number, func.count(GiftWinner.id))
            .join(GiftWinner, GiftWinner.round_id == BreakdownRound.id, isouter=True)
            .where(BreakdownRound.session_id == session_id)
            .group_by(BreakdownRound.round_number)
            .order_by(BreakdownRound.round_number)
        ).all()

        first_win, last_win = self._session.execute(
            select(func.min(GiftWinner.win_time), func.max(GiftWinner.win_time)).where(
                GiftWinner.session_id == session_id
            )
        ).one()

        return SessionStatistics(
            session_id=session_id,
            winners_count=sum(g.wins for g in per_gift),
            boosted_count=sum(g.boosted for g in per_gift),
            rounds=len(per_round_rows),
            per_gift=per_gift,
            per_round={int(num): int(count) for num, count in per_round_rows},
            first_win=as_utc(first_win),
            last_win=as_utc(last_win),
        )


__all__ = [
    "StatusProjector",
    "SessionStatus",
    "BreakdownInfo",
    "LatestWinner",
    "WinnerView",
    "WinnerFeed",
    "RoundGiftView",
    "GiftStatistics",
    "SessionStatistics",
]
