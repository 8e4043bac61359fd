"""Operations exposed to the control panel, dashboard, and audience display.

Mutating workflows take a ``sessionmaker``: each runs in its own transaction
(retried on lock conflicts) and reports to the audit sink only after that
transaction has committed. Read workflows take an open ``Session`` and never
lock anything.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .audit import DEFAULT_AUDIT_SINK, AuditSink, safe_record
from .config import Settings
from .db.transactions import run_in_transaction
from .errors import (
    BoostNotFoundError,
    BreakdownInactiveError,
    RoundNotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
    ShufflePermissionError,
    ValidationError,
)
from .models import (
    SESSION_ACTIVE,
    SESSION_COMPLETED,
    BreakdownRound,
    Gift,
    GiftBoost,
    GiftBreakdown,
    ShuffleSession,
)
from .models.utils import generate_access_code
from .shuffle.boosts import BoostRegistry
from .shuffle.catalog import BreakdownCatalog, validate_allotments
from .shuffle.engine import DrawResult, WinnerDetails, WinnerSelector
from .shuffle.ledger import RoundLedger, RoundSummary
from .shuffle.locking import lock_shuffle_session
from .shuffle.status import (
    BreakdownInfo,
    LatestWinner,
    RoundGiftView,
    SessionStatistics,
    SessionStatus,
    StatusProjector,
    WinnerFeed,
    WinnerView,
)

logger = logging.getLogger(__name__)


def _require_id(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def _owned_session(session: Session, session_id: int, actor_id: int) -> ShuffleSession:
    """Lock session ``session_id`` and check that ``actor_id`` created it."""
    shuffle = lock_shuffle_session(session, session_id)
    if shuffle.created_by != actor_id:
        raise ShufflePermissionError(
            f"Operator {actor_id} does not own session {session_id}"
        )
    return shuffle


def create_gift(
    session_factory: sessionmaker,
    name: str,
    description: Optional[str] = None,
    *,
    actor_id: Optional[int] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> Gift:
    """Add a gift to the catalogue."""
    with session_factory.begin() as session:
        gift = BreakdownCatalog(session).add_gift(name, description)
    safe_record(audit, actor_id, "gift_created", f"Gift {gift.id} ({gift.name})")
    return gift


def create_breakdown(
    session_factory: sessionmaker,
    name: str,
    total_number: int,
    allotments: Mapping[int, int],
    *,
    actor_id: Optional[int] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> GiftBreakdown:
    """Define a prize pool of ``total_number`` slots per round.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory for the transaction the breakdown is created in.
    name : str
        Unique breakdown name.
    total_number : int
        Winner slots per round.
    allotments : Mapping[int, int]
        ``{gift_id: quantity}``; quantities must add up to ``total_number``.
    actor_id : Optional[int], default: None
        Operator creating the breakdown.
    audit : Optional[AuditSink]
        Sink notified after commit.

    Returns
    -------
    GiftBreakdown
        The persisted breakdown.

    Raises
    ------
    ValidationError
        If the definition is malformed. Raised before any transaction.
    GiftNotFoundError
        If an allotment references an unknown gift.
    """
    validate_allotments(total_number, allotments)
    with session_factory.begin() as session:
        breakdown = BreakdownCatalog(session).create_breakdown(
            name, total_number, allotments, created_by=actor_id
        )
    safe_record(
        audit,
        actor_id,
        "breakdown_created",
        f"Breakdown {breakdown.id} ({breakdown.name}), {total_number} slots",
    )
    return breakdown


def start_session(
    session_factory: sessionmaker,
    breakdown_id: int,
    event_name: str,
    *,
    actor_id: int,
    vehicle_number: Optional[str] = None,
    collect_customer_info: bool = False,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> ShuffleSession:
    """Start a shuffle session against breakdown ``breakdown_id``.

    The session gets a fresh access code and its first round is opened
    immediately, so the control panel can show stock before the first draw.

    Raises
    ------
    ValidationError
        If identifiers or the event name are missing.
    BreakdownNotFoundError
        If the breakdown does not exist.
    BreakdownInactiveError
        If the breakdown is retired or has no allotments.
    """
    _require_id("breakdown_id", breakdown_id)
    _require_id("actor_id", actor_id)
    event_name = (event_name or "").strip()
    if not event_name:
        raise ValidationError("event_name is required")

    with session_factory.begin() as session:
        breakdown = BreakdownCatalog(session).get(breakdown_id)
        if not breakdown.is_usable():
            raise BreakdownInactiveError(
                f"Breakdown {breakdown_id} is inactive or has no gift allotments"
            )
        shuffle = ShuffleSession(
            event_name=event_name,
            vehicle_number=(vehicle_number or "").strip() or None,
            breakdown_id=breakdown.id,
            status=SESSION_ACTIVE,
            access_code=generate_access_code(session),
            collect_customer_info=collect_customer_info,
            breakdown_round=1,
            created_by=actor_id,
        )
        session.add(shuffle)
        session.flush()
        first_round = RoundLedger(session).get_or_create_next_round(shuffle)

    logger.info("Session %s started on breakdown %s", shuffle.id, breakdown_id)
    safe_record(
        audit,
        actor_id,
        "session_started",
        f"Session {shuffle.id} ({event_name}) on breakdown {breakdown_id}, round {first_round.round_number}",
    )
    return shuffle


def complete_session(
    session_factory: sessionmaker,
    session_id: int,
    *,
    actor_id: int,
    settings: Optional[Settings] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> ShuffleSession:
    """End a session: no further draws, boosts, or rounds are accepted.

    Raises
    ------
    SessionNotActiveError
        If the session is already completed.
    ShufflePermissionError
        If ``actor_id`` does not own the session.
    """
    _require_id("session_id", session_id)
    _require_id("actor_id", actor_id)

    def _work(session: Session) -> tuple[ShuffleSession, int]:
        shuffle = _owned_session(session, session_id, actor_id)
        if not shuffle.is_active:
            raise SessionNotActiveError(f"Session {session_id} is already completed")
        closed = RoundLedger(session).complete_active_rounds(shuffle)
        shuffle.status = SESSION_COMPLETED
        shuffle.end_time = datetime.now(timezone.utc)
        session.flush()
        return shuffle, closed

    shuffle, closed = run_in_transaction(
        session_factory, _work, settings=settings, description="complete_session"
    )
    safe_record(
        audit,
        actor_id,
        "session_completed",
        f"Session {session_id} completed ({closed} round(s) closed)",
    )
    return shuffle


def create_next_round(
    session_factory: sessionmaker,
    session_id: int,
    *,
    actor_id: int,
    settings: Optional[Settings] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> BreakdownRound:
    """Close the current round early and open the next one with full stock."""
    _require_id("session_id", session_id)
    _require_id("actor_id", actor_id)

    def _work(session: Session) -> BreakdownRound:
        shuffle = _owned_session(session, session_id, actor_id)
        return RoundLedger(session).start_new_round(shuffle)

    round_ = run_in_transaction(
        session_factory, _work, settings=settings, description="create_next_round"
    )
    safe_record(
        audit,
        actor_id,
        "round_created",
        f"Session {session_id} round {round_.round_number} opened manually",
    )
    return round_


def draw_next_winner(
    session_factory: sessionmaker,
    session_id: int,
    *,
    actor_id: int,
    details: Optional[WinnerDetails] = None,
    rng: Optional[random.Random] = None,
    settings: Optional[Settings] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
    sleep: Callable[[float], None] = time.sleep,
) -> DrawResult:
    """Draw the next winner of session ``session_id``.

    This function wraps :meth:`WinnerSelector.draw` in its own transaction.
    Lock timeouts and serialization failures restart the whole draw from
    scratch, up to ``settings.draw_max_attempts`` times.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory for the draw transaction.
    session_id : int
        Session to draw for.
    actor_id : int
        Operator triggering the draw; must own the session.
    details : Optional[WinnerDetails], default: None
        Winner identity, required when the session collects customer info.
    rng : Optional[random.Random], default: None
        Randomness source for the weighted pick.
    settings : Optional[Settings], default: None
        Retry budget and lock timeout. Defaults to the environment settings.
    audit : Optional[AuditSink]
        Sink notified after commit.
    sleep : Callable[[float], None], default: time.sleep
        Back-off sleeper, injectable for tests.

    Returns
    -------
    DrawResult
        The committed draw.

    Raises
    ------
    ConcurrentDrawError
        If the draw kept conflicting with concurrent writers.
    ShufflePermissionError
        If ``actor_id`` does not own the session.
    """
    _require_id("session_id", session_id)
    _require_id("actor_id", actor_id)

    def _work(session: Session) -> DrawResult:
        _owned_session(session, session_id, actor_id)
        return WinnerSelector(session, rng=rng).draw(session_id, details)

    result = run_in_transaction(
        session_factory,
        _work,
        settings=settings,
        description="draw_next_winner",
        sleep=sleep,
    )

    if result.round_created:
        safe_record(
            audit,
            actor_id,
            "round_created",
            f"Session {session_id} round {result.round.round_number} opened",
        )
    if result.boost_fell_through:
        safe_record(
            audit,
            actor_id,
            "boost_skipped",
            f"Session {session_id} boost {result.boost_id} skipped at slot {result.slot}: out of stock",
        )
    safe_record(
        audit,
        actor_id,
        "winner_drawn",
        f"Session {session_id} slot {result.slot}: gift {result.winner.gift_id}"
        + (" (boosted)" if result.winner.boosted else ""),
        {"round_id": result.round.id, "winner_id": result.winner.id},
    )
    return result


def set_boost(
    session_factory: sessionmaker,
    session_id: int,
    round_id: int,
    gift_id: int,
    target_round: int,
    *,
    actor_id: int,
    settings: Optional[Settings] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> GiftBoost:
    """Force ``gift_id`` to win at global slot ``target_round``.

    Raises
    ------
    ValidationError
        If an identifier or ``target_round`` is not a positive integer.
    RoundNotFoundError
        If ``round_id`` does not exist.
    InvalidTargetSlotError, GiftNotAvailableInRoundError, DuplicateTargetError
        See :meth:`BoostRegistry.register`.
    """
    _require_id("session_id", session_id)
    _require_id("round_id", round_id)
    _require_id("gift_id", gift_id)
    _require_id("target_round", target_round)
    _require_id("actor_id", actor_id)

    def _work(session: Session) -> GiftBoost:
        shuffle = _owned_session(session, session_id, actor_id)
        round_ = session.get(BreakdownRound, round_id)
        if round_ is None:
            raise RoundNotFoundError(f"Round {round_id} not found")
        return BoostRegistry(session).register(
            shuffle, round_, gift_id, target_round, actor_id=actor_id
        )

    boost = run_in_transaction(
        session_factory, _work, settings=settings, description="set_boost"
    )
    safe_record(
        audit,
        actor_id,
        "boost_created",
        f"Session {session_id} boost {boost.id}: gift {gift_id} at slot {target_round}",
    )
    return boost


def remove_boost(
    session_factory: sessionmaker,
    boost_id: int,
    *,
    actor_id: int,
    settings: Optional[Settings] = None,
    audit: Optional[AuditSink] = DEFAULT_AUDIT_SINK,
) -> None:
    """Delete boost ``boost_id`` if ``actor_id`` owns its session.

    Raises
    ------
    BoostNotFoundError
        If the boost does not exist or a draw consumed it first.
    ShufflePermissionError
        If ``actor_id`` does not own the boost's session.
    """
    _require_id("boost_id", boost_id)
    _require_id("actor_id", actor_id)

    def _work(session: Session) -> GiftBoost:
        owning_session_id = session.scalar(
            select(GiftBoost.session_id).where(GiftBoost.id == boost_id)
        )
        if owning_session_id is None:
            raise BoostNotFoundError(f"Boost {boost_id} not found")
        # Serialize with draws of the same session, then re-read the boost.
        lock_shuffle_session(session, owning_session_id)
        return BoostRegistry(session).remove(boost_id, actor_id)

    boost = run_in_transaction(
        session_factory, _work, settings=settings, description="remove_boost"
    )
    safe_record(
        audit,
        actor_id,
        "boost_removed",
        f"Session {boost.session_id} boost {boost_id} (slot {boost.target_round}) removed",
    )


def get_status(session: Session, session_id: int) -> SessionStatus:
    """Return the derived counters for session ``session_id``."""
    _require_id("session_id", session_id)
    return StatusProjector(session).status(session_id)


def get_breakdown_info(session: Session, session_id: int) -> BreakdownInfo:
    """Return the control-panel projection, repairing a drifted cached cycle.

    The caller's transaction carries the repair; commit it to persist.
    """
    _require_id("session_id", session_id)
    return StatusProjector(session).breakdown_info(session_id)


def get_latest_winner(
    session: Session, session_id: int, last_known_slot: int = 0
) -> LatestWinner:
    """Delta poll: the newest winner if it is past ``last_known_slot``."""
    _require_id("session_id", session_id)
    return StatusProjector(session).latest_winner(session_id, last_known_slot)


def get_round_gifts(session: Session, round_id: int) -> list[RoundGiftView]:
    """Return the stock table of round ``round_id``."""
    _require_id("round_id", round_id)
    return StatusProjector(session).round_gifts(round_id)


def get_recent_winners(
    session: Session, session_id: int, limit: int = 10
) -> list[WinnerView]:
    """Return up to ``limit`` winners of the session, newest first."""
    _require_id("session_id", session_id)
    return StatusProjector(session).recent_winners(session_id, limit)


def get_winner_feed(
    session: Session, session_id: int, after_id: int = 0
) -> WinnerFeed:
    """Return winners recorded after winner id ``after_id``."""
    _require_id("session_id", session_id)
    return StatusProjector(session).winner_feed(session_id, after_id)


def list_boosts(session: Session, session_id: int) -> list[GiftBoost]:
    """Return pending boosts of the session ordered by target slot."""
    _require_id("session_id", session_id)
    shuffle = session.get(ShuffleSession, session_id)
    if shuffle is None:
        raise SessionNotFoundError(f"Session {session_id} not found")
    return BoostRegistry(session).list_for_session(shuffle)


def list_rounds(session: Session, session_id: int) -> list[RoundSummary]:
    """Return every round of the session with its winner count."""
    _require_id("session_id", session_id)
    shuffle = session.get(ShuffleSession, session_id)
    if shuffle is None:
        raise SessionNotFoundError(f"Session {session_id} not found")
    return RoundLedger(session).list_rounds(shuffle)


def get_session_statistics(session: Session, session_id: int) -> SessionStatistics:
    """Return per-gift and per-round winner counts for the session."""
    _require_id("session_id", session_id)
    return StatusProjector(session).statistics(session_id)


__all__ = [
    "create_gift",
    "create_breakdown",
    "start_session",
    "complete_session",
    "create_next_round",
    "draw_next_winner",
    "set_boost",
    "remove_boost",
    "get_status",
    "get_breakdown_info",
    "get_latest_winner",
    "get_round_gifts",
    "get_recent_winners",
    "get_winner_feed",
    "list_boosts",
    "list_rounds",
    "get_session_statistics",
]
