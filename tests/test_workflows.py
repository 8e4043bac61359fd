from __future__ import annotations

import random
import unittest
from unittest.mock import MagicMock

from giftshuffle.audit import AuditSink, DatabaseAuditSink
from giftshuffle.config import Settings
from giftshuffle.errors import (
    BoostNotFoundError,
    BreakdownInactiveError,
    DuplicateTargetError,
    GiftNotFoundError,
    InvalidTargetSlotError,
    SessionNotActiveError,
    ShufflePermissionError,
    ValidationError,
)
from giftshuffle.models import (
    ActivityLog,
    GiftWinner,
    Operator,
    ShuffleSession,
)
from giftshuffle.shuffle.catalog import BreakdownCatalog
from giftshuffle.shuffle.engine import WinnerDetails
from giftshuffle.workflows import (
    complete_session,
    create_breakdown,
    create_gift,
    create_next_round,
    draw_next_winner,
    get_breakdown_info,
    get_latest_winner,
    get_recent_winners,
    get_round_gifts,
    get_session_statistics,
    get_status,
    get_winner_feed,
    list_boosts,
    list_rounds,
    remove_boost,
    set_boost,
    start_session,
)

from shuffle_fixtures import InMemoryDBTestCase

FAST_SETTINGS = Settings(draw_max_attempts=3, draw_backoff_seconds=0, lock_timeout_seconds=1)


class WorkflowTests(InMemoryDBTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.audit = MagicMock(spec=AuditSink)
        with self.Session.begin() as session:
            owner = Operator(email="Owner@Example.com", name="Owner")
            other = Operator(email="other@example.com", name="Other")
            session.add_all([owner, other])
            session.flush()
            self.owner_id = owner.id
            self.other_id = other.id

    def _breakdown(self, quantities, total_number=None, name="Main"):
        gift_ids = {}
        for label in quantities:
            gift = create_gift(self.Session, f"{name} {label}", audit=self.audit)
            gift_ids[label] = gift.id
        breakdown = create_breakdown(
            self.Session,
            name,
            total_number if total_number is not None else sum(quantities.values()),
            {gift_ids[label]: qty for label, qty in quantities.items()},
            actor_id=self.owner_id,
            audit=self.audit,
        )
        return gift_ids, breakdown

    def _start(self, breakdown, **kwargs):
        return start_session(
            self.Session,
            breakdown.id,
            "Launch Event",
            actor_id=self.owner_id,
            audit=self.audit,
            **kwargs,
        )

    def _draw(self, shuffle, **kwargs):
        kwargs.setdefault("actor_id", self.owner_id)
        kwargs.setdefault("settings", FAST_SETTINGS)
        kwargs.setdefault("audit", self.audit)
        return draw_next_winner(self.Session, shuffle.id, **kwargs)

    def _actions(self):
        return [c.args[1] for c in self.audit.record.call_args_list]

    def test_create_breakdown_validates_before_writing(self) -> None:
        gift = create_gift(self.Session, "Mug", audit=self.audit)
        with self.assertRaises(ValidationError):
            create_breakdown(self.Session, "Bad", 5, {gift.id: 4}, actor_id=self.owner_id)
        with self.assertRaises(ValidationError):
            create_breakdown(self.Session, "Bad", 0, {gift.id: 0}, actor_id=self.owner_id)
        with self.assertRaises(ValidationError):
            create_breakdown(self.Session, "Bad", 3, {gift.id: 0}, actor_id=self.owner_id)
        with self.assertRaises(GiftNotFoundError):
            create_breakdown(self.Session, "Bad", 3, {gift.id: 1, 999: 2}, actor_id=self.owner_id)

        with self.Session() as session:
            self.assertEqual(session.query(ShuffleSession).count(), 0)

    def test_start_session_opens_first_round(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 2, "B": 1})
        shuffle = self._start(breakdown, vehicle_number=" WP-1234 ")

        self.assertEqual(len(shuffle.access_code), 6)
        self.assertTrue(shuffle.access_code.isupper())
        self.assertEqual(shuffle.vehicle_number, "WP-1234")
        with self.Session() as session:
            status = get_status(session, shuffle.id)
            self.assertEqual(status.round_number, 1)
            self.assertEqual(status.gifts_remaining, 3)
            rounds = list_rounds(session, shuffle.id)
            self.assertEqual(len(rounds), 1)
            found = ShuffleSession.get_by_access_code(session, shuffle.access_code.lower())
            self.assertEqual(found.id, shuffle.id)
        self.assertIn("session_started", self._actions())

    def test_start_session_requires_active_breakdown(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 1})
        with self.Session.begin() as session:
            BreakdownCatalog(session).set_active(breakdown.id, False)
        with self.assertRaises(BreakdownInactiveError):
            self._start(breakdown)
        with self.assertRaises(ValidationError):
            start_session(self.Session, breakdown.id, "  ", actor_id=self.owner_id)

    def test_full_draw_flow_with_boost(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 5, "B": 5}, name="Flow")
        shuffle = self._start(breakdown)
        with self.Session() as session:
            round_id = get_status(session, shuffle.id).round_id

        boost = set_boost(
            self.Session, shuffle.id, round_id, gift_ids["B"], 3,
            actor_id=self.owner_id, settings=FAST_SETTINGS, audit=self.audit,
        )
        with self.assertRaises(DuplicateTargetError):
            set_boost(
                self.Session, shuffle.id, round_id, gift_ids["A"], 3,
                actor_id=self.owner_id, settings=FAST_SETTINGS,
            )

        rng = random.Random(99)
        results = [self._draw(shuffle, rng=rng) for _ in range(12)]

        self.assertEqual([r.slot for r in results], list(range(1, 13)))
        self.assertEqual(results[2].winner.gift_id, gift_ids["B"])
        self.assertTrue(results[2].winner.boosted)
        self.assertEqual(results[2].boost_id, boost.id)
        self.assertTrue(results[10].round_created)

        with self.Session() as session:
            self.assertEqual(list_boosts(session, shuffle.id), [])
            latest = get_latest_winner(session, shuffle.id, 11)
            self.assertTrue(latest.new_winner)
            self.assertEqual(latest.current_round, 12)
            self.assertEqual(len(get_recent_winners(session, shuffle.id)), 10)
            feed = get_winner_feed(session, shuffle.id, 0)
            self.assertEqual(len(feed.winners), 12)
            gifts = get_round_gifts(session, results[-1].round.id)
            self.assertEqual(sum(g.quantity_used for g in gifts), 2)
            stats = get_session_statistics(session, shuffle.id)
            self.assertEqual(stats.boosted_count, 1)
            info = get_breakdown_info(session, shuffle.id)
            self.assertEqual(info.status.breakdown_round, 2)
            self.assertFalse(info.reconciled)

        actions = self._actions()
        self.assertEqual(actions.count("winner_drawn"), 12)
        self.assertEqual(actions.count("round_created"), 1)
        self.assertIn("boost_created", actions)

    def test_boost_for_drawn_slot_is_rejected(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 3})
        shuffle = self._start(breakdown)
        result = self._draw(shuffle)
        with self.assertRaises(InvalidTargetSlotError):
            set_boost(
                self.Session, shuffle.id, result.round.id, gift_ids["A"], 1,
                actor_id=self.owner_id, settings=FAST_SETTINGS,
            )

    def test_only_owner_can_mutate(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 3})
        shuffle = self._start(breakdown)
        with self.Session() as session:
            round_id = get_status(session, shuffle.id).round_id
        boost = set_boost(
            self.Session, shuffle.id, round_id, gift_ids["A"], 2,
            actor_id=self.owner_id, settings=FAST_SETTINGS, audit=self.audit,
        )

        with self.assertRaises(ShufflePermissionError):
            self._draw(shuffle, actor_id=self.other_id)
        with self.assertRaises(PermissionError):
            remove_boost(self.Session, boost.id, actor_id=self.other_id, settings=FAST_SETTINGS)
        with self.assertRaises(ShufflePermissionError):
            complete_session(self.Session, shuffle.id, actor_id=self.other_id, settings=FAST_SETTINGS)

        remove_boost(
            self.Session, boost.id, actor_id=self.owner_id, settings=FAST_SETTINGS, audit=self.audit
        )
        with self.assertRaises(BoostNotFoundError):
            remove_boost(self.Session, boost.id, actor_id=self.owner_id, settings=FAST_SETTINGS)
        self.assertIn("boost_removed", self._actions())

        with self.Session() as session:
            self.assertEqual(session.query(GiftWinner).count(), 0)

    def test_complete_session_stops_draws(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 2})
        shuffle = self._start(breakdown)
        self._draw(shuffle)

        completed = complete_session(
            self.Session, shuffle.id, actor_id=self.owner_id, settings=FAST_SETTINGS, audit=self.audit
        )
        self.assertEqual(completed.status, "completed")
        self.assertIsNotNone(completed.end_time)

        with self.assertRaises(SessionNotActiveError):
            self._draw(shuffle)
        with self.assertRaises(SessionNotActiveError):
            complete_session(self.Session, shuffle.id, actor_id=self.owner_id, settings=FAST_SETTINGS)
        with self.Session() as session:
            status = get_status(session, shuffle.id)
            self.assertFalse(status.active)
            self.assertIsNone(status.round_id)
            self.assertEqual(status.winners_count, 1)

    def test_create_next_round_resets_stock(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 2, "B": 2})
        shuffle = self._start(breakdown)
        self._draw(shuffle)

        round_ = create_next_round(
            self.Session, shuffle.id, actor_id=self.owner_id, settings=FAST_SETTINGS, audit=self.audit
        )
        self.assertEqual(round_.round_number, 2)
        with self.Session() as session:
            status = get_status(session, shuffle.id)
            self.assertEqual(status.round_id, round_.id)
            self.assertEqual(status.gifts_remaining, 4)
            # Slot numbering is global and unaffected by the manual roll-over.
            self.assertEqual(status.winners_count, 1)

        result = self._draw(shuffle)
        self.assertEqual(result.slot, 2)
        self.assertEqual(result.round.id, round_.id)

    def test_customer_info_flow(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 2})
        shuffle = self._start(breakdown, collect_customer_info=True)

        with self.assertRaises(ValidationError):
            self._draw(shuffle)
        result = self._draw(shuffle, details=WinnerDetails(name="Saman", phone="0711111111"))
        self.assertEqual(result.slot, 1)
        self.assertEqual(result.winner.winner_name, "Saman")

    def test_audit_failure_does_not_roll_back(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 2})
        shuffle = self._start(breakdown)
        broken = MagicMock(spec=AuditSink)
        broken.record.side_effect = RuntimeError("audit store down")

        with self.assertLogs("giftshuffle.audit", level="ERROR"):
            result = self._draw(shuffle, audit=broken)

        with self.Session() as session:
            self.assertEqual(session.get(GiftWinner, result.winner.id).round_number, 1)

    def test_database_audit_sink_records_rows(self) -> None:
        gift_ids, breakdown = self._breakdown({"A": 2})
        shuffle = self._start(breakdown)
        self._draw(shuffle, audit=DatabaseAuditSink(self.Session))

        with self.Session() as session:
            rows = session.query(ActivityLog).all()
            self.assertEqual([r.action for r in rows], ["winner_drawn"])
            self.assertEqual(rows[0].actor_id, self.owner_id)
            self.assertIn("slot 1", rows[0].detail)

    def test_invalid_identifiers_rejected_up_front(self) -> None:
        for bad in (0, -3, None, "1"):
            with self.assertRaises(ValidationError):
                draw_next_winner(self.Session, bad, actor_id=self.owner_id)
        with self.Session() as session:
            with self.assertRaises(ValidationError):
                get_status(session, 0)

    def test_operator_email_is_normalized(self) -> None:
        with self.Session() as session:
            found = Operator.get_by_email(session, " OWNER@example.com")
            self.assertIsNotNone(found)
            self.assertEqual(found.email, "owner@example.com")


if __name__ == "__main__":
    unittest.main()
