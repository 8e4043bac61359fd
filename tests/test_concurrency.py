"""Concurrent draws against a file-backed SQLite database.

Each worker thread gets its own connection, so the database write lock is
the only thing serializing draws, exactly as with independent request
handlers.
"""

from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from sqlalchemy import func, select

from giftshuffle import workflows
from giftshuffle.audit import AuditSink
from giftshuffle.config import Settings
from giftshuffle.db.engine import get_sessionmaker, make_engine
from giftshuffle.db.transactions import run_in_transaction
from giftshuffle.errors import (
    BoostNotFoundError,
    ConcurrentDrawError,
    InsufficientInventoryError,
)
from giftshuffle.models import Base, GiftBoost, GiftWinner, RoundGift
from giftshuffle.shuffle.inventory import GiftInventory
from giftshuffle.shuffle.ledger import RoundLedger
from giftshuffle.shuffle.locking import lock_shuffle_session
from giftshuffle.workflows import draw_next_winner, remove_boost, set_boost

from shuffle_fixtures import seed_breakdown, start_shuffle

SETTINGS = Settings(
    draw_max_attempts=10,
    draw_backoff_seconds=0.01,
    draw_backoff_max_seconds=0.1,
    lock_timeout_seconds=30,
)


class ConcurrentDrawTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tmpdir.name) / "shuffle.db"
        self.engine = make_engine(f"sqlite:///{db_path}", lock_timeout=SETTINGS.lock_timeout_seconds)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmpdir.cleanup()

    def _run_threads(self, count, target):
        errors = []
        barrier = threading.Barrier(count)

        def runner(index):
            barrier.wait()
            try:
                target(index)
            except Exception as exc:  # collected and asserted on below
                errors.append(exc)

        threads = [threading.Thread(target=runner, args=(i,)) for i in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=120)
        return errors

    def test_last_unit_is_consumed_exactly_once(self) -> None:
        with self.Session.begin() as session:
            operator, gifts, breakdown = seed_breakdown(session, {"A": 1, "B": 4})
            shuffle = start_shuffle(session, operator, breakdown)
            round_ = RoundLedger(session).get_current_round(shuffle)
            gift_a = gifts["A"].id
            shuffle_id = shuffle.id

        successes = []

        def commit_last_a(_index):
            def _work(session):
                lock_shuffle_session(session, shuffle_id)
                GiftInventory(session).commit(round_, gift_a)
                return True

            successes.append(run_in_transaction(self.Session, _work, settings=SETTINGS))

        errors = self._run_threads(8, commit_last_a)

        self.assertEqual(len(successes), 1)
        self.assertEqual(len(errors), 7)
        for exc in errors:
            self.assertIsInstance(exc, (InsufficientInventoryError, ConcurrentDrawError))
        with self.Session() as session:
            row = session.scalar(
                select(RoundGift).where(
                    RoundGift.round_id == round_.id, RoundGift.gift_id == gift_a
                )
            )
            self.assertEqual(row.quantity_used, 1)

    def test_parallel_draws_keep_slots_and_stock_consistent(self) -> None:
        with self.Session.begin() as session:
            operator, gifts, breakdown = seed_breakdown(session, {"A": 2, "B": 3})
            shuffle = start_shuffle(session, operator, breakdown)
            shuffle_id = shuffle.id
            operator_id = operator.id

        def draw(_index):
            draw_next_winner(
                self.Session,
                shuffle_id,
                actor_id=operator_id,
                settings=SETTINGS,
                audit=None,
            )

        errors = self._run_threads(12, draw)
        for exc in errors:
            self.assertIsInstance(exc, ConcurrentDrawError)

        with self.Session() as session:
            slots = session.scalars(
                select(GiftWinner.round_number)
                .where(GiftWinner.session_id == shuffle_id)
                .order_by(GiftWinner.round_number)
            ).all()
            self.assertEqual(slots, list(range(1, len(slots) + 1)))
            self.assertEqual(len(slots), 12 - len(errors))

            for row in session.scalars(select(RoundGift)):
                self.assertLessEqual(row.quantity_used, row.quantity_available)

            per_round = dict(
                session.execute(
                    select(GiftWinner.round_id, func.count(GiftWinner.id)).group_by(
                        GiftWinner.round_id
                    )
                ).all()
            )
            self.assertTrue(all(count <= 5 for count in per_round.values()))

    def test_remove_after_a_draw_consumed_the_boost_reports_not_found(self) -> None:
        with self.Session.begin() as session:
            operator, gifts, breakdown = seed_breakdown(session, {"A": 2, "B": 2})
            shuffle = start_shuffle(session, operator, breakdown)
            round_id = RoundLedger(session).get_current_round(shuffle).id
            shuffle_id = shuffle.id
            operator_id = operator.id
            gift_b = gifts["B"].id

        boost = set_boost(
            self.Session,
            shuffle_id,
            round_id,
            gift_b,
            1,
            actor_id=operator_id,
            settings=SETTINGS,
            audit=None,
        )

        real_lock = workflows.lock_shuffle_session
        drawn = []
        started = threading.Event()

        def draw_then_lock(session, session_id):
            # A draw for the boosted slot commits between lookup and lock.
            if not started.is_set():
                started.set()
                drawn.append(
                    draw_next_winner(
                        self.Session,
                        shuffle_id,
                        actor_id=operator_id,
                        settings=SETTINGS,
                        audit=None,
                    )
                )
            return real_lock(session, session_id)

        audit = MagicMock(spec=AuditSink)
        with patch.object(workflows, "lock_shuffle_session", side_effect=draw_then_lock):
            with self.assertRaises(BoostNotFoundError):
                remove_boost(
                    self.Session,
                    boost.id,
                    actor_id=operator_id,
                    settings=SETTINGS,
                    audit=audit,
                )

        self.assertTrue(drawn[0].winner.boosted)
        self.assertEqual(drawn[0].boost_id, boost.id)
        audit.record.assert_not_called()
        with self.Session() as session:
            self.assertIsNone(session.get(GiftBoost, boost.id))


if __name__ == "__main__":
    unittest.main()
