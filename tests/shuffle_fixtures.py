"""Shared database fixtures for the shuffle test modules."""

from __future__ import annotations

import unittest
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from giftshuffle.models import (
    Base,
    BreakdownGift,
    Gift,
    GiftBreakdown,
    Operator,
    ShuffleSession,
)
from giftshuffle.shuffle.ledger import RoundLedger


class InMemoryDBTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self) -> None:
        self.engine.dispose()


def seed_breakdown(
    session: Session,
    quantities: dict[str, int],
    *,
    total_number: Optional[int] = None,
    name: str = "Test Breakdown",
    operator: Optional[Operator] = None,
) -> tuple[Operator, dict[str, Gift], GiftBreakdown]:
    """Create an operator, one gift per key of ``quantities``, and a breakdown."""
    if operator is None:
        operator = Operator(email=f"{name.replace(' ', '.').lower()}@example.com", name="Manager")
        session.add(operator)
    gifts = {label: Gift(name=f"{name} {label}") for label in quantities}
    session.add_all(gifts.values())
    session.flush()

    breakdown = GiftBreakdown(
        name=name,
        total_number=total_number if total_number is not None else sum(quantities.values()),
        is_active=True,
        created_by=operator.id,
        items=[
            BreakdownGift(gift_id=gifts[label].id, quantity=qty)
            for label, qty in quantities.items()
        ],
    )
    session.add(breakdown)
    session.flush()
    return operator, gifts, breakdown


def start_shuffle(
    session: Session,
    operator: Operator,
    breakdown: GiftBreakdown,
    *,
    collect_customer_info: bool = False,
    access_code: str = "ABCDEF",
    open_round: bool = True,
) -> ShuffleSession:
    """Create an active session and (by default) its first round."""
    shuffle = ShuffleSession(
        event_name="Test Event",
        breakdown_id=breakdown.id,
        status="active",
        access_code=access_code,
        collect_customer_info=collect_customer_info,
        created_by=operator.id,
    )
    session.add(shuffle)
    session.flush()
    if open_round:
        RoundLedger(session).get_or_create_next_round(shuffle)
    return shuffle
