"""Reset the development database and run a short demo session."""

import random

from giftshuffle.audit import DatabaseAuditSink
from giftshuffle.config import configure_logging
from giftshuffle.db.engine import get_sessionmaker, make_engine
from giftshuffle.models import Base, Operator
from giftshuffle.shuffle import WinnerDetails
from giftshuffle.workflows import (
    create_breakdown,
    create_gift,
    draw_next_winner,
    get_status,
    set_boost,
    start_session,
)


def main() -> None:
    """Seed the development database with sample data."""
    configure_logging()
    engine = make_engine()

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)
    audit = DatabaseAuditSink(Session)

    with Session.begin() as session:
        operator = Operator(email="manager@example.com", name="Demo Manager", role="manager")
        session.add(operator)
        session.flush()
        operator_id = operator.id

    mug = create_gift(Session, "Coffee Mug", "Branded ceramic mug", actor_id=operator_id, audit=audit)
    cap = create_gift(Session, "Cap", "Embroidered cap", actor_id=operator_id, audit=audit)
    voucher = create_gift(Session, "Fuel Voucher", "LKR 5000 voucher", actor_id=operator_id, audit=audit)

    breakdown = create_breakdown(
        Session,
        "Roadshow 10",
        10,
        {mug.id: 5, cap.id: 4, voucher.id: 1},
        actor_id=operator_id,
        audit=audit,
    )
    shuffle = start_session(
        Session,
        breakdown.id,
        "Colombo Roadshow",
        actor_id=operator_id,
        vehicle_number="CAB-1234",
        collect_customer_info=True,
        audit=audit,
    )

    with Session() as session:
        round_id = get_status(session, shuffle.id).round_id
    set_boost(Session, shuffle.id, round_id, voucher.id, 3, actor_id=operator_id, audit=audit)

    rng = random.Random(2024)
    for n in range(1, 13):
        draw_next_winner(
            Session,
            shuffle.id,
            actor_id=operator_id,
            details=WinnerDetails(name=f"Guest {n:02d}"),
            rng=rng,
            audit=audit,
        )

    with Session() as session:
        status = get_status(session, shuffle.id)
    print(
        f"Session {shuffle.id} (code {shuffle.access_code}): "
        f"{status.winners_count} winners, breakdown round {status.breakdown_round}, "
        f"{status.gifts_remaining} gift(s) left in round {status.round_number}"
    )


if __name__ == "__main__":
    main()
