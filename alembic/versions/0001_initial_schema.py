"""Initial gift shuffle schema.

Creates the gift catalogue, breakdown templates, shuffle sessions, rounds
with per-gift stock, winners, boosts, and the activity log.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _id_column() -> sa.Column:
    return sa.Column("id", ID_TYPE, nullable=False, autoincrement=True)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "operators",
        _id_column(),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("name", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        _timestamp("created_at", nullable=True),
        _timestamp("updated_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_operators"),
    )
    op.create_index("ix_operators_id", "operators", ["id"])
    op.create_index("ix_operators_email", "operators", ["email"], unique=True)

    op.create_table(
        "gifts",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_gifts"),
        sa.UniqueConstraint("name", name="uq_gifts_name"),
    )

    op.create_table(
        "gift_breakdowns",
        _id_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("total_number", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", ID_TYPE, nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_gift_breakdowns"),
        sa.UniqueConstraint("name", name="uq_gift_breakdowns_name"),
        sa.CheckConstraint(
            "total_number > 0", name="ck_gift_breakdowns_total_number_positive"
        ),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["operators.id"],
            name="fk_gift_breakdowns_created_by_operators",
            ondelete="SET NULL",
        ),
    )

    op.create_table(
        "breakdown_gifts",
        _id_column(),
        sa.Column("breakdown_id", ID_TYPE, nullable=False),
        sa.Column("gift_id", ID_TYPE, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_breakdown_gifts"),
        sa.UniqueConstraint(
            "breakdown_id", "gift_id", name="uq_breakdown_gifts_breakdown_gift"
        ),
        sa.CheckConstraint("quantity > 0", name="ck_breakdown_gifts_quantity_positive"),
        sa.ForeignKeyConstraint(
            ["breakdown_id"],
            ["gift_breakdowns.id"],
            name="fk_breakdown_gifts_breakdown_id_gift_breakdowns",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["gift_id"],
            ["gifts.id"],
            name="fk_breakdown_gifts_gift_id_gifts",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_breakdown_gifts_breakdown_id", "breakdown_gifts", ["breakdown_id"]
    )

    op.create_table(
        "shuffle_sessions",
        _id_column(),
        sa.Column("event_name", sa.String(255), nullable=False),
        sa.Column("vehicle_number", sa.String(50), nullable=True),
        sa.Column("breakdown_id", ID_TYPE, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("access_code", sa.String(12), nullable=False),
        sa.Column(
            "collect_customer_info",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "breakdown_round", sa.Integer(), nullable=False, server_default=sa.text("1")
        ),
        sa.Column("created_by", ID_TYPE, nullable=False),
        _timestamp("start_time"),
        _timestamp("end_time", nullable=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_shuffle_sessions"),
        sa.UniqueConstraint("access_code", name="uq_shuffle_sessions_access_code"),
        sa.ForeignKeyConstraint(
            ["breakdown_id"],
            ["gift_breakdowns.id"],
            name="fk_shuffle_sessions_breakdown_id_gift_breakdowns",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["operators.id"],
            name="fk_shuffle_sessions_created_by_operators",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_shuffle_sessions_status", "shuffle_sessions", ["status"])
    op.create_index("ix_shuffle_sessions_created_by", "shuffle_sessions", ["created_by"])

    op.create_table(
        "breakdown_rounds",
        _id_column(),
        sa.Column("session_id", ID_TYPE, nullable=False),
        sa.Column("breakdown_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _timestamp("created_at"),
        _timestamp("completed_at", nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_breakdown_rounds"),
        sa.UniqueConstraint(
            "session_id", "round_number", name="uq_breakdown_rounds_session_round"
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["shuffle_sessions.id"],
            name="fk_breakdown_rounds_session_id_shuffle_sessions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["breakdown_id"],
            ["gift_breakdowns.id"],
            name="fk_breakdown_rounds_breakdown_id_gift_breakdowns",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_breakdown_rounds_session_status", "breakdown_rounds", ["session_id", "status"]
    )

    op.create_table(
        "round_gifts",
        _id_column(),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("gift_id", ID_TYPE, nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=False),
        sa.Column("quantity_used", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_round_gifts"),
        sa.UniqueConstraint("round_id", "gift_id", name="uq_round_gifts_round_gift"),
        sa.CheckConstraint(
            "quantity_used >= 0", name="ck_round_gifts_quantity_used_non_negative"
        ),
        sa.CheckConstraint(
            "quantity_used <= quantity_available",
            name="ck_round_gifts_quantity_used_within_available",
        ),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["breakdown_rounds.id"],
            name="fk_round_gifts_round_id_breakdown_rounds",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["gift_id"],
            ["gifts.id"],
            name="fk_round_gifts_gift_id_gifts",
            ondelete="RESTRICT",
        ),
    )

    op.create_table(
        "gift_winners",
        _id_column(),
        sa.Column("session_id", ID_TYPE, nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("gift_id", ID_TYPE, nullable=False),
        sa.Column("boosted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("winner_name", sa.String(255), nullable=True),
        sa.Column("winner_nic", sa.String(50), nullable=True),
        sa.Column("winner_phone", sa.String(50), nullable=True),
        _timestamp("win_time"),
        sa.PrimaryKeyConstraint("id", name="pk_gift_winners"),
        sa.UniqueConstraint(
            "session_id", "round_number", name="uq_gift_winners_session_slot"
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["shuffle_sessions.id"],
            name="fk_gift_winners_session_id_shuffle_sessions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["breakdown_rounds.id"],
            name="fk_gift_winners_round_id_breakdown_rounds",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["gift_id"],
            ["gifts.id"],
            name="fk_gift_winners_gift_id_gifts",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_gift_winners_round", "gift_winners", ["round_id"])

    op.create_table(
        "gift_boosts",
        _id_column(),
        sa.Column("session_id", ID_TYPE, nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("gift_id", ID_TYPE, nullable=False),
        sa.Column("target_round", sa.Integer(), nullable=False),
        sa.Column("created_by", ID_TYPE, nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_gift_boosts"),
        sa.UniqueConstraint(
            "session_id", "target_round", name="uq_gift_boosts_session_target"
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["shuffle_sessions.id"],
            name="fk_gift_boosts_session_id_shuffle_sessions",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["breakdown_rounds.id"],
            name="fk_gift_boosts_round_id_breakdown_rounds",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["gift_id"],
            ["gifts.id"],
            name="fk_gift_boosts_gift_id_gifts",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["operators.id"],
            name="fk_gift_boosts_created_by_operators",
            ondelete="SET NULL",
        ),
    )

    op.create_table(
        "activity_log",
        _id_column(),
        sa.Column("actor_id", ID_TYPE, nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("extra", sa.JSON(), nullable=True),
        _timestamp("occurred_at"),
        sa.PrimaryKeyConstraint("id", name="pk_activity_log"),
    )
    op.create_index(
        "ix_activity_log_actor_time", "activity_log", ["actor_id", "occurred_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_activity_log_actor_time", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_table("gift_boosts")
    op.drop_index("ix_gift_winners_round", table_name="gift_winners")
    op.drop_table("gift_winners")
    op.drop_table("round_gifts")
    op.drop_index("ix_breakdown_rounds_session_status", table_name="breakdown_rounds")
    op.drop_table("breakdown_rounds")
    op.drop_index("ix_shuffle_sessions_created_by", table_name="shuffle_sessions")
    op.drop_index("ix_shuffle_sessions_status", table_name="shuffle_sessions")
    op.drop_table("shuffle_sessions")
    op.drop_index("ix_breakdown_gifts_breakdown_id", table_name="breakdown_gifts")
    op.drop_table("breakdown_gifts")
    op.drop_table("gift_breakdowns")
    op.drop_table("gifts")
    op.drop_index("ix_operators_email", table_name="operators")
    op.drop_index("ix_operators_id", table_name="operators")
    op.drop_table("operators")
