from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .operator import Operator  # noqa: F401
from .gift import Gift  # noqa: F401
from .breakdown import GiftBreakdown, BreakdownGift  # noqa: F401
from .session import SESSION_ACTIVE, SESSION_COMPLETED, ShuffleSession  # noqa: F401
from .round import ROUND_ACTIVE, ROUND_COMPLETED, BreakdownRound, RoundGift  # noqa: F401
from .winner import GiftWinner  # noqa: F401
from .boost import GiftBoost  # noqa: F401
from .activity import ActivityLog  # noqa: F401

__all__ = [
    "Base",
    "Operator",
    "Gift",
    "GiftBreakdown",
    "BreakdownGift",
    "ShuffleSession",
    "SESSION_ACTIVE",
    "SESSION_COMPLETED",
    "BreakdownRound",
    "RoundGift",
    "ROUND_ACTIVE",
    "ROUND_COMPLETED",
    "GiftWinner",
    "GiftBoost",
    "ActivityLog",
]
