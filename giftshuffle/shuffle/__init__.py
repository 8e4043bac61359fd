"""Round and allocation engine for shuffle sessions."""

from .boosts import BoostRegistry
from .catalog import BreakdownCatalog, validate_allotments
from .cycles import (
    breakdown_cycle,
    gifts_in_current_cycle,
    gifts_remaining_in_cycle,
    next_slot,
)
from .engine import DrawResult, WinnerDetails, WinnerSelector
from .inventory import GiftInventory, InventoryTotals
from .ledger import RoundLedger, RoundSummary
from .locking import lock_shuffle_session
from .selection import pick_weighted
from .status import (
    BreakdownInfo,
    GiftStatistics,
    LatestWinner,
    RoundGiftView,
    SessionStatistics,
    SessionStatus,
    StatusProjector,
    WinnerFeed,
    WinnerView,
)

__all__ = [
    "BoostRegistry",
    "BreakdownCatalog",
    "validate_allotments",
    "breakdown_cycle",
    "gifts_in_current_cycle",
    "gifts_remaining_in_cycle",
    "next_slot",
    "DrawResult",
    "WinnerDetails",
    "WinnerSelector",
    "GiftInventory",
    "InventoryTotals",
    "RoundLedger",
    "RoundSummary",
    "lock_shuffle_session",
    "pick_weighted",
    "BreakdownInfo",
    "GiftStatistics",
    "LatestWinner",
    "RoundGiftView",
    "SessionStatistics",
    "SessionStatus",
    "StatusProjector",
    "WinnerFeed",
    "WinnerView",
]
