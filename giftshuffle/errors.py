"""Exception hierarchy raised by the round and allocation engine.

Every error aborts the requested operation as a whole; callers can rely on
persisted state being unchanged when one of these propagates.
"""

from __future__ import annotations


class ShuffleError(Exception):
    """Base class for all engine errors."""


class ValidationError(ShuffleError, ValueError):
    """Malformed input rejected before any transaction is opened."""


# Not found ------------------------------------------------------------------


class NotFoundError(ShuffleError, LookupError):
    """A referenced row does not exist."""


class SessionNotFoundError(NotFoundError):
    pass


class BreakdownNotFoundError(NotFoundError):
    pass


class RoundNotFoundError(NotFoundError):
    pass


class GiftNotFoundError(NotFoundError):
    pass


class BoostNotFoundError(NotFoundError):
    pass


# State conflicts --------------------------------------------------------------


class StateConflictError(ShuffleError):
    """The request is well formed but conflicts with current state."""


class SessionNotActiveError(StateConflictError):
    pass


class BreakdownInactiveError(StateConflictError):
    pass


class InsufficientInventoryError(StateConflictError):
    """A gift has no stock left in the round for the requested quantity."""

    def __init__(self, round_id: int, gift_id: int, requested: int = 1) -> None:
        super().__init__(
            f"Gift {gift_id} has fewer than {requested} unit(s) left in round {round_id}"
        )
        self.round_id = round_id
        self.gift_id = gift_id
        self.requested = requested


class InvalidTargetSlotError(StateConflictError):
    """A boost targets a slot that has already been drawn."""


class GiftNotAvailableInRoundError(StateConflictError):
    pass


class DuplicateTargetError(StateConflictError):
    """Another boost already targets the same slot in this session."""


class RoundExhaustedError(StateConflictError):
    """No gift in the round has stock left to draw from."""


# Concurrency ------------------------------------------------------------------


class ConcurrentDrawError(ShuffleError):
    """Lock acquisition or serialization kept failing after bounded retries."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


# Permission -------------------------------------------------------------------


class ShufflePermissionError(ShuffleError, PermissionError):
    """The acting operator does not own the session."""


__all__ = [
    "ShuffleError",
    "ValidationError",
    "NotFoundError",
    "SessionNotFoundError",
    "BreakdownNotFoundError",
    "RoundNotFoundError",
    "GiftNotFoundError",
    "BoostNotFoundError",
    "StateConflictError",
    "SessionNotActiveError",
    "BreakdownInactiveError",
    "InsufficientInventoryError",
    "InvalidTargetSlotError",
    "GiftNotAvailableInRoundError",
    "DuplicateTargetError",
    "RoundExhaustedError",
    "ConcurrentDrawError",
    "ShufflePermissionError",
]
