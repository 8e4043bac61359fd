"""Pure slot and breakdown-cycle arithmetic.

A session's winners occupy global slots ``1, 2, 3, ...``. Slots are grouped
into breakdown cycles of ``total_number`` slots each; a slot that is an exact
multiple of ``total_number`` closes its cycle rather than opening the next.
"""

from __future__ import annotations


def _check_total(total_number: int) -> None:
    if total_number <= 0:
        raise ValueError("total_number must be positive")


def breakdown_cycle(winners_count: int, total_number: int) -> int:
    """Return the breakdown cycle the latest slot belongs to.

    Before the first draw the session is in cycle 1.

    >>> breakdown_cycle(50, 50), breakdown_cycle(51, 50), breakdown_cycle(100, 50)
    (1, 2, 2)
    """
    _check_total(total_number)
    if winners_count < 0:
        raise ValueError("winners_count cannot be negative")
    if winners_count == 0:
        return 1
    return -(-winners_count // total_number)


def gifts_in_current_cycle(winners_count: int, total_number: int) -> int:
    """Return how many slots of the current cycle are already drawn."""
    _check_total(total_number)
    if winners_count <= 0:
        return 0
    return ((winners_count - 1) % total_number) + 1


def gifts_remaining_in_cycle(winners_count: int, total_number: int) -> int:
    """Return how many slots of the current cycle are still open."""
    return total_number - gifts_in_current_cycle(winners_count, total_number)


def next_slot(winners_count: int) -> int:
    """Return the global slot the next draw fills."""
    return winners_count + 1


__all__ = [
    "breakdown_cycle",
    "gifts_in_current_cycle",
    "gifts_remaining_in_cycle",
    "next_slot",
]
