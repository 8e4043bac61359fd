"""Gift and breakdown definitions."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import (
    BreakdownNotFoundError,
    GiftNotFoundError,
    StateConflictError,
    ValidationError,
)
from ..models import BreakdownGift, Gift, GiftBreakdown

logger = logging.getLogger(__name__)


def validate_allotments(total_number: int, allotments: Mapping[int, int]) -> dict[int, int]:
    """Check a breakdown definition and return it with zero quantities dropped.

    The allotted quantities must add up to exactly ``total_number`` so that
    a round runs out of slots and stock at the same draw.

    Raises
    ------
    ValidationError
        If ``total_number`` is not positive, a quantity is negative, no gift
        has a positive quantity, or the quantities do not sum to
        ``total_number``.
    """
    if isinstance(total_number, bool) or not isinstance(total_number, int) or total_number <= 0:
        raise ValidationError("total_number must be a positive integer")

    cleaned: dict[int, int] = {}
    for gift_id, quantity in allotments.items():
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError(f"Quantity for gift {gift_id} must be a non-negative integer")
        if quantity > 0:
            cleaned[gift_id] = quantity

    if not cleaned:
        raise ValidationError("At least one gift must have a positive quantity")
    allotted = sum(cleaned.values())
    if allotted != total_number:
        raise ValidationError(
            f"Gift quantities add up to {allotted} but the breakdown has {total_number} slots"
        )
    return cleaned


class BreakdownCatalog:
    """Creates gifts and breakdowns and looks them up."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def add_gift(self, name: str, description: Optional[str] = None) -> Gift:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Gift name is required")
        if Gift.get_by_name(self._session, name) is not None:
            raise StateConflictError(f"Gift {name!r} already exists")
        gift = Gift(name=name, description=description)
        self._session.add(gift)
        self._session.flush()
        return gift

    def create_breakdown(
        self,
        name: str,
        total_number: int,
        allotments: Mapping[int, int],
        *,
        created_by: Optional[int] = None,
    ) -> GiftBreakdown:
        """Persist a new breakdown with its per-gift allotments.

        Parameters
        ----------
        name : str
            Unique breakdown name.
        total_number : int
            Winner slots per round.
        allotments : Mapping[int, int]
            ``{gift_id: quantity}``; quantities must sum to ``total_number``.
        created_by : Optional[int], default: None
            Operator defining the breakdown.

        Returns
        -------
        GiftBreakdown
            The persisted, active breakdown.

        Raises
        ------
        ValidationError
            If the definition is malformed (see :func:`validate_allotments`).
        GiftNotFoundError
            If an allotment references an unknown or inactive gift.
        StateConflictError
            If the name is already taken.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Breakdown name is required")
        cleaned = validate_allotments(total_number, allotments)

        known = set(
            self._session.scalars(
                select(Gift.id).where(Gift.id.in_(cleaned.keys()), Gift.is_active.is_(True))
            )
        )
        missing = sorted(set(cleaned) - known)
        if missing:
            raise GiftNotFoundError(f"Unknown or inactive gift(s): {missing}")
        if GiftBreakdown.get_by_name(self._session, name) is not None:
            raise StateConflictError(f"Breakdown {name!r} already exists")

        breakdown = GiftBreakdown(
            name=name,
            total_number=total_number,
            is_active=True,
            created_by=created_by,
            items=[
                BreakdownGift(gift_id=gift_id, quantity=quantity)
                for gift_id, quantity in sorted(cleaned.items())
            ],
        )
        self._session.add(breakdown)
        self._session.flush()
        logger.info(
            "Created breakdown %s (%r) with %d slots over %d gift(s)",
            breakdown.id,
            name,
            total_number,
            len(cleaned),
        )
        return breakdown

    def get(self, breakdown_id: int) -> GiftBreakdown:
        breakdown = self._session.get(GiftBreakdown, breakdown_id)
        if breakdown is None:
            raise BreakdownNotFoundError(f"Breakdown {breakdown_id} not found")
        return breakdown

    def set_active(self, breakdown_id: int, active: bool) -> GiftBreakdown:
        """Enable or retire a breakdown. Retired breakdowns seed no new rounds."""
        breakdown = self.get(breakdown_id)
        breakdown.is_active = active
        self._session.flush()
        return breakdown

    def list_active(self) -> list[GiftBreakdown]:
        return list(
            self._session.scalars(
                select(GiftBreakdown)
                .where(GiftBreakdown.is_active.is_(True))
                .order_by(GiftBreakdown.name)
            )
        )


__all__ = ["BreakdownCatalog", "validate_allotments"]
