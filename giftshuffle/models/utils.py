"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
import string
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

ACCESS_CODE_ALPHABET = string.ascii_uppercase


def generate_access_code(
    session: Optional[Session] = None,
    length: int = 6,
    max_attempts: int = 32,
) -> str:
    """Return a random upper-case access code for a shuffle session.

    When a session is provided, the helper retries if the generated value is
    already present (or pending) in ``ShuffleSession.access_code``.
    """
    from .session import ShuffleSession

    for _ in range(max_attempts):
        candidate = "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))
        if session is None:
            return candidate

        pending = any(
            isinstance(obj, ShuffleSession) and obj.access_code == candidate
            for obj in session.new
        )
        if pending:
            continue
        exists = session.scalar(
            select(ShuffleSession.id).where(ShuffleSession.access_code == candidate)
        )
        if exists is None:
            return candidate

    raise RuntimeError("Unable to generate a unique access code after multiple attempts")
