"""Runtime configuration read from the environment (and ``.env``)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Tunables for the draw engine.

    Attributes
    ----------
    db_url : Optional[str]
        Database URL. ``None`` falls back to the SQLite file in the project root.
    draw_max_attempts : int
        How many times a draw transaction is attempted before giving up.
    draw_backoff_seconds : float
        Base delay between draw attempts; doubled on every retry.
    draw_backoff_max_seconds : float
        Upper bound for a single retry delay.
    lock_timeout_seconds : float
        Bounded wait for row/database locks held by a concurrent draw.
    log_level : str
        Level used by :func:`configure_logging`.
    """

    db_url: Optional[str] = None
    draw_max_attempts: int = 3
    draw_backoff_seconds: float = 0.05
    draw_backoff_max_seconds: float = 1.0
    lock_timeout_seconds: float = 5.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        attempts = _env_int("GIFTSHUFFLE_DRAW_ATTEMPTS", cls.draw_max_attempts)
        if attempts < 1:
            raise ValueError("GIFTSHUFFLE_DRAW_ATTEMPTS must be at least 1")
        return cls(
            db_url=os.getenv("DB_URL") or None,
            draw_max_attempts=attempts,
            draw_backoff_seconds=_env_float(
                "GIFTSHUFFLE_DRAW_BACKOFF", cls.draw_backoff_seconds
            ),
            draw_backoff_max_seconds=_env_float(
                "GIFTSHUFFLE_DRAW_BACKOFF_MAX", cls.draw_backoff_max_seconds
            ),
            lock_timeout_seconds=_env_float(
                "GIFTSHUFFLE_LOCK_TIMEOUT", cls.lock_timeout_seconds
            ),
            log_level=os.getenv("GIFTSHUFFLE_LOG_LEVEL", cls.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    return Settings.from_env()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts and ad hoc tooling."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["Settings", "get_settings", "configure_logging"]
