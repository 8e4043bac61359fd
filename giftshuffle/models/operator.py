from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, validates

from .base import ID_TYPE, Base


class Operator(Base):
    """Staff account that owns breakdowns and shuffle sessions.

    Authentication lives outside this package; the row only anchors
    ``created_by`` ownership checks.
    """

    __tablename__ = "operators"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    email: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="manager")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @validates("email")
    def _normalize_email(self, _key: str, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> Optional["Operator"]:
        """Get operator by their email address."""
        return session.scalar(select(cls).where(cls.email == email.strip().lower()))

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Operator(id={self.id}, email={self.email}, role={self.role})>"
