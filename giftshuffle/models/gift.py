from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, select, text
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base


class Gift(Base):
    """A prize type that breakdowns hand out in fixed quantities."""

    __tablename__ = "gifts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Gift(id={self.id}, name={self.name})>"

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["Gift"]:
        """Return the gift called ``name`` if it exists."""
        return session.scalar(select(cls).where(cls.name == name))
