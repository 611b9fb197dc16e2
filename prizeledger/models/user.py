from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import ID_TYPE

if TYPE_CHECKING:
    from .wallet import Wallet


class User(Base):
    """A participant who can hold tickets, trades and round entries."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    wallet: Mapped[Optional["Wallet"]] = relationship(
        back_populates="user", uselist=False
    )

    def __init__(self, username: str, email: Optional[str] = None):
        self.username = username
        self.email = email

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<User(id={self.id}, username={self.username})>"
