"""Wallet balances and the append-only transaction ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import ID_TYPE, MONEY

if TYPE_CHECKING:
    from .user import User


class Wallet(Base):
    """Per-user balance sheet.

    Balances are only changed through :mod:`prizeledger.settlement.ledger`,
    which pairs each mutation with one :class:`Transaction` row.
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    """Available balance; never negative."""

    bonus_balance: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_deposits: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_withdrawals: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_winnings: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    """Lifetime sum of prize and trade winnings credited by the engine."""

    total_bonuses: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="wallet")
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="wallet", order_by="Transaction.id"
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_non_negative"),
        CheckConstraint("bonus_balance >= 0", name="bonus_balance_non_negative"),
    )

    def __init__(
        self,
        *,
        user_id: Optional[int] = None,
        user: Optional["User"] = None,
        balance: Decimal = Decimal("0"),
        bonus_balance: Decimal = Decimal("0"),
    ) -> None:
        if user is not None:
            self.user = user
        if user_id is not None:
            self.user_id = user_id
        self.balance = balance
        self.bonus_balance = bonus_balance
        self.total_deposits = Decimal("0")
        self.total_withdrawals = Decimal("0")
        self.total_winnings = Decimal("0")
        self.total_bonuses = Decimal("0")

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Wallet(id={self.id}, user_id={self.user_id}, balance={self.balance})>"


class Transaction(Base):
    """Immutable record of why a wallet balance changed."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    wallet_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("wallets.id", ondelete="RESTRICT"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    type: Mapped[str] = mapped_column(String(40), nullable=False)
    """Type tag such as ``prize_win``, ``binary_trade_win`` or ``try_your_luck_refund``."""

    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    """Signed amount; debits are negative."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="confirmed")

    reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Source record, e.g. ``draw:12`` or ``trade:7``."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    wallet: Mapped["Wallet"] = relationship(back_populates="transactions")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','confirmed','failed')", name="status_enum"
        ),
        Index("ix_transactions_user_type", "user_id", "type"),
        Index("ix_transactions_reference", "reference"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Transaction(id={id}, type={type}, amount={amount})>".format(
            id=self.id, type=self.type, amount=self.amount
        )
