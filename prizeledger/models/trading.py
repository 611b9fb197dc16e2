"""Binary-option trades, their instruments, price history and audit trail."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .base import Base
from .types import CENTS, ID_TYPE, MONEY, MULTIPLIER, PRICE, require_two_places


class TradingInstrument(Base):
    """Tradable symbol and its payout terms."""

    __tablename__ = "trading_instruments"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="crypto")

    payout_multiplier: Mapped[Decimal] = mapped_column(
        MULTIPLIER, nullable=False, default=Decimal("1.95")
    )
    """Multiplier applied to the stake of a winning trade."""

    min_trade_amount: Mapped[Decimal] = mapped_column(
        CENTS, nullable=False, default=Decimal("1")
    )
    max_trade_amount: Mapped[Decimal] = mapped_column(
        CENTS, nullable=False, default=Decimal("1000")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("payout_multiplier > 0", name="payout_multiplier_positive"),
    )

    @validates("payout_multiplier", "min_trade_amount", "max_trade_amount")
    def _check_two_places(self, key: str, value: Decimal) -> Decimal:
        return require_two_places(key, value)


class PriceHistory(Base):
    """Observed instrument price, written by the external price ingester."""

    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    instrument_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("trading_instruments.id", ondelete="CASCADE"), nullable=False
    )
    price: Mapped[Decimal] = mapped_column(PRICE, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    instrument: Mapped["TradingInstrument"] = relationship()

    __table_args__ = (
        Index("ix_price_history_instrument_ts", "instrument_id", "timestamp"),
    )


class BinaryTrade(Base):
    """Fixed-duration up/down wager settled against the instrument price."""

    __tablename__ = "binary_trades"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    instrument_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("trading_instruments.id", ondelete="RESTRICT"), nullable=False
    )
    direction: Mapped[str] = mapped_column(String(4), nullable=False)
    stake_amount: Mapped[Decimal] = mapped_column(CENTS, nullable=False)
    entry_price: Mapped[Decimal] = mapped_column(PRICE, nullable=False)
    exit_price: Mapped[Optional[Decimal]] = mapped_column(PRICE, nullable=True)

    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    """Trade duration in seconds."""

    entry_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    """``active`` -> ``won`` | ``lost`` | ``error``; or ``cancelled``."""

    payout_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    instrument: Mapped["TradingInstrument"] = relationship()
    audit_entries: Mapped[list["TradeAuditLog"]] = relationship(
        back_populates="trade", order_by="TradeAuditLog.id"
    )

    __table_args__ = (
        CheckConstraint("direction IN ('up','down')", name="direction_enum"),
        CheckConstraint(
            "status IN ('active','won','lost','error','cancelled')", name="status_enum"
        ),
        CheckConstraint("stake_amount > 0", name="stake_positive"),
        Index("ix_binary_trades_status_expiry", "status", "expiry_time"),
    )

    @validates("stake_amount")
    def _check_stake_cents(self, key: str, value: Decimal) -> Decimal:
        return require_two_places(key, value)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<BinaryTrade(id={self.id}, direction={self.direction}, status={self.status})>"


class TradeAuditLog(Base):
    """Append-only forensic record of trade settlement decisions."""

    __tablename__ = "trade_audit_log"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    trade_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("binary_trades.id", ondelete="RESTRICT"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    trade: Mapped["BinaryTrade"] = relationship(back_populates="audit_entries")
