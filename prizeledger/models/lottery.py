"""Lottery reference data, draws, tickets and settled winners."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import ID_TYPE, MONEY

if TYPE_CHECKING:
    from .user import User

DRAW_OPEN_STATUSES = ("scheduled", "active")


class Lottery(Base):
    """Admin-managed lottery definition (daily, weekly, monthly, ...)."""

    __tablename__ = "lotteries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    """Draw type key used to look up the tier rules."""

    ticket_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    prize_pool: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    """Headline prize used by draws of types without tier rules."""

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    draws: Mapped[list["Draw"]] = relationship(back_populates="lottery")

    __table_args__ = (UniqueConstraint("type", name="uq_lotteries_type"),)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Lottery(id={self.id}, type={self.type})>"


class Draw(Base):
    """One resolution event of a lottery."""

    __tablename__ = "draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    lottery_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lotteries.id", ondelete="RESTRICT"), nullable=False
    )
    draw_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """Scheduled resolution time (UTC)."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    """``scheduled`` -> ``active`` -> ``completed``; or ``cancelled``."""

    total_prize_pool: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    """Gross intake from ticket sales."""

    platform_fees: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    distribution_pool: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    """Portion of the pool earmarked for winners, written at settlement."""

    prize_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    """Prize shared by exact-match winners for draws without tier rules."""

    tickets_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winning_numbers: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    executed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    lottery: Mapped["Lottery"] = relationship(back_populates="draws")
    tickets: Mapped[list["Ticket"]] = relationship(
        back_populates="draw", order_by="Ticket.id"
    )
    winners: Mapped[list["DrawWinner"]] = relationship(
        back_populates="draw", order_by="DrawWinner.id"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled','active','completed','cancelled')",
            name="status_enum",
        ),
        Index("ix_draws_status_date", "status", "draw_date"),
    )

    def __init__(
        self,
        *,
        draw_date: datetime,
        lottery: Optional[Lottery] = None,
        lottery_id: Optional[int] = None,
        status: str = "scheduled",
        total_prize_pool: Decimal = Decimal("0"),
        prize_amount: Decimal = Decimal("0"),
        tickets_sold: int = 0,
    ) -> None:
        if lottery is not None:
            self.lottery = lottery
        if lottery_id is not None:
            self.lottery_id = lottery_id
        self.draw_date = draw_date
        self.status = status
        self.total_prize_pool = total_prize_pool
        self.platform_fees = Decimal("0")
        self.distribution_pool = Decimal("0")
        self.prize_amount = prize_amount
        self.tickets_sold = tickets_sold

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Draw(id={self.id}, lottery_id={self.lottery_id}, status={self.status})>"


class Ticket(Base):
    """A participant's entry in a draw.

    Only the winner fields (``is_winner`` and ``prize_amount``) are written
    after creation, once, by the settlement executor.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="RESTRICT"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    numbers: Mapped[list] = mapped_column(JSON, nullable=False)
    ticket_number: Mapped[str] = mapped_column(String(32), nullable=False)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prize_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    is_free_ticket: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    draw: Mapped["Draw"] = relationship(back_populates="tickets")
    user: Mapped["User"] = relationship()

    __table_args__ = (
        UniqueConstraint("draw_id", "ticket_number", name="uq_tickets_draw_ticket_number"),
        Index("ix_tickets_draw", "draw_id"),
    )

    def __init__(
        self,
        *,
        draw_id: int,
        user_id: int,
        numbers: list,
        ticket_number: str,
        is_free_ticket: bool = False,
    ) -> None:
        self.draw_id = draw_id
        self.user_id = user_id
        self.numbers = list(numbers)
        self.ticket_number = ticket_number
        self.is_free_ticket = is_free_ticket
        self.is_winner = False
        self.prize_amount = Decimal("0")


class DrawWinner(Base):
    """Settlement output row; a draw's full set is written in one transaction.

    Display-only rows have no ticket and no user, carry a synthetic
    ``display_label`` and never move money.
    """

    __tablename__ = "draw_winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="RESTRICT"), nullable=False
    )
    ticket_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("tickets.id", ondelete="RESTRICT"), nullable=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )
    display_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_label: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    winner_type: Mapped[str] = mapped_column(String(40), nullable=False)
    prize_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    prize_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_distributed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    distributed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    draw: Mapped["Draw"] = relationship(back_populates="winners")
    ticket: Mapped[Optional["Ticket"]] = relationship()

    __table_args__ = (
        UniqueConstraint("ticket_id", name="uq_draw_winners_ticket_id"),
        CheckConstraint(
            "(display_only AND ticket_id IS NULL AND user_id IS NULL)"
            " OR (NOT display_only AND ticket_id IS NOT NULL AND user_id IS NOT NULL)",
            name="display_only_has_no_ticket",
        ),
        Index("ix_draw_winners_draw", "draw_id"),
    )


class MonthlyTicketBonus(Base):
    """Free monthly tickets granted for daily ticket purchases."""

    __tablename__ = "monthly_ticket_bonuses"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    monthly_draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("draws.id", ondelete="CASCADE"), nullable=False
    )
    daily_tickets_count: Mapped[int] = mapped_column(Integer, nullable=False)
    bonus_tickets_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("user_id", "monthly_draw_id", name="uq_monthly_bonus_user_draw"),
    )
