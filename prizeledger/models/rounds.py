"""Multi-day rounds: mystery search, try-your-luck and surprise draws."""

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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .types import ID_TYPE, MONEY


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MysterySearchRound(Base):
    """Guess-the-phrase round with staged word reveals.

    The twelve-word phrase is only ever stored encrypted; revealed words are
    copied into ``revealed_words`` as they become public.
    """

    __tablename__ = "mystery_search_rounds"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    encrypted_phrase: Mapped[str] = mapped_column(Text, nullable=False)
    revealed_words: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    """List of ``{"position": int, "word": str}`` entries, 1-based positions."""

    reveals_done: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """How many entries of the staged reveal order have been published."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="registration")
    registration_fee: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("1.00")
    )
    prize_pool: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    registration_ends_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    """Registration closes and guessing opens at this time."""

    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_clue_reveal_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    winner_user_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )
    rolled_over_to_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("mystery_search_rounds.id", ondelete="SET NULL"), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    registrations: Mapped[list["MysterySearchRegistration"]] = relationship(
        back_populates="round", order_by="MysterySearchRegistration.id"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('registration','active','completed','cancelled')",
            name="status_enum",
        ),
        Index("ix_mystery_rounds_status", "status"),
    )


class MysterySearchRegistration(Base):
    __tablename__ = "mystery_search_registrations"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("mystery_search_rounds.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    fee_paid: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    last_wrong_guess_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    round: Mapped["MysterySearchRound"] = relationship(back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("round_id", "user_id", name="uq_mystery_registration_round_user"),
    )


class MysterySearchSubmission(Base):
    __tablename__ = "mystery_search_submissions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("mystery_search_rounds.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )


class TryYourLuckRound(Base):
    """Lock-a-stake round; one random participant wins the pooled stakes."""

    __tablename__ = "try_your_luck_rounds"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    lock_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("1.00")
    )
    prize_pool: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    winner_user_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    participants: Mapped[list["TryYourLuckParticipant"]] = relationship(
        back_populates="round", order_by="TryYourLuckParticipant.id"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active','completed','cancelled')", name="status_enum"
        ),
        Index("ix_try_your_luck_rounds_status", "status"),
    )


class TryYourLuckParticipant(Base):
    """A stake locked into a try-your-luck round.

    ``standard`` stakes join the prize pool and are refunded to non-winners;
    ``until_win`` stakes stay held and follow the user into the next round
    until they win or ask for the lock to be released.
    """

    __tablename__ = "try_your_luck_participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("try_your_luck_rounds.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    lock_type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")
    amount_locked: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="locked")
    """``locked`` -> ``won`` | ``refunded`` | ``carried`` | ``released``."""

    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prize_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    unlock_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    carried_from_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("try_your_luck_participants.id", ondelete="SET NULL"),
        nullable=True,
    )
    locked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    unlocked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    round: Mapped["TryYourLuckRound"] = relationship(back_populates="participants")

    __table_args__ = (
        CheckConstraint("lock_type IN ('standard','until_win')", name="lock_type_enum"),
        CheckConstraint(
            "status IN ('locked','won','refunded','carried','released')",
            name="status_enum",
        ),
        UniqueConstraint("round_id", "user_id", name="uq_try_your_luck_round_user"),
    )


class SurpriseDraw(Base):
    """Admin-configured one-off draw with a fixed prize shared by N winners."""

    __tablename__ = "surprise_draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prize_pool: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    number_of_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ticket_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    tickets: Mapped[list["SurpriseDrawTicket"]] = relationship(
        back_populates="draw", order_by="SurpriseDrawTicket.id"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled','active','completed','cancelled')",
            name="status_enum",
        ),
        CheckConstraint("number_of_winners > 0", name="winners_positive"),
    )


class SurpriseDrawTicket(Base):
    __tablename__ = "surprise_draw_tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    surprise_draw_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("surprise_draws.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prize_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    draw: Mapped["SurpriseDraw"] = relationship(back_populates="tickets")

    __table_args__ = (
        UniqueConstraint(
            "surprise_draw_id", "ticket_number", name="uq_surprise_ticket_number"
        ),
    )
