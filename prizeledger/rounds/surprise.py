"""Surprise draws: admin-scheduled one-off draws with N winners sharing a fixed pool."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc, to_cents, to_money, utcnow
from ..errors import AlreadySettled, NotDue, RoundActionError
from ..models import SurpriseDraw, SurpriseDrawTicket
from ..prize_draw.numbers import generate_ticket_number
from ..randomness import RandomnessProvider
from ..settlement.executor import SettlementExecutor

logger = logging.getLogger(__name__)

TICKET_NUMBER_MIN = 100000
TICKET_NUMBER_MAX = 999999


def create_surprise_draw(
    session: Session,
    *,
    title: str,
    prize_pool: Decimal,
    ticket_price: Decimal,
    start_time: datetime,
    end_time: datetime,
    number_of_winners: int = 1,
    description: Optional[str] = None,
) -> SurpriseDraw:
    """Schedule a surprise draw.

    Raises
    ------
    ValueError
        If the window is empty, the prize is negative or no winners are requested.
    """
    start_time = ensure_utc(start_time)
    end_time = ensure_utc(end_time)
    if end_time <= start_time:
        raise ValueError("end_time must be after start_time")
    if number_of_winners <= 0:
        raise ValueError("number_of_winners must be positive")
    if prize_pool < 0 or ticket_price <= 0:
        raise ValueError("prize_pool must be >= 0 and ticket_price > 0")
    draw = SurpriseDraw(
        title=title,
        description=description,
        prize_pool=to_money(prize_pool),
        ticket_price=to_money(ticket_price),
        number_of_winners=number_of_winners,
        status="scheduled",
        start_time=start_time,
        end_time=end_time,
    )
    session.add(draw)
    session.flush()
    return draw


def activate_due_surprise_draws(
    session: Session, *, now: Optional[datetime] = None
) -> list[int]:
    """Open scheduled surprise draws whose start time has passed."""
    now = ensure_utc(now) or utcnow()
    due_ids = session.scalars(
        select(SurpriseDraw.id).where(
            SurpriseDraw.status == "scheduled",
            SurpriseDraw.start_time <= now,
        )
    ).all()
    activated: list[int] = []
    for draw_id in due_ids:
        result = session.execute(
            update(SurpriseDraw)
            .where(SurpriseDraw.id == draw_id, SurpriseDraw.status == "scheduled")
            .values(status="active")
        )
        if result.rowcount == 1:
            activated.append(draw_id)
    return activated


def purchase_surprise_ticket(
    session: Session,
    executor: SettlementExecutor,
    rng: RandomnessProvider,
    draw_id: int,
    user_id: int,
    *,
    now: Optional[datetime] = None,
) -> SurpriseDrawTicket:
    """Sell one ticket with a unique six-digit number.

    Raises
    ------
    RoundActionError
        The draw is not open for sales.
    InsufficientFunds
        The wallet cannot cover the ticket price.
    """
    now = ensure_utc(now) or utcnow()
    draw = session.get(SurpriseDraw, draw_id)
    if draw is None or draw.status != "active" or ensure_utc(draw.end_time) <= now:
        raise RoundActionError("Draw not available")

    taken = {
        str(n)
        for n in session.scalars(
            select(SurpriseDrawTicket.ticket_number).where(
                SurpriseDrawTicket.surprise_draw_id == draw_id
            )
        )
    }
    ticket_number = int(
        generate_ticket_number(
            rng, taken, minimum=TICKET_NUMBER_MIN, maximum=TICKET_NUMBER_MAX
        )
    )
    executor.collect_stake(
        user_id,
        draw.ticket_price,
        tx_type="surprise_ticket_purchase",
        description=f"Surprise Draw Ticket #{ticket_number}",
        reference=f"surprise:{draw_id}",
    )
    ticket = SurpriseDrawTicket(
        surprise_draw_id=draw_id,
        user_id=user_id,
        ticket_number=ticket_number,
        is_winner=False,
        prize_amount=Decimal("0"),
        purchased_at=now,
    )
    session.add(ticket)
    session.flush()
    return ticket


def complete_surprise_draw(
    session: Session,
    executor: SettlementExecutor,
    rng: RandomnessProvider,
    draw_id: int,
    *,
    now: Optional[datetime] = None,
    force: bool = False,
) -> list[SurpriseDrawTicket]:
    """Select winners by Fisher-Yates shuffle and split the prize equally.

    Each share is rounded down to cents so the total never exceeds the pool.

    Returns
    -------
    list[SurpriseDrawTicket]
        Winning tickets; empty when no tickets were sold.

    Raises
    ------
    NotDue
        The draw has not ended and ``force`` is ``False``.
    AlreadySettled
        The draw is not active.
    """
    now = ensure_utc(now) or utcnow()
    draw = session.get(SurpriseDraw, draw_id)
    if draw is None:
        raise ValueError(f"Surprise draw {draw_id} does not exist")
    if draw.status != "active":
        raise AlreadySettled(f"Surprise draw {draw_id} is {draw.status}")
    if not force and ensure_utc(draw.end_time) > now:
        raise NotDue(f"Surprise draw {draw_id} ends at {draw.end_time}")

    executor.transition(
        SurpriseDraw,
        draw_id,
        from_statuses=("active",),
        to_status="completed",
        completed_at=now,
    )
    tickets = session.scalars(
        select(SurpriseDrawTicket)
        .where(SurpriseDrawTicket.surprise_draw_id == draw_id)
        .order_by(SurpriseDrawTicket.id)
    ).all()
    if not tickets:
        logger.info(f"Surprise draw {draw_id} completed without tickets")
        return []

    winners = rng.shuffle(list(tickets))[: draw.number_of_winners]
    share = to_cents(to_money(draw.prize_pool) / len(winners))
    for ticket in winners:
        ticket.is_winner = True
        ticket.prize_amount = share
        if share > 0:
            executor.award_round_prize(
                ticket.user_id,
                share,
                tx_type="surprise_draw_win",
                description=f"Surprise Draw Winner - {draw.title}",
                reference=f"surprise:{draw_id}",
            )
    session.flush()
    logger.info(
        f"Surprise draw {draw_id} completed: {len(winners)} winners at {share} each"
    )
    return winners


__all__ = [
    "create_surprise_draw",
    "activate_due_surprise_draws",
    "purchase_surprise_ticket",
    "complete_surprise_draw",
]
