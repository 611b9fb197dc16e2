"""Admin and maintenance entry points composed from the engine's building blocks.

Every function runs inside the caller's transaction; wrap calls in
``with Session.begin()``.
"""

from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.orm import Session

from .db.utils import dt_iso, ensure_utc, utcnow
from .errors import PriceUnavailable
from .models import (
    DRAW_OPEN_STATUSES,
    BinaryTrade,
    Draw,
    DrawWinner,
    Lottery,
    MonthlyTicketBonus,
    Ticket,
    TradeAuditLog,
)
from .prize_draw.engine import DEFAULT_PLATFORM_FEE_RATE, DrawEngine
from .prize_draw.numbers import generate_ticket_number, generate_winning_numbers
from .randomness import RandomnessProvider
from .scheduling.calendar import next_draw_date
from .settlement.executor import (
    DrawSettlementResult,
    SettlementExecutor,
    TradeSettlementResult,
)

if TYPE_CHECKING:
    from .pricing.feed import PriceResolver
    from .prize_draw.tiers import TierRuleRegistry
    from .rounds.seed_phrase import PhraseCipher

DAILY_TICKETS_PER_BONUS = 10
ROUND_KINDS = ("mystery", "try_your_luck", "surprise")


def ensure_scheduled_draws(
    session: Session,
    *,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> list[Draw]:
    """Create the next draw of every active lottery that has none pending.

    A lottery counts as covered when it has a ``scheduled`` or ``active``
    draw dated after ``now``. Lottery types without a calendar rule are
    skipped.

    Returns
    -------
    list[Draw]
        Draws created by this call.
    """
    now = ensure_utc(now) or utcnow()
    created: list[Draw] = []
    lotteries = session.scalars(
        select(Lottery).where(Lottery.is_active.is_(True)).order_by(Lottery.id)
    ).all()
    for lottery in lotteries:
        pending = session.scalar(
            select(func.count(Draw.id)).where(
                Draw.lottery_id == lottery.id,
                Draw.status.in_(DRAW_OPEN_STATUSES),
                Draw.draw_date > now,
            )
        )
        if pending:
            continue
        draw_date = next_draw_date(lottery.type, now, tz)
        if draw_date is None:
            continue
        draw = Draw(
            draw_date=draw_date,
            lottery=lottery,
            status="scheduled",
            prize_amount=lottery.prize_pool,
        )
        session.add(draw)
        created.append(draw)
    session.flush()
    return created


def force_settle_draw(
    session: Session,
    draw_id: int,
    *,
    rng: Optional[RandomnessProvider] = None,
    registry: Optional["TierRuleRegistry"] = None,
    fee_rate: Decimal = DEFAULT_PLATFORM_FEE_RATE,
    display_winners: bool = True,
    now: Optional[datetime] = None,
) -> DrawSettlementResult:
    """Settle ``draw_id`` immediately, ignoring its scheduled date.

    All other preconditions still apply: a completed draw raises
    :class:`~prizeledger.errors.AlreadySettled` and a cancelled one
    :class:`~prizeledger.errors.DrawCancelled`.
    """
    engine = DrawEngine(
        session,
        rng=rng,
        registry=registry,
        fee_rate=fee_rate,
        display_winners=display_winners,
    )
    return engine.settle(draw_id, now=now, force=True)


def force_settle_trade(
    session: Session,
    trade_id: int,
    exit_price: Optional[Decimal] = None,
    *,
    resolver: Optional["PriceResolver"] = None,
    now: Optional[datetime] = None,
) -> TradeSettlementResult:
    """Settle an expired trade at ``exit_price`` or at the resolved feed price.

    When no price can be resolved the trade takes the error path.

    Raises
    ------
    ValueError
        Neither ``exit_price`` nor ``resolver`` was given.
    """
    now = ensure_utc(now) or utcnow()
    executor = SettlementExecutor(session)
    if exit_price is None:
        if resolver is None:
            raise ValueError("exit_price or resolver is required")
        trade = session.get(BinaryTrade, trade_id)
        if trade is None:
            raise ValueError(f"Trade {trade_id} does not exist")
        try:
            exit_price = resolver.resolve(
                trade.instrument.symbol, trade.expiry_time, now=now
            )
        except PriceUnavailable:
            return executor.fail_trade(trade_id, "price_unavailable", now=now)
    return executor.settle_trade(trade_id, exit_price, now=now)


def force_reveal_clue(
    session: Session,
    cipher: "PhraseCipher",
    round_id: int,
    *,
    now: Optional[datetime] = None,
) -> Optional[int]:
    """Reveal the next mystery word without waiting for its scheduled time."""
    from .rounds.mystery import reveal_next_clue

    return reveal_next_clue(session, cipher, round_id, now=now, force=True)


def force_complete_round(
    session: Session,
    kind: str,
    round_id: int,
    *,
    rng: Optional[RandomnessProvider] = None,
    cipher: Optional["PhraseCipher"] = None,
    now: Optional[datetime] = None,
):
    """Complete a round of ``kind`` before its end time.

    Parameters
    ----------
    kind : str
        One of ``"mystery"``, ``"try_your_luck"`` or ``"surprise"``.
    cipher : Optional[PhraseCipher]
        Required for mystery rounds, whose replacement needs a new phrase.
    """
    from .rounds.mystery import complete_mystery_round
    from .rounds.surprise import complete_surprise_draw
    from .rounds.try_your_luck import complete_try_your_luck_round

    rng = rng or RandomnessProvider()
    executor = SettlementExecutor(session)
    if kind == "mystery":
        if cipher is None:
            raise ValueError("cipher is required to complete a mystery round")
        return complete_mystery_round(
            session, executor, cipher, rng, round_id, now=now, force=True
        )
    if kind == "try_your_luck":
        return complete_try_your_luck_round(
            session, executor, rng, round_id, now=now, force=True
        )
    if kind == "surprise":
        return complete_surprise_draw(session, executor, rng, round_id, now=now, force=True)
    raise ValueError(f"unknown round kind {kind!r}; expected one of {ROUND_KINDS}")


def award_monthly_bonus_tickets(
    session: Session,
    user_id: int,
    monthly_draw_id: int,
    *,
    rng: Optional[RandomnessProvider] = None,
) -> list[Ticket]:
    """Grant one free monthly ticket per 10 daily tickets bought that month.

    The month is that of the monthly draw's date. Tickets already granted for
    the same draw are subtracted, so repeated calls only top up.

    Returns
    -------
    list[Ticket]
        Free tickets created by this call.
    """
    rng = rng or RandomnessProvider()
    monthly_draw = session.get(Draw, monthly_draw_id)
    if monthly_draw is None or monthly_draw.lottery.type != "monthly":
        raise ValueError(f"Draw {monthly_draw_id} is not a monthly draw")
    if monthly_draw.status not in DRAW_OPEN_STATUSES:
        raise ValueError(f"Monthly draw {monthly_draw_id} is already {monthly_draw.status}")

    draw_date = ensure_utc(monthly_draw.draw_date)
    daily_count = session.scalar(
        select(func.count(Ticket.id))
        .join(Draw, Ticket.draw_id == Draw.id)
        .join(Lottery, Draw.lottery_id == Lottery.id)
        .where(
            Ticket.user_id == user_id,
            Ticket.is_free_ticket.is_(False),
            Lottery.type == "daily",
            extract("year", Draw.draw_date) == draw_date.year,
            extract("month", Draw.draw_date) == draw_date.month,
        )
    ) or 0

    bonus = session.scalar(
        select(MonthlyTicketBonus).where(
            MonthlyTicketBonus.user_id == user_id,
            MonthlyTicketBonus.monthly_draw_id == monthly_draw_id,
        )
    )
    already = bonus.bonus_tickets_awarded if bonus is not None else 0
    owed = daily_count // DAILY_TICKETS_PER_BONUS - already
    if owed <= 0:
        return []

    taken = set(
        session.scalars(
            select(Ticket.ticket_number).where(Ticket.draw_id == monthly_draw_id)
        )
    )
    created: list[Ticket] = []
    for _ in range(owed):
        number = generate_ticket_number(rng, taken)
        taken.add(number)
        ticket = Ticket(
            draw_id=monthly_draw_id,
            user_id=user_id,
            numbers=generate_winning_numbers(rng),
            ticket_number=number,
            is_free_ticket=True,
        )
        session.add(ticket)
        created.append(ticket)

    if bonus is None:
        bonus = MonthlyTicketBonus(
            user_id=user_id,
            monthly_draw_id=monthly_draw_id,
            daily_tickets_count=daily_count,
            bonus_tickets_awarded=owed,
        )
        session.add(bonus)
    else:
        bonus.daily_tickets_count = daily_count
        bonus.bonus_tickets_awarded = already + owed
    session.flush()
    return created


def draw_results(
    session: Session, draw_id: int, *, include_display: bool = True
) -> dict:
    """Return a settled draw's winners as plain data for display layers.

    Display-only rows keep their ``display_only`` flag so callers can tell
    them apart; pass ``include_display=False`` to omit them.
    """
    draw = session.get(Draw, draw_id)
    if draw is None:
        raise ValueError(f"Draw {draw_id} does not exist")
    stmt = select(DrawWinner).where(DrawWinner.draw_id == draw_id)
    if not include_display:
        stmt = stmt.where(DrawWinner.display_only.is_(False))
    winners = session.scalars(stmt.order_by(DrawWinner.id)).all()

    rows = []
    for winner in winners:
        if winner.display_only:
            label = winner.display_label
        else:
            ticket = session.get(Ticket, winner.ticket_id)
            label = f"Ticket #{ticket.ticket_number}" if ticket is not None else None
        rows.append(
            {
                "winner_type": winner.winner_type,
                "prize_amount": str(winner.prize_amount),
                "prize_description": winner.prize_description,
                "display_only": winner.display_only,
                "label": label,
                "user_id": winner.user_id,
            }
        )
    return {
        "draw_id": draw.id,
        "lottery_type": draw.lottery.type,
        "status": draw.status,
        "draw_date": dt_iso(draw.draw_date),
        "executed_at": dt_iso(draw.executed_at),
        "winning_numbers": list(draw.winning_numbers or []),
        "tickets_sold": draw.tickets_sold,
        "distribution_pool": str(draw.distribution_pool),
        "winners": rows,
    }


def trade_result(session: Session, trade_id: int) -> Optional[TradeSettlementResult]:
    """Return the settlement outcome of a trade, or ``None`` while it is active."""
    trade = session.get(BinaryTrade, trade_id)
    if trade is None:
        raise ValueError(f"Trade {trade_id} does not exist")
    if trade.status == "active":
        return None
    reason = None
    if trade.status == "error":
        audit = session.scalar(
            select(TradeAuditLog)
            .where(TradeAuditLog.trade_id == trade_id, TradeAuditLog.action == "trade_error")
            .order_by(TradeAuditLog.id.desc())
            .limit(1)
        )
        if audit is not None and audit.details:
            reason = audit.details.get("reason")
    return TradeSettlementResult(
        trade_id=trade.id,
        status=trade.status,
        exit_price=trade.exit_price,
        payout=trade.payout_amount,
        settled_at=ensure_utc(trade.settled_at),
        reason=reason,
    )
