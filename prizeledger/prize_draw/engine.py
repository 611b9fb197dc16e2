"""Draw engine: load a due draw, allocate its prizes and hand off to the executor."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc, to_money, utcnow
from ..errors import AlreadySettled, DrawCancelled, NotDue
from ..models import Draw, Ticket
from ..randomness import RandomnessProvider
from ..settlement.executor import DrawSettlementResult, SettlementExecutor
from .allocator import Participant, allocate, allocate_exact_match
from .numbers import generate_winning_numbers
from .tiers import DEFAULT_TIER_REGISTRY, TierRuleRegistry

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_FEE_RATE = Decimal("0.30")


def split_pool(total: Decimal, fee_rate: Decimal) -> tuple[Decimal, Decimal]:
    """Split a gross pool into ``(platform_fees, distribution_pool)``."""
    total = to_money(total)
    fees = to_money(total * fee_rate)
    return fees, total - fees


class DrawEngine:
    """Settle lottery draws with tier rules or the exact-match fallback."""

    def __init__(
        self,
        session: Session,
        *,
        rng: Optional[RandomnessProvider] = None,
        registry: Optional[TierRuleRegistry] = None,
        fee_rate: Decimal = DEFAULT_PLATFORM_FEE_RATE,
        display_winners: bool = True,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Session with an open transaction; one draw is settled per
            transaction.
        rng : Optional[RandomnessProvider], default: None
            Secure random source. A new provider is created when omitted.
        registry : Optional[TierRuleRegistry], default: None
            Tier rules keyed by lottery type. Defaults to the daily, weekly
            and monthly rules.
        fee_rate : Decimal, default: Decimal("0.30")
            Share of the gross pool kept as platform fees.
        display_winners : bool, default: True
            Whether display-only winners are written for tiered draws.
        """
        self._session = session
        self._rng = rng or RandomnessProvider()
        self._registry = registry or DEFAULT_TIER_REGISTRY
        self._fee_rate = fee_rate
        self._display_winners = display_winners
        self._executor = SettlementExecutor(session)

    def settle(
        self,
        draw_id: int,
        *,
        now: Optional[datetime] = None,
        force: bool = False,
    ) -> DrawSettlementResult:
        """Settle ``draw_id``.

        Parameters
        ----------
        draw_id : int
            Draw to settle.
        now : Optional[datetime], default: None
            Current time; defaults to UTC now.
        force : bool, default: False
            Settle even when ``draw_date`` is still in the future.

        Returns
        -------
        DrawSettlementResult
            Result produced by :meth:`SettlementExecutor.settle_draw`.

        Raises
        ------
        AlreadySettled, DrawCancelled, NotDue
            Precondition failures; nothing is written.
        TierConfigError
            The draw type's rules are inconsistent.
        RandomSourceFailure
            The secure random source failed.
        """
        now = ensure_utc(now) or utcnow()
        draw = self._session.get(Draw, draw_id)
        if draw is None:
            raise ValueError(f"Draw {draw_id} does not exist")
        if draw.status == "cancelled":
            raise DrawCancelled(f"Draw {draw_id} was cancelled")
        if draw.status == "completed":
            raise AlreadySettled(f"Draw {draw_id} is already completed")
        if not force and ensure_utc(draw.draw_date) > now:
            raise NotDue(f"Draw {draw_id} is scheduled for {draw.draw_date}")

        tickets = self._session.scalars(
            select(Ticket).where(Ticket.draw_id == draw_id).order_by(Ticket.id)
        ).all()
        participants = [
            Participant(ticket_id=t.id, user_id=t.user_id, numbers=tuple(t.numbers))
            for t in tickets
        ]
        fees, pool = split_pool(draw.total_prize_pool, self._fee_rate)
        lottery_type = draw.lottery.type

        if self._registry.has(lottery_type):
            rules = self._registry.get(lottery_type)
            allocations = allocate(
                pool,
                participants,
                rules,
                self._rng,
                include_display=self._display_winners,
            )
            winning_numbers = generate_winning_numbers(self._rng)
        else:
            prize = self._exact_match_prize(draw, pool)
            winning_numbers, allocations = allocate_exact_match(
                prize, participants, self._rng
            )

        logger.info(
            f"Settling {lottery_type} draw {draw_id}: pool {pool}, fees {fees}, "
            f"{len(participants)} tickets"
        )
        return self._executor.settle_draw(
            draw_id,
            allocations,
            winning_numbers=winning_numbers,
            platform_fees=fees,
            distribution_pool=pool,
            tickets_sold=len(participants),
            now=now,
        )

    @staticmethod
    def _exact_match_prize(draw: Draw, pool: Decimal) -> Decimal:
        # Headline prize, capped by what the draw actually collected.
        headline = draw.prize_amount or draw.lottery.prize_pool or pool
        return min(to_money(headline), pool)


__all__ = ["DrawEngine", "split_pool", "DEFAULT_PLATFORM_FEE_RATE"]
