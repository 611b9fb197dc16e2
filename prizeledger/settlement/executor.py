"""Settlement executor: the only writer of money-moving settlement state.

Every public method runs inside the caller's transaction. Status changes use
a conditional ``UPDATE ... WHERE status IN (...)`` whose row count is checked
before any other write, so two overlapping triggers for the same draw or
trade cannot both pay out. Callers wrap each settlement in
``with Session.begin()`` so any exception rolls the whole unit back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Type

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc, to_money, utcnow
from ..errors import (
    AlreadySettled,
    DrawCancelled,
    NotDue,
    StoreWriteFailure,
    TierConfigError,
)
from ..models import (
    DRAW_OPEN_STATUSES,
    BinaryTrade,
    Draw,
    DrawWinner,
    Ticket,
    TradeAuditLog,
)
from ..models.base import Base
from ..prize_draw.allocator import WinnerAllocation, real_total
from .ledger import credit_wallet, debit_wallet

logger = logging.getLogger(__name__)


@dataclass
class DrawSettlementResult:
    """Outcome of a settled draw, as consumed by display layers."""

    draw_id: int
    winning_numbers: list[int]
    winners: list[DrawWinner] = field(default_factory=list)
    total_paid: Decimal = Decimal("0")
    executed_at: Optional[datetime] = None

    @property
    def real_winners(self) -> list[DrawWinner]:
        return [w for w in self.winners if not w.display_only]


@dataclass
class TradeSettlementResult:
    """Outcome of a settled (or failed) binary trade."""

    trade_id: int
    status: str
    exit_price: Optional[Decimal]
    payout: Decimal
    settled_at: datetime
    reason: Optional[str] = None


def decide_trade(direction: str, entry_price: Decimal, exit_price: Decimal) -> str:
    """Return ``"won"`` or ``"lost"``; an unchanged price is a loss."""
    if direction == "up":
        return "won" if exit_price > entry_price else "lost"
    if direction == "down":
        return "won" if exit_price < entry_price else "lost"
    raise ValueError(f"unknown trade direction {direction!r}")


class SettlementExecutor:
    """Apply settlement decisions to the ledger store."""

    def __init__(self, session: Session) -> None:
        """Create an executor bound to ``session``.

        Parameters
        ----------
        session : Session
            Session with an open transaction. The executor flushes but never
            commits; the caller owns the transaction boundary.
        """
        self._session = session

    # ------------------------------------------------------------------
    # Generic helpers
    # ------------------------------------------------------------------
    def transition(
        self,
        model: Type[Base],
        entity_id: int,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        **values,
    ) -> None:
        """Compare-and-swap ``model.status`` from ``from_statuses`` to ``to_status``.

        Raises
        ------
        AlreadySettled
            If the row is missing or not in one of ``from_statuses``.
        """
        stmt = (
            update(model)
            .where(model.id == entity_id, model.status.in_(tuple(from_statuses)))
            .values(status=to_status, **values)
        )
        result = self._session.execute(stmt)
        if result.rowcount != 1:
            raise AlreadySettled(
                f"{model.__name__} {entity_id} is no longer in {tuple(from_statuses)}"
            )

    def collect_stake(
        self,
        user_id: int,
        amount: Decimal,
        *,
        tx_type: str,
        description: str,
        reference: str,
    ):
        return debit_wallet(
            self._session,
            user_id,
            amount,
            tx_type=tx_type,
            description=description,
            reference=reference,
        )

    def award_round_prize(
        self,
        user_id: int,
        amount: Decimal,
        *,
        tx_type: str,
        description: str,
        reference: str,
    ):
        """Credit a round prize; counts towards the wallet's lifetime winnings."""
        return credit_wallet(
            self._session,
            user_id,
            amount,
            tx_type=tx_type,
            description=description,
            reference=reference,
            count_as_winnings=True,
        )

    def refund_stake(
        self,
        user_id: int,
        amount: Decimal,
        *,
        tx_type: str,
        description: str,
        reference: str,
    ):
        """Return a previously collected stake to the wallet."""
        return credit_wallet(
            self._session,
            user_id,
            amount,
            tx_type=tx_type,
            description=description,
            reference=reference,
        )

    # ------------------------------------------------------------------
    # Lottery draws
    # ------------------------------------------------------------------
    def settle_draw(
        self,
        draw_id: int,
        allocations: Sequence[WinnerAllocation],
        *,
        winning_numbers: Sequence[int],
        platform_fees: Decimal,
        distribution_pool: Decimal,
        tickets_sold: int,
        now: Optional[datetime] = None,
    ) -> DrawSettlementResult:
        """Commit the winners of a draw and mark it completed.

        Parameters
        ----------
        draw_id : int
            Draw to settle.
        allocations : Sequence[WinnerAllocation]
            Allocator output, display-only rows included.
        winning_numbers : Sequence[int]
            Display winning numbers stored on the draw.
        platform_fees, distribution_pool : Decimal
            Fee split recorded on the draw. Real allocations must not exceed
            ``distribution_pool``.
        tickets_sold : int
            Ticket count recorded on the draw.
        now : Optional[datetime], default: None
            Settlement timestamp; defaults to the current UTC time.

        Returns
        -------
        DrawSettlementResult
            Winners written and the total amount credited.

        Raises
        ------
        AlreadySettled
            The draw is not ``scheduled``/``active``; nothing is written.
        DrawCancelled
            The draw was cancelled; nothing is written.
        TierConfigError
            The real allocations add up to more than ``distribution_pool``.
        StoreWriteFailure
            A database write failed; the caller must roll back.
        """
        now = ensure_utc(now) or utcnow()
        distribution_pool = to_money(distribution_pool)
        total = real_total(allocations)
        if total > distribution_pool:
            raise TierConfigError(
                f"draw {draw_id}: allocations {total} exceed pool {distribution_pool}"
            )

        try:
            result = self._session.execute(
                update(Draw)
                .where(Draw.id == draw_id, Draw.status.in_(DRAW_OPEN_STATUSES))
                .values(
                    status="completed",
                    executed_at=now,
                    winning_numbers=list(winning_numbers),
                    platform_fees=to_money(platform_fees),
                    distribution_pool=distribution_pool,
                    tickets_sold=tickets_sold,
                )
            )
            if result.rowcount != 1:
                self._raise_closed_draw(draw_id)

            winners: list[DrawWinner] = []
            paid = Decimal("0")
            for allocation in allocations:
                winner = self._write_winner(draw_id, allocation, now)
                winners.append(winner)
                if not allocation.display_only and allocation.amount > 0:
                    paid += to_money(allocation.amount)
            self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreWriteFailure(f"failed to settle draw {draw_id}") from exc

        logger.info(
            f"Draw {draw_id} settled: {len(winners)} winners, {paid} paid, "
            f"numbers {list(winning_numbers)}"
        )
        return DrawSettlementResult(
            draw_id=draw_id,
            winning_numbers=list(winning_numbers),
            winners=winners,
            total_paid=paid,
            executed_at=now,
        )

    def _raise_closed_draw(self, draw_id: int) -> None:
        status = self._session.scalar(select(Draw.status).where(Draw.id == draw_id))
        if status is None:
            raise ValueError(f"Draw {draw_id} does not exist")
        if status == "cancelled":
            raise DrawCancelled(f"Draw {draw_id} was cancelled")
        raise AlreadySettled(f"Draw {draw_id} is already {status}")

    def _write_winner(
        self, draw_id: int, allocation: WinnerAllocation, now: datetime
    ) -> DrawWinner:
        winner = DrawWinner(
            draw_id=draw_id,
            ticket_id=allocation.ticket_id,
            user_id=allocation.user_id,
            display_only=allocation.display_only,
            display_label=allocation.display_label,
            winner_type=allocation.winner_type,
            prize_amount=to_money(allocation.amount),
            prize_description=allocation.description,
            is_distributed=False,
        )
        self._session.add(winner)

        if allocation.display_only:
            # Shown alongside real results; no ticket, no money.
            winner.is_distributed = True
            winner.distributed_at = now
            return winner

        ticket = self._session.get(Ticket, allocation.ticket_id)
        if ticket is None or ticket.draw_id != draw_id:
            raise ValueError(
                f"Ticket {allocation.ticket_id} does not belong to draw {draw_id}"
            )
        ticket.is_winner = True
        ticket.prize_amount = to_money(allocation.amount)

        if allocation.amount > 0:
            credit_wallet(
                self._session,
                allocation.user_id,
                allocation.amount,
                tx_type="prize_win",
                description=f"Lottery Prize: {allocation.description}",
                reference=f"draw:{draw_id}",
                count_as_winnings=True,
            )
        winner.is_distributed = True
        winner.distributed_at = now
        return winner

    # ------------------------------------------------------------------
    # Binary trades
    # ------------------------------------------------------------------
    def settle_trade(
        self,
        trade_id: int,
        exit_price: Decimal,
        *,
        now: Optional[datetime] = None,
    ) -> TradeSettlementResult:
        """Settle an expired trade against ``exit_price``.

        Raises
        ------
        AlreadySettled
            The trade is no longer ``active``.
        NotDue
            ``now`` is before the trade's expiry time.
        StoreWriteFailure
            A database write failed; the caller must roll back.
        """
        now = ensure_utc(now) or utcnow()
        trade = self._load_trade(trade_id)
        if trade.status != "active":
            raise AlreadySettled(f"Trade {trade_id} is already {trade.status}")
        if ensure_utc(trade.expiry_time) > now:
            raise NotDue(f"Trade {trade_id} expires at {trade.expiry_time}")

        exit_price = Decimal(str(exit_price))
        status = decide_trade(trade.direction, trade.entry_price, exit_price)
        multiplier = trade.instrument.payout_multiplier
        payout = to_money(trade.stake_amount * multiplier) if status == "won" else Decimal("0")

        try:
            self.transition(
                BinaryTrade,
                trade_id,
                from_statuses=("active",),
                to_status=status,
                exit_price=exit_price,
                payout_amount=payout,
                settled_at=now,
            )
            if status == "won":
                credit_wallet(
                    self._session,
                    trade.user_id,
                    payout,
                    tx_type="binary_trade_win",
                    description=(
                        f"Binary trade win: {trade.instrument.symbol} - "
                        f"{trade.direction.upper()}"
                    ),
                    reference=f"trade:{trade_id}",
                    count_as_winnings=True,
                )
            self._session.add(
                TradeAuditLog(
                    trade_id=trade_id,
                    user_id=trade.user_id,
                    action="trade_settled",
                    message=(
                        f"Trade settled: {status} - Entry: ${trade.entry_price}, "
                        f"Exit: ${exit_price}, Payout: ${payout}"
                    ),
                    details={
                        "status": status,
                        "direction": trade.direction,
                        "entry_price": str(trade.entry_price),
                        "exit_price": str(exit_price),
                        "stake": str(trade.stake_amount),
                        "payout_multiplier": str(multiplier),
                        "payout": str(payout),
                    },
                    created_at=now,
                )
            )
            self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreWriteFailure(f"failed to settle trade {trade_id}") from exc

        logger.info(f"Trade {trade_id} settled as {status}, payout {payout}")
        return TradeSettlementResult(
            trade_id=trade_id,
            status=status,
            exit_price=exit_price,
            payout=payout,
            settled_at=now,
        )

    def fail_trade(
        self,
        trade_id: int,
        reason: str,
        *,
        now: Optional[datetime] = None,
    ) -> TradeSettlementResult:
        """Move an active trade to the terminal ``error`` state without payout.

        Exactly one audit row records ``reason``.

        Raises
        ------
        AlreadySettled
            The trade is no longer ``active``.
        NotDue
            ``now`` is before the trade's expiry time.
        """
        now = ensure_utc(now) or utcnow()
        trade = self._load_trade(trade_id)
        if trade.status != "active":
            raise AlreadySettled(f"Trade {trade_id} is already {trade.status}")
        if ensure_utc(trade.expiry_time) > now:
            raise NotDue(f"Trade {trade_id} expires at {trade.expiry_time}")
        try:
            self.transition(
                BinaryTrade,
                trade_id,
                from_statuses=("active",),
                to_status="error",
                payout_amount=Decimal("0"),
                settled_at=now,
            )
            self._session.add(
                TradeAuditLog(
                    trade_id=trade_id,
                    user_id=trade.user_id,
                    action="trade_error",
                    message=f"Trade settlement failed: {reason}",
                    details={
                        "reason": reason,
                        "entry_price": str(trade.entry_price),
                        "expiry_time": ensure_utc(trade.expiry_time).isoformat(),
                    },
                    created_at=now,
                )
            )
            self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreWriteFailure(f"failed to mark trade {trade_id} as error") from exc

        logger.warning(f"Trade {trade_id} moved to error: {reason}")
        return TradeSettlementResult(
            trade_id=trade_id,
            status="error",
            exit_price=None,
            payout=Decimal("0"),
            settled_at=now,
            reason=reason,
        )

    def _load_trade(self, trade_id: int) -> BinaryTrade:
        trade = self._session.scalar(
            select(BinaryTrade).where(BinaryTrade.id == trade_id).with_for_update()
        )
        if trade is None:
            raise ValueError(f"Trade {trade_id} does not exist")
        return trade


__all__ = [
    "SettlementExecutor",
    "DrawSettlementResult",
    "TradeSettlementResult",
    "decide_trade",
]
