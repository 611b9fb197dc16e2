"""Try-your-luck rounds: locked stakes, one random winner, refunds and carry-forward."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc, to_money, utcnow
from ..errors import AlreadySettled, NotDue, RoundActionError
from ..models import TryYourLuckParticipant, TryYourLuckRound
from ..randomness import RandomnessProvider
from ..settlement.executor import SettlementExecutor

logger = logging.getLogger(__name__)

ROUND_DURATION = timedelta(days=3)
LOCK_AMOUNT = Decimal("1.00")
LOCK_TYPES = ("standard", "until_win")


@dataclass
class RoundCompletion:
    """Summary of a completed try-your-luck round."""

    round_id: int
    winner_user_id: Optional[int] = None
    prize: Decimal = Decimal("0")
    refunded_user_ids: list[int] = field(default_factory=list)
    carried_user_ids: list[int] = field(default_factory=list)
    replacement_id: Optional[int] = None


def create_try_your_luck_round(
    session: Session,
    *,
    now: Optional[datetime] = None,
    lock_amount: Decimal = LOCK_AMOUNT,
) -> TryYourLuckRound:
    now = ensure_utc(now) or utcnow()
    round_ = TryYourLuckRound(
        status="active",
        lock_amount=lock_amount,
        prize_pool=Decimal("0"),
        start_time=now,
        end_time=now + ROUND_DURATION,
    )
    session.add(round_)
    session.flush()
    logger.info(f"Try-your-luck round {round_.id} opened until {round_.end_time}")
    return round_


def current_try_your_luck_round(
    session: Session, *, now: Optional[datetime] = None
) -> Optional[TryYourLuckRound]:
    now = ensure_utc(now) or utcnow()
    return session.scalar(
        select(TryYourLuckRound)
        .where(TryYourLuckRound.status == "active", TryYourLuckRound.end_time > now)
        .order_by(TryYourLuckRound.id.desc())
        .limit(1)
    )


def join_try_your_luck(
    session: Session,
    executor: SettlementExecutor,
    user_id: int,
    lock_type: str,
    *,
    now: Optional[datetime] = None,
) -> TryYourLuckParticipant:
    """Lock the round's stake from ``user_id``'s wallet.

    Standard stakes are added to the prize pool; ``until_win`` stakes are
    held outside it.

    Raises
    ------
    RoundActionError
        Unknown lock type, no open round, or already participating.
    InsufficientFunds
        The wallet cannot cover the stake.
    """
    if lock_type not in LOCK_TYPES:
        raise RoundActionError(f"Unknown lock type {lock_type!r}")
    now = ensure_utc(now) or utcnow()
    round_ = current_try_your_luck_round(session, now=now)
    if round_ is None:
        raise RoundActionError("No active round")
    existing = session.scalar(
        select(TryYourLuckParticipant).where(
            TryYourLuckParticipant.round_id == round_.id,
            TryYourLuckParticipant.user_id == user_id,
        )
    )
    if existing is not None:
        raise RoundActionError("Already participating in this round")

    amount = round_.lock_amount
    executor.collect_stake(
        user_id,
        amount,
        tx_type="try_your_luck_lock",
        description=f"Try Your Luck - {lock_type} lock",
        reference=f"try_your_luck:{round_.id}",
    )
    if lock_type == "standard":
        session.execute(
            update(TryYourLuckRound)
            .where(TryYourLuckRound.id == round_.id)
            .values(prize_pool=TryYourLuckRound.prize_pool + amount)
        )
    participant = TryYourLuckParticipant(
        round_id=round_.id,
        user_id=user_id,
        lock_type=lock_type,
        amount_locked=amount,
        status="locked",
        is_winner=False,
        prize_amount=Decimal("0"),
        unlock_requested=False,
        locked_at=now,
    )
    session.add(participant)
    session.flush()
    return participant


def request_unlock(session: Session, user_id: int) -> TryYourLuckParticipant:
    """Flag the user's ``until_win`` stake for release at the end of the round.

    Raises
    ------
    RoundActionError
        The user holds no eligible locked stake.
    """
    participant = session.scalar(
        select(TryYourLuckParticipant)
        .join(TryYourLuckRound, TryYourLuckParticipant.round_id == TryYourLuckRound.id)
        .where(
            TryYourLuckParticipant.user_id == user_id,
            TryYourLuckParticipant.lock_type == "until_win",
            TryYourLuckParticipant.status == "locked",
            TryYourLuckParticipant.unlock_requested.is_(False),
            TryYourLuckRound.status == "active",
        )
        .limit(1)
    )
    if participant is None:
        raise RoundActionError("No eligible locked funds found")
    participant.unlock_requested = True
    session.flush()
    return participant


def complete_try_your_luck_round(
    session: Session,
    executor: SettlementExecutor,
    rng: RandomnessProvider,
    round_id: int,
    *,
    now: Optional[datetime] = None,
    force: bool = False,
) -> RoundCompletion:
    """Pick a winner, settle every stake and open the next round.

    Notes
    -----
    All of this happens in the caller's transaction:

    1. The round is moved to ``completed`` with a status compare-and-swap.
    2. One participant, chosen uniformly, receives the prize pool. A winning
       ``until_win`` stake is released as well.
    3. Standard non-winners get their stake back.
    4. ``until_win`` non-winners who asked to unlock get their stake back;
       the rest are carried into the replacement round without moving money.

    Raises
    ------
    NotDue
        The round has not ended and ``force`` is ``False``.
    AlreadySettled
        The round is no longer active.
    """
    now = ensure_utc(now) or utcnow()
    round_ = session.get(TryYourLuckRound, round_id)
    if round_ is None:
        raise ValueError(f"Try-your-luck round {round_id} does not exist")
    if round_.status != "active":
        raise AlreadySettled(f"Try-your-luck round {round_id} is already {round_.status}")
    if not force and ensure_utc(round_.end_time) > now:
        raise NotDue(f"Try-your-luck round {round_id} ends at {round_.end_time}")

    participants = session.scalars(
        select(TryYourLuckParticipant)
        .where(
            TryYourLuckParticipant.round_id == round_id,
            TryYourLuckParticipant.status == "locked",
        )
        .order_by(TryYourLuckParticipant.id)
    ).all()

    winner = rng.choice(participants) if participants else None
    executor.transition(
        TryYourLuckRound,
        round_id,
        from_statuses=("active",),
        to_status="completed",
        completed_at=now,
        winner_user_id=winner.user_id if winner is not None else None,
    )
    prize = to_money(
        session.scalar(
            select(TryYourLuckRound.prize_pool).where(TryYourLuckRound.id == round_id)
        )
    )
    reference = f"try_your_luck:{round_id}"
    replacement = create_try_your_luck_round(
        session, now=now, lock_amount=round_.lock_amount
    )
    completion = RoundCompletion(round_id=round_id, replacement_id=replacement.id)

    if winner is not None:
        winner.is_winner = True
        winner.status = "won"
        winner.prize_amount = prize
        winner.unlocked_at = now
        completion.winner_user_id = winner.user_id
        completion.prize = prize
        if prize > 0:
            executor.award_round_prize(
                winner.user_id,
                prize,
                tx_type="try_your_luck_win",
                description="Try Your Luck Winner",
                reference=reference,
            )
        if winner.lock_type == "until_win":
            executor.refund_stake(
                winner.user_id,
                winner.amount_locked,
                tx_type="try_your_luck_unlock",
                description="Try Your Luck - until-win lock released",
                reference=reference,
            )

    for participant in participants:
        if participant is winner:
            continue
        if participant.lock_type == "standard" or participant.unlock_requested:
            standard = participant.lock_type == "standard"
            executor.refund_stake(
                participant.user_id,
                participant.amount_locked,
                tx_type="try_your_luck_refund" if standard else "try_your_luck_unlock",
                description=(
                    "Try Your Luck - Standard unlock"
                    if standard
                    else "Try Your Luck - until-win lock released"
                ),
                reference=reference,
            )
            participant.status = "refunded" if standard else "released"
            participant.unlocked_at = now
            completion.refunded_user_ids.append(participant.user_id)
        else:
            participant.status = "carried"
            session.add(
                TryYourLuckParticipant(
                    round_id=replacement.id,
                    user_id=participant.user_id,
                    lock_type="until_win",
                    amount_locked=participant.amount_locked,
                    status="locked",
                    is_winner=False,
                    prize_amount=Decimal("0"),
                    unlock_requested=False,
                    carried_from_id=participant.id,
                    locked_at=now,
                )
            )
            completion.carried_user_ids.append(participant.user_id)

    session.flush()
    logger.info(
        f"Try-your-luck round {round_id} completed: winner {completion.winner_user_id}, "
        f"prize {prize}, {len(completion.refunded_user_ids)} refunded, "
        f"{len(completion.carried_user_ids)} carried into round {replacement.id}"
    )
    return completion


__all__ = [
    "RoundCompletion",
    "LOCK_TYPES",
    "create_try_your_luck_round",
    "current_try_your_luck_round",
    "join_try_your_luck",
    "request_unlock",
    "complete_try_your_luck_round",
]
