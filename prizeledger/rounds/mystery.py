"""Mystery-search rounds: register, guess the phrase, staged word reveals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..db.utils import ensure_utc, to_money, utcnow
from ..errors import AlreadySettled, NotDue, RoundActionError
from ..models import (
    MysterySearchRegistration,
    MysterySearchRound,
    MysterySearchSubmission,
)
from ..randomness import RandomnessProvider
from ..settlement.executor import SettlementExecutor
from .seed_phrase import PhraseCipher, generate_phrase, normalize_phrase

logger = logging.getLogger(__name__)

ROUND_DURATION = timedelta(days=3)
REGISTRATION_WINDOW = timedelta(hours=24)
CLUE_INTERVAL = timedelta(hours=4)
GUESS_COOLDOWN = timedelta(seconds=60)
REGISTRATION_FEE = Decimal("1.00")
INITIAL_REVEALED_POSITIONS = (1, 10)
REVEAL_ORDER = (4, 12, 7, 3, 9, 11, 2, 8, 5, 6)
OPEN_STATUSES = ("registration", "active")


@dataclass
class GuessResult:
    correct: bool
    cooldown_until: Optional[datetime] = None
    prize: Decimal = Decimal("0")


def create_mystery_round(
    session: Session,
    cipher: PhraseCipher,
    rng: RandomnessProvider,
    *,
    now: Optional[datetime] = None,
    carried_pool: Decimal = Decimal("0"),
    title: str = "Mystery Search",
) -> MysterySearchRound:
    """Create a round with a fresh encrypted phrase.

    Words 1 and 10 are public from the start; the first staged reveal is
    due when registration closes, 24 hours after start.
    """
    now = ensure_utc(now) or utcnow()
    phrase = generate_phrase(rng)
    words = phrase.split()
    round_ = MysterySearchRound(
        title=title,
        encrypted_phrase=cipher.encrypt(phrase),
        revealed_words=[
            {"position": pos, "word": words[pos - 1]} for pos in INITIAL_REVEALED_POSITIONS
        ],
        reveals_done=0,
        status="registration",
        registration_fee=REGISTRATION_FEE,
        prize_pool=to_money(carried_pool),
        start_time=now,
        registration_ends_at=now + REGISTRATION_WINDOW,
        end_time=now + ROUND_DURATION,
        next_clue_reveal_at=now + REGISTRATION_WINDOW,
    )
    session.add(round_)
    session.flush()
    logger.info(f"Mystery round {round_.id} created with pool {round_.prize_pool}")
    return round_


def _current_pool(session: Session, round_id: int) -> Decimal:
    # Read from the row; registrations increment the pool with SQL expressions.
    return to_money(
        session.scalar(
            select(MysterySearchRound.prize_pool).where(MysterySearchRound.id == round_id)
        )
    )


def current_mystery_round(session: Session) -> Optional[MysterySearchRound]:
    return session.scalar(
        select(MysterySearchRound)
        .where(MysterySearchRound.status.in_(OPEN_STATUSES))
        .order_by(MysterySearchRound.id.desc())
        .limit(1)
    )


def register_for_mystery(
    session: Session,
    executor: SettlementExecutor,
    user_id: int,
    *,
    now: Optional[datetime] = None,
) -> MysterySearchRegistration:
    """Register ``user_id`` for the round in its registration window.

    The fee is debited from the wallet and added to the round's prize pool.

    Raises
    ------
    RoundActionError
        No round is open for registration or the user already registered.
    InsufficientFunds
        The wallet cannot cover the fee.
    """
    now = ensure_utc(now) or utcnow()
    round_ = session.scalar(
        select(MysterySearchRound)
        .where(
            MysterySearchRound.status == "registration",
            MysterySearchRound.registration_ends_at > now,
        )
        .order_by(MysterySearchRound.id.desc())
        .limit(1)
    )
    if round_ is None:
        raise RoundActionError("No active registration period")
    existing = session.scalar(
        select(MysterySearchRegistration).where(
            MysterySearchRegistration.round_id == round_.id,
            MysterySearchRegistration.user_id == user_id,
        )
    )
    if existing is not None:
        raise RoundActionError("Already registered for this round")

    fee = round_.registration_fee
    executor.collect_stake(
        user_id,
        fee,
        tx_type="mystery_search_registration",
        description="Mystery Search Game Registration",
        reference=f"mystery:{round_.id}",
    )
    session.execute(
        update(MysterySearchRound)
        .where(MysterySearchRound.id == round_.id)
        .values(prize_pool=MysterySearchRound.prize_pool + fee)
    )
    registration = MysterySearchRegistration(
        round_id=round_.id, user_id=user_id, fee_paid=fee, registered_at=now
    )
    session.add(registration)
    session.flush()
    return registration


def submit_guess(
    session: Session,
    executor: SettlementExecutor,
    cipher: PhraseCipher,
    round_id: int,
    user_id: int,
    guess: str,
    *,
    now: Optional[datetime] = None,
) -> GuessResult:
    """Check a guess; a correct one completes the round and pays its pool.

    Comparison ignores case and extra whitespace. A wrong guess starts a
    60 second cooldown for that user.

    Raises
    ------
    RoundActionError
        Not registered, still cooling down, or the round is not accepting
        guesses.
    AlreadySettled
        Another guess won the round first.
    """
    now = ensure_utc(now) or utcnow()
    registration = session.scalar(
        select(MysterySearchRegistration)
        .where(
            MysterySearchRegistration.round_id == round_id,
            MysterySearchRegistration.user_id == user_id,
        )
        .with_for_update()
    )
    if registration is None:
        raise RoundActionError("Not registered for this round")
    if registration.last_wrong_guess_at is not None:
        cooldown_until = ensure_utc(registration.last_wrong_guess_at) + GUESS_COOLDOWN
        if cooldown_until > now:
            raise RoundActionError(f"Still in cooldown period until {cooldown_until}")

    round_ = session.get(MysterySearchRound, round_id)
    if round_ is None or round_.status != "active" or ensure_utc(round_.end_time) <= now:
        raise RoundActionError("Round not active")

    correct = normalize_phrase(guess) == normalize_phrase(
        cipher.decrypt(round_.encrypted_phrase)
    )
    session.add(
        MysterySearchSubmission(
            round_id=round_id, user_id=user_id, is_correct=correct, submitted_at=now
        )
    )

    if not correct:
        registration.last_wrong_guess_at = now
        session.flush()
        return GuessResult(correct=False, cooldown_until=now + GUESS_COOLDOWN)

    executor.transition(
        MysterySearchRound,
        round_id,
        from_statuses=("active",),
        to_status="completed",
        winner_user_id=user_id,
        completed_at=now,
        next_clue_reveal_at=None,
    )
    prize = _current_pool(session, round_id)
    if prize > 0:
        executor.award_round_prize(
            user_id,
            prize,
            tx_type="mystery_search_win",
            description="Mystery Search Game Winner",
            reference=f"mystery:{round_id}",
        )
    session.flush()
    logger.info(f"Mystery round {round_id} won by user {user_id}, prize {prize}")
    return GuessResult(correct=True, prize=prize)


def activate_due_mystery_rounds(session: Session, *, now: Optional[datetime] = None) -> list[int]:
    """Close registration of rounds whose window has passed."""
    now = ensure_utc(now) or utcnow()
    due_ids = session.scalars(
        select(MysterySearchRound.id).where(
            MysterySearchRound.status == "registration",
            MysterySearchRound.registration_ends_at <= now,
        )
    ).all()
    activated: list[int] = []
    for round_id in due_ids:
        result = session.execute(
            update(MysterySearchRound)
            .where(
                MysterySearchRound.id == round_id,
                MysterySearchRound.status == "registration",
            )
            .values(status="active")
        )
        if result.rowcount == 1:
            activated.append(round_id)
    return activated


def reveal_next_clue(
    session: Session,
    cipher: PhraseCipher,
    round_id: int,
    *,
    now: Optional[datetime] = None,
    force: bool = False,
) -> Optional[int]:
    """Publish the next word in the staged reveal order.

    Returns
    -------
    Optional[int]
        Position revealed, or ``None`` when every staged word is public.

    Raises
    ------
    RoundActionError
        The round is not active.
    NotDue
        The next reveal time has not passed and ``force`` is ``False``.
    AlreadySettled
        A concurrent reveal published the same word first.
    """
    now = ensure_utc(now) or utcnow()
    round_ = session.get(MysterySearchRound, round_id)
    if round_ is None or round_.status != "active":
        raise RoundActionError(f"Mystery round {round_id} is not active")
    done = round_.reveals_done
    if done >= len(REVEAL_ORDER):
        return None
    due_at = ensure_utc(round_.next_clue_reveal_at)
    if not force and due_at is not None and due_at > now:
        raise NotDue(f"Next clue of round {round_id} is due at {due_at}")

    position = REVEAL_ORDER[done]
    word = cipher.decrypt(round_.encrypted_phrase).split()[position - 1]
    revealed = list(round_.revealed_words or []) + [{"position": position, "word": word}]
    next_at = now + CLUE_INTERVAL if done + 1 < len(REVEAL_ORDER) else None

    result = session.execute(
        update(MysterySearchRound)
        .where(
            MysterySearchRound.id == round_id,
            MysterySearchRound.reveals_done == done,
        )
        .values(
            revealed_words=revealed,
            reveals_done=done + 1,
            next_clue_reveal_at=next_at,
        )
    )
    if result.rowcount != 1:
        raise AlreadySettled(f"Clue {done + 1} of round {round_id} was already revealed")
    logger.info(f"Mystery round {round_id}: revealed word {position}")
    return position


def complete_mystery_round(
    session: Session,
    executor: SettlementExecutor,
    cipher: PhraseCipher,
    rng: RandomnessProvider,
    round_id: int,
    *,
    now: Optional[datetime] = None,
    force: bool = False,
) -> Optional[MysterySearchRound]:
    """Close an unsolved round and roll its pool into a replacement round.

    Returns
    -------
    Optional[MysterySearchRound]
        The replacement round.

    Raises
    ------
    NotDue
        The round has not ended and ``force`` is ``False``.
    AlreadySettled
        The round is already completed or cancelled.
    """
    now = ensure_utc(now) or utcnow()
    round_ = session.get(MysterySearchRound, round_id)
    if round_ is None:
        raise ValueError(f"Mystery round {round_id} does not exist")
    if round_.status not in OPEN_STATUSES:
        raise AlreadySettled(f"Mystery round {round_id} is already {round_.status}")
    if not force and ensure_utc(round_.end_time) > now:
        raise NotDue(f"Mystery round {round_id} ends at {round_.end_time}")

    executor.transition(
        MysterySearchRound,
        round_id,
        from_statuses=OPEN_STATUSES,
        to_status="completed",
        completed_at=now,
        next_clue_reveal_at=None,
    )
    pool = _current_pool(session, round_id)
    replacement = create_mystery_round(
        session, cipher, rng, now=now, carried_pool=pool
    )
    round_.rolled_over_to_id = replacement.id
    session.flush()
    logger.info(
        f"Mystery round {round_id} ended unsolved; pool {pool} "
        f"rolled into round {replacement.id}"
    )
    return replacement


__all__ = [
    "GuessResult",
    "REVEAL_ORDER",
    "create_mystery_round",
    "current_mystery_round",
    "register_for_mystery",
    "submit_guess",
    "activate_due_mystery_rounds",
    "reveal_next_clue",
    "complete_mystery_round",
]
