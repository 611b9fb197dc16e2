"""Pure prize allocation: pool + participants + rules -> winner allocations.

Nothing in this module touches the database; the settlement executor turns
the returned :class:`WinnerAllocation` objects into ledger writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Optional, Sequence

from ..db.utils import to_cents, to_money
from ..randomness import RandomnessProvider
from .numbers import display_ticket_label, generate_winning_numbers, normalize_numbers
from .tiers import DrawRules


@dataclass(frozen=True)
class Participant:
    """An eligible ticket and its owner."""

    ticket_id: int
    user_id: int
    numbers: tuple[int, ...] = ()


@dataclass(frozen=True)
class WinnerAllocation:
    """One winner produced by the allocator.

    Attributes
    ----------
    winner_type : str
        Prize tier tag.
    amount : Decimal
        Prize amount. For display-only rows this is the advertised amount
        and no money moves.
    description : str
        Prize description.
    ticket_id, user_id : Optional[int]
        Winning ticket and owner; both ``None`` for display-only rows.
    display_only : bool
        Marks synthetic marketing winners.
    display_label : Optional[str]
        Synthetic ticket label shown for display-only rows.
    """

    winner_type: str
    amount: Decimal
    description: str
    ticket_id: Optional[int] = None
    user_id: Optional[int] = None
    display_only: bool = False
    display_label: Optional[str] = None


class _SelectionPool:
    """Selects participant indexes without replacement across all tiers of a draw.

    ``selected`` is the explicit already-selected set; ``_remaining`` holds
    the indexes still eligible so each pick is O(1).
    """

    def __init__(self, size: int, rng: RandomnessProvider) -> None:
        self._rng = rng
        self._remaining = list(range(size))
        self.selected: set[int] = set()

    @property
    def available(self) -> int:
        return len(self._remaining)

    def draw(self, count: int) -> list[int]:
        picks: list[int] = []
        for _ in range(min(count, len(self._remaining))):
            j = self._rng.index(len(self._remaining))
            self._remaining[j], self._remaining[-1] = (
                self._remaining[-1],
                self._remaining[j],
            )
            idx = self._remaining.pop()
            self.selected.add(idx)
            picks.append(idx)
        return picks


def allocate(
    pool: Decimal,
    participants: Sequence[Participant],
    rules: DrawRules,
    rng: RandomnessProvider,
    *,
    include_display: bool = True,
) -> list[WinnerAllocation]:
    """Allocate prizes of a tiered draw.

    Parameters
    ----------
    pool : Decimal
        Distributable pool (after platform fees).
    participants : Sequence[Participant]
        Eligible tickets. Each ticket can win at most once per draw.
    rules : DrawRules
        Prize structure of the draw type.
    rng : RandomnessProvider
        Secure random source for winner selection.
    include_display : bool, default: True
        Prepend the display-only headline winner defined by ``rules``.

    Returns
    -------
    list[WinnerAllocation]
        Display-only allocation first (when enabled), then real winners in
        tier order.

    Raises
    ------
    TierConfigError
        If ``rules`` are inconsistent.
    ValueError
        If ``pool`` is negative.

    Notes
    -----
    1. The first band whose threshold the pool strictly exceeds is awarded,
       only when there are participants, and ``remaining`` is reduced by
       what was actually awarded.
    2. Each split tier gets ``floor(remaining * share / amount)`` winners,
       capped by the participants still unselected.
    3. Empty tiers are normal and produce no allocations.
    """
    rules.validate()
    pool = to_money(pool)
    if pool < 0:
        raise ValueError("distributable pool must not be negative")

    allocations: list[WinnerAllocation] = []
    if include_display and rules.display is not None:
        allocations.append(
            WinnerAllocation(
                winner_type=rules.display.winner_type,
                amount=rules.display.amount,
                description=rules.display.description,
                display_only=True,
                display_label=display_ticket_label(rng),
            )
        )

    selector = _SelectionPool(len(participants), rng)
    remaining = pool

    band = rules.band_for(pool)
    if band is not None and participants:
        for tier in band.tiers:
            for idx in selector.draw(tier.count):
                winner = participants[idx]
                allocations.append(
                    WinnerAllocation(
                        winner_type=tier.winner_type,
                        amount=tier.amount,
                        description=tier.description,
                        ticket_id=winner.ticket_id,
                        user_id=winner.user_id,
                    )
                )
                remaining -= tier.amount

    split_base = remaining
    for split in rules.split_tiers:
        share = split_base * split.share
        count = int((share / split.amount).to_integral_value(rounding=ROUND_FLOOR))
        for idx in selector.draw(count):
            winner = participants[idx]
            allocations.append(
                WinnerAllocation(
                    winner_type=split.winner_type,
                    amount=split.amount,
                    description=split.description,
                    ticket_id=winner.ticket_id,
                    user_id=winner.user_id,
                )
            )

    return allocations


def allocate_exact_match(
    prize_amount: Decimal,
    participants: Sequence[Participant],
    rng: RandomnessProvider,
) -> tuple[list[int], list[WinnerAllocation]]:
    """Allocate a draw type without tier rules.

    A random ticket's numbers become the winning numbers and every ticket
    holding the same set of numbers shares ``prize_amount`` equally, rounded
    down to cents.

    Returns
    -------
    tuple[list[int], list[WinnerAllocation]]
        Winning numbers and the allocations (empty when nobody played).
    """
    if not participants:
        return generate_winning_numbers(rng), []

    winning = normalize_numbers(rng.choice(participants).numbers)
    matches = [p for p in participants if normalize_numbers(p.numbers) == winning]
    share = to_cents(to_money(prize_amount) / len(matches))
    allocations = [
        WinnerAllocation(
            winner_type="jackpot",
            amount=share,
            description="Lottery Jackpot Winner",
            ticket_id=p.ticket_id,
            user_id=p.user_id,
        )
        for p in matches
    ]
    return list(winning), allocations


def real_total(allocations: Sequence[WinnerAllocation]) -> Decimal:
    """Sum of the amounts that move money (display-only rows excluded)."""
    return sum(
        (a.amount for a in allocations if not a.display_only), Decimal("0")
    )


__all__ = [
    "Participant",
    "WinnerAllocation",
    "allocate",
    "allocate_exact_match",
    "real_total",
]
