"""Winning numbers, ticket numbers and display labels for draws."""

from __future__ import annotations

from typing import Collection, Iterable

from ..randomness import RandomnessProvider

WINNING_NUMBER_COUNT = 5
WINNING_NUMBER_MIN = 1
WINNING_NUMBER_MAX = 50
TICKET_NUMBER_MIN = 1
TICKET_NUMBER_MAX = 1_000_000
MAX_TICKET_NUMBER_ATTEMPTS = 1000


def normalize_numbers(numbers: Iterable[int]) -> tuple[int, ...]:
    """Return ``numbers`` as a sorted tuple of ints for set-style comparison.

    Parameters
    ----------
    numbers : Iterable[int]
        Numbers picked on a ticket, in any order.
    """

    if numbers is None:
        raise ValueError("numbers must not be None")
    normalized = tuple(sorted(int(n) for n in numbers))
    if not normalized:
        raise ValueError("numbers must not be empty")
    return normalized


def generate_winning_numbers(
    rng: RandomnessProvider,
    *,
    count: int = WINNING_NUMBER_COUNT,
    minimum: int = WINNING_NUMBER_MIN,
    maximum: int = WINNING_NUMBER_MAX,
) -> list[int]:
    """Draw ``count`` distinct numbers in ``[minimum, maximum]``, sorted ascending."""
    if count > maximum - minimum + 1:
        raise ValueError("not enough distinct numbers in range")
    return sorted(rng.sample(range(minimum, maximum + 1), count))


def generate_ticket_number(
    rng: RandomnessProvider,
    taken: Collection[str],
    *,
    minimum: int = TICKET_NUMBER_MIN,
    maximum: int = TICKET_NUMBER_MAX,
    max_attempts: int = MAX_TICKET_NUMBER_ATTEMPTS,
) -> str:
    """Return a ticket number not present in ``taken``.

    Raises
    ------
    ValueError
        If no free number was found within ``max_attempts`` tries.
    """
    for _ in range(max_attempts):
        candidate = str(rng.randint(minimum, maximum))
        if candidate not in taken:
            return candidate
    raise ValueError(f"could not find a free ticket number after {max_attempts} attempts")


def display_ticket_label(rng: RandomnessProvider) -> str:
    """Synthetic ``Ticket #XXXXXXXX`` label used by display-only winners."""
    return f"Ticket #{rng.token(8)}"


__all__ = [
    "normalize_numbers",
    "generate_winning_numbers",
    "generate_ticket_number",
    "display_ticket_label",
]
