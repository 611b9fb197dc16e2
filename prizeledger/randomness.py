"""Cryptographically secure randomness used for every money-affecting choice."""

from __future__ import annotations

import secrets
import string
from typing import MutableSequence, Optional, Sequence, TypeVar

from .errors import RandomSourceFailure

T = TypeVar("T")

TOKEN_ALPHABET = string.ascii_uppercase + string.digits


class RandomnessProvider:
    """Thin wrapper over the operating system CSPRNG.

    The provider holds no state of its own. All helpers are built on
    :meth:`randint`, so a failing source surfaces as
    :class:`RandomSourceFailure` from every entry point and never degrades to
    a seeded generator.
    """

    def __init__(self, source: Optional[secrets.SystemRandom] = None) -> None:
        self._source = source or secrets.SystemRandom()

    def randint(self, minimum: int, maximum: int) -> int:
        """Return a uniformly distributed integer in ``[minimum, maximum]``.

        Raises
        ------
        ValueError
            If ``minimum`` is greater than ``maximum``.
        RandomSourceFailure
            If the underlying entropy source is unavailable.
        """
        if minimum > maximum:
            raise ValueError(f"empty range [{minimum}, {maximum}]")
        try:
            return self._source.randint(minimum, maximum)
        except (OSError, NotImplementedError) as exc:
            raise RandomSourceFailure("secure random source unavailable") from exc

    def index(self, size: int) -> int:
        """Return a random index into a sequence of length ``size``."""
        if size <= 0:
            raise ValueError("cannot pick from an empty sequence")
        return self.randint(0, size - 1)

    def choice(self, items: Sequence[T]) -> T:
        return items[self.index(len(items))]

    def shuffle(self, items: MutableSequence[T]) -> MutableSequence[T]:
        """Shuffle ``items`` in place using Fisher-Yates and return it."""
        for i in range(len(items) - 1, 0, -1):
            j = self.randint(0, i)
            items[i], items[j] = items[j], items[i]
        return items

    def sample(self, items: Sequence[T], k: int) -> list[T]:
        """Return ``k`` distinct elements of ``items`` (all of them if fewer)."""
        pool = list(items)
        k = min(k, len(pool))
        # Partial Fisher-Yates: only the first k slots need to be settled.
        for i in range(k):
            j = self.randint(i, len(pool) - 1)
            pool[i], pool[j] = pool[j], pool[i]
        return pool[:k]

    def token(self, length: int = 8, alphabet: str = TOKEN_ALPHABET) -> str:
        """Return a random string such as the ``XXXXXXXX`` part of a ticket hash."""
        return "".join(alphabet[self.index(len(alphabet))] for _ in range(length))


__all__ = ["RandomnessProvider", "TOKEN_ALPHABET"]
