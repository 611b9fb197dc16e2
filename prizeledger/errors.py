"""Exception taxonomy shared by the settlement engine."""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for every error raised by the engine."""


class AlreadySettled(SettlementError):
    """The draw, trade or round has already left its open state."""


class NotDue(SettlementError):
    """The entity has not reached its resolution time yet."""


class DrawCancelled(SettlementError):
    """The draw was cancelled before it could be settled."""


class PriceUnavailable(SettlementError):
    """No usable resolving price could be obtained for a trade."""


class StoreWriteFailure(SettlementError):
    """A write to the ledger store failed; the unit of work was rolled back."""


class RandomSourceFailure(SettlementError):
    """The secure random source could not produce a value."""


class TierConfigError(SettlementError):
    """Prize tier rules for a draw type are inconsistent."""


class InsufficientFunds(SettlementError):
    """A wallet debit would take the balance below zero."""


class RoundActionError(SettlementError, ValueError):
    """A user action on a round was rejected (not registered, cooldown, ...)."""


__all__ = [
    "SettlementError",
    "AlreadySettled",
    "NotDue",
    "DrawCancelled",
    "PriceUnavailable",
    "StoreWriteFailure",
    "RandomSourceFailure",
    "TierConfigError",
    "InsufficientFunds",
    "RoundActionError",
]
