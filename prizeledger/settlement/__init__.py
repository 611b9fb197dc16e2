"""Ledger primitives and the settlement executor."""

from .executor import (
    DrawSettlementResult,
    SettlementExecutor,
    TradeSettlementResult,
    decide_trade,
)
from .ledger import credit_wallet, debit_wallet, get_balance, get_or_create_wallet

__all__ = [
    "SettlementExecutor",
    "DrawSettlementResult",
    "TradeSettlementResult",
    "decide_trade",
    "credit_wallet",
    "debit_wallet",
    "get_balance",
    "get_or_create_wallet",
]
