"""Wallet primitives: every balance change goes through this module.

Each mutation locks the wallet row, adjusts the balance and appends exactly
one :class:`~prizeledger.models.Transaction` in the caller's transaction.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.utils import to_money
from ..errors import InsufficientFunds
from ..models import Transaction, Wallet

logger = logging.getLogger(__name__)


def get_or_create_wallet(session: Session, user_id: int) -> Wallet:
    """Return the wallet of ``user_id`` locked for update, creating it if missing."""
    wallet = session.scalar(
        select(Wallet).where(Wallet.user_id == user_id).with_for_update()
    )
    if wallet is None:
        wallet = Wallet(user_id=user_id)
        session.add(wallet)
        session.flush()
    return wallet


def get_balance(session: Session, user_id: int) -> Decimal:
    wallet = session.scalar(select(Wallet).where(Wallet.user_id == user_id))
    return wallet.balance if wallet is not None else Decimal("0")


def _append_transaction(
    session: Session,
    wallet: Wallet,
    *,
    amount: Decimal,
    tx_type: str,
    description: Optional[str],
    reference: Optional[str],
) -> Transaction:
    tx = Transaction(
        wallet_id=wallet.id,
        user_id=wallet.user_id,
        type=tx_type,
        amount=amount,
        description=description,
        status="confirmed",
        reference=reference,
    )
    session.add(tx)
    return tx


def credit_wallet(
    session: Session,
    user_id: int,
    amount: Decimal,
    *,
    tx_type: str,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    count_as_winnings: bool = False,
) -> Transaction:
    """Credit ``amount`` to the available balance of ``user_id``.

    Parameters
    ----------
    session : Session
        Session whose transaction the credit joins.
    user_id : int
        Owner of the wallet; the wallet is created when it does not exist.
    amount : Decimal
        Positive amount to credit.
    tx_type : str
        Transaction type tag, e.g. ``prize_win``.
    description : Optional[str], default: None
        Human readable reason shown in the wallet history.
    reference : Optional[str], default: None
        Source record reference such as ``draw:12``.
    count_as_winnings : bool, default: False
        Also add ``amount`` to the lifetime ``total_winnings`` counter.

    Returns
    -------
    Transaction
        The ledger row paired with the credit.

    Raises
    ------
    ValueError
        If ``amount`` is not positive.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValueError("credit amount must be positive")
    wallet = get_or_create_wallet(session, user_id)
    wallet.balance = to_money(wallet.balance + amount)
    if count_as_winnings:
        wallet.total_winnings = to_money(wallet.total_winnings + amount)
    tx = _append_transaction(
        session,
        wallet,
        amount=amount,
        tx_type=tx_type,
        description=description,
        reference=reference,
    )
    logger.debug(f"Credited {amount} to user {user_id} ({tx_type}, {reference})")
    return tx


def debit_wallet(
    session: Session,
    user_id: int,
    amount: Decimal,
    *,
    tx_type: str,
    description: Optional[str] = None,
    reference: Optional[str] = None,
) -> Transaction:
    """Debit ``amount`` from the available balance of ``user_id``.

    The transaction row records the debit as a negative amount.

    Raises
    ------
    ValueError
        If ``amount`` is not positive.
    InsufficientFunds
        If the balance is lower than ``amount``; nothing is written.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValueError("debit amount must be positive")
    wallet = get_or_create_wallet(session, user_id)
    if wallet.balance < amount:
        raise InsufficientFunds(
            f"wallet of user {user_id} holds {wallet.balance}, cannot debit {amount}"
        )
    wallet.balance = to_money(wallet.balance - amount)
    tx = _append_transaction(
        session,
        wallet,
        amount=-amount,
        tx_type=tx_type,
        description=description,
        reference=reference,
    )
    logger.debug(f"Debited {amount} from user {user_id} ({tx_type}, {reference})")
    return tx


__all__ = ["get_or_create_wallet", "get_balance", "credit_wallet", "debit_wallet"]
