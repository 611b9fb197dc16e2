"""Shared fixtures for the ledger tests: in-memory database and seed helpers."""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import create_engine, select
from sqlalchemy.pool import StaticPool

from prizeledger.db.engine import get_sessionmaker
from prizeledger.models import (
    Base,
    BinaryTrade,
    Draw,
    Lottery,
    PriceHistory,
    Ticket,
    TradingInstrument,
    Transaction,
    User,
    Wallet,
)
from prizeledger.randomness import RandomnessProvider
from prizeledger.settlement.ledger import credit_wallet

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class SequenceSource:
    """Deterministic stand-in for ``secrets.SystemRandom`` that cycles offsets."""

    def __init__(self, offsets: Sequence[int] = (0,)) -> None:
        self._offsets = list(offsets)
        self._i = 0

    def randint(self, a: int, b: int) -> int:
        offset = self._offsets[self._i % len(self._offsets)]
        self._i += 1
        return a + offset % (b - a + 1)


class FailingSource:
    def randint(self, a: int, b: int) -> int:
        raise OSError("entropy pool unavailable")


class LedgerTestCase(unittest.TestCase):
    """Fresh in-memory schema per test.

    The single shared connection lets worker threads (price lookups) see the
    same in-memory database as the test.
    """

    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        self.rng = RandomnessProvider()

    def tearDown(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # seed helpers; all run inside the caller's session
    # ------------------------------------------------------------------
    def make_user(self, session, name: str, balance: Decimal = Decimal("0")) -> User:
        user = User(name, f"{name}@example.com")
        session.add(user)
        session.flush()
        session.add(Wallet(user_id=user.id))
        session.flush()
        if balance > 0:
            credit_wallet(session, user.id, balance, tx_type="deposit")
        return user

    def make_users(self, session, count: int, prefix: str = "player") -> list[User]:
        return [self.make_user(session, f"{prefix}{i}") for i in range(count)]

    def make_lottery(
        self,
        session,
        lottery_type: str,
        *,
        ticket_price: Decimal = Decimal("5"),
        prize_pool: Decimal = Decimal("0"),
    ) -> Lottery:
        lottery = Lottery(
            name=f"{lottery_type.title()} Draw",
            type=lottery_type,
            ticket_price=ticket_price,
            prize_pool=prize_pool,
            is_active=True,
        )
        session.add(lottery)
        session.flush()
        return lottery

    def make_draw(
        self,
        session,
        lottery: Lottery,
        *,
        total_prize_pool: Decimal,
        draw_date: datetime = NOW - timedelta(minutes=1),
        status: str = "scheduled",
        prize_amount: Decimal = Decimal("0"),
    ) -> Draw:
        draw = Draw(
            draw_date=draw_date,
            lottery=lottery,
            status=status,
            total_prize_pool=total_prize_pool,
            prize_amount=prize_amount,
        )
        session.add(draw)
        session.flush()
        return draw

    def make_tickets(
        self,
        session,
        draw: Draw,
        users: Iterable[User],
        numbers: Optional[Sequence[int]] = None,
    ) -> list[Ticket]:
        tickets = []
        for i, user in enumerate(users):
            ticket = Ticket(
                draw_id=draw.id,
                user_id=user.id,
                numbers=list(numbers) if numbers is not None else [1, 2, 3, 4, 5 + i % 40],
                ticket_number=str(100000 + i),
            )
            session.add(ticket)
            tickets.append(ticket)
        session.flush()
        return tickets

    def make_instrument(self, session, symbol: str = "BTCUSD") -> TradingInstrument:
        instrument = TradingInstrument(
            symbol=symbol,
            name=f"{symbol} pair",
            type="crypto",
            payout_multiplier=Decimal("1.95"),
            min_trade_amount=Decimal("1"),
            max_trade_amount=Decimal("1000"),
            is_active=True,
        )
        session.add(instrument)
        session.flush()
        return instrument

    def make_trade(
        self,
        session,
        user: User,
        instrument: TradingInstrument,
        *,
        direction: str = "up",
        stake: Decimal = Decimal("10"),
        entry_price: Decimal = Decimal("100"),
        expiry: datetime = NOW - timedelta(seconds=1),
        duration: int = 60,
    ) -> BinaryTrade:
        trade = BinaryTrade(
            user_id=user.id,
            instrument_id=instrument.id,
            direction=direction,
            stake_amount=stake,
            entry_price=entry_price,
            duration=duration,
            entry_time=expiry - timedelta(seconds=duration),
            expiry_time=expiry,
            status="active",
            payout_amount=Decimal("0"),
        )
        session.add(trade)
        session.flush()
        return trade

    def add_price(
        self, session, instrument: TradingInstrument, price: Decimal, at: datetime
    ) -> None:
        session.add(
            PriceHistory(instrument_id=instrument.id, price=price, timestamp=at, source="test")
        )
        session.flush()

    # ------------------------------------------------------------------
    # read helpers
    # ------------------------------------------------------------------
    def balance(self, user_id: int) -> Decimal:
        with self.Session() as session:
            return session.scalar(select(Wallet.balance).where(Wallet.user_id == user_id))

    def transactions(self, user_id: int, tx_type: Optional[str] = None) -> list[Transaction]:
        with self.Session() as session:
            stmt = select(Transaction).where(Transaction.user_id == user_id)
            if tx_type is not None:
                stmt = stmt.where(Transaction.type == tx_type)
            return list(session.scalars(stmt.order_by(Transaction.id)))
