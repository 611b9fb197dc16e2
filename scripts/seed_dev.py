from datetime import datetime, timedelta, timezone
from decimal import Decimal

from prizeledger.config import Settings
from prizeledger.db.engine import get_sessionmaker, make_engine
from prizeledger.models import (
    Base,
    Lottery,
    PriceHistory,
    TradingInstrument,
    User,
)
from prizeledger.settlement.ledger import credit_wallet
from prizeledger.workflows import ensure_scheduled_draws

LOTTERIES = [
    ("Daily Draw", "daily", Decimal("5.00"), Decimal("50000.00")),
    ("Weekly Draw", "weekly", Decimal("20.00"), Decimal("25000.00")),
    ("Monthly Draw", "monthly", Decimal("50.00"), Decimal("50000.00")),
]

INSTRUMENTS = [
    ("BTCUSD", "Bitcoin / US Dollar", "crypto", Decimal("1000.00"), Decimal("65000")),
    ("ETHUSD", "Ethereum / US Dollar", "crypto", Decimal("1000.00"), Decimal("3200")),
    ("EURUSD", "Euro / US Dollar", "forex", Decimal("500.00"), Decimal("1.08")),
]


def main() -> None:
    """Seed the development database with lotteries, instruments and two funded users."""
    settings = Settings.from_env()
    engine = make_engine(settings.db_url)

    # SQLite cannot drop tables with self-referencing foreign keys while the
    # pragma is on, so switch it off for the reset.
    with engine.connect() as conn:
        if conn.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        if conn.dialect.name == "sqlite":
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)
    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        for name, lottery_type, ticket_price, prize_pool in LOTTERIES:
            session.add(
                Lottery(
                    name=name,
                    type=lottery_type,
                    ticket_price=ticket_price,
                    prize_pool=prize_pool,
                    is_active=True,
                )
            )

        for symbol, name, kind, max_trade, price in INSTRUMENTS:
            instrument = TradingInstrument(
                symbol=symbol,
                name=name,
                type=kind,
                payout_multiplier=Decimal("1.95"),
                min_trade_amount=Decimal("1.00"),
                max_trade_amount=max_trade,
                is_active=True,
            )
            session.add(instrument)
            session.flush()
            session.add(
                PriceHistory(
                    instrument_id=instrument.id,
                    price=price,
                    timestamp=now - timedelta(seconds=5),
                    source="seed",
                )
            )

        alice = User("alice", "alice@example.com")
        bob = User("bob", "bob@example.com")
        session.add_all([alice, bob])
        session.flush()
        for user in (alice, bob):
            credit_wallet(
                session,
                user.id,
                Decimal("100.00"),
                tx_type="deposit",
                description="Development seed deposit",
            )

        ensure_scheduled_draws(session, now=now, tz=settings.draw_tzinfo())

    print("Development database seeded.")


if __name__ == "__main__":
    main()
