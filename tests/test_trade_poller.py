import unittest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from prizeledger.models import BinaryTrade, TradeAuditLog, TradingInstrument, User
from prizeledger.pricing.feed import PriceResolver, StoredPriceFeed
from prizeledger.scheduling.trade_poller import PRICE_UNAVAILABLE, TradePoller

from support import NOW, LedgerTestCase


class TradePollerTests(LedgerTestCase):
    def setUp(self) -> None:
        super().setUp()
        feed = StoredPriceFeed(self.Session, stale_after=timedelta(seconds=30), clock=lambda: NOW)
        self.resolver = PriceResolver(feed, timeout=2)
        self.addCleanup(self.resolver.close)
        with self.Session.begin() as session:
            user = self.make_user(session, "trader", Decimal("0"))
            self.instrument_id = self.make_instrument(session, "BTCUSD").id
            self.user_id = user.id

    def _trade(self, **kwargs) -> int:
        with self.Session.begin() as session:
            user = session.get(User, self.user_id)
            instrument = session.get(TradingInstrument, self.instrument_id)
            return self.make_trade(session, user, instrument, **kwargs).id

    def _price(self, price: str, at) -> None:
        with self.Session.begin() as session:
            instrument = session.get(TradingInstrument, self.instrument_id)
            self.add_price(session, instrument, Decimal(price), at)

    def test_settles_expired_trade_at_expiry_price(self) -> None:
        trade_id = self._trade(direction="up")
        self._price("105", NOW - timedelta(seconds=5))
        poller = TradePoller(self.Session, self.resolver, clock=lambda: NOW)

        report = poller.run_once()

        self.assertEqual([r.trade_id for r in report.settled], [trade_id])
        self.assertEqual(report.settled[0].status, "won")
        self.assertEqual(self.balance(self.user_id), Decimal("19.5"))

    def test_unexpired_trades_are_left_alone(self) -> None:
        trade_id = self._trade(expiry=NOW + timedelta(minutes=1))
        report = TradePoller(self.Session, self.resolver, clock=lambda: NOW).run_once()
        self.assertEqual(report.settled, [])
        with self.Session() as session:
            self.assertEqual(session.get(BinaryTrade, trade_id).status, "active")

    def test_stale_feed_moves_trade_to_error(self) -> None:
        trade_id = self._trade(direction="up")
        self._price("105", NOW - timedelta(minutes=10))
        poller = TradePoller(self.Session, self.resolver, clock=lambda: NOW)

        report = poller.run_once()

        self.assertEqual([r.trade_id for r in report.errored], [trade_id])
        self.assertEqual(report.errored[0].reason, PRICE_UNAVAILABLE)
        self.assertEqual(self.balance(self.user_id), Decimal("0"))
        with self.Session() as session:
            self.assertEqual(session.get(BinaryTrade, trade_id).status, "error")
            audit = session.scalars(select(TradeAuditLog)).all()
            self.assertEqual(len(audit), 1)
            self.assertEqual(audit[0].action, "trade_error")

        # Terminal: the next tick finds nothing to do.
        self.assertEqual(poller.run_once().errored, [])

    def test_notifier_failure_is_logged(self) -> None:
        self._trade(direction="down")
        self._price("99", NOW - timedelta(seconds=2))

        def broken(result):
            raise RuntimeError("push service down")

        poller = TradePoller(self.Session, self.resolver, notifier=broken, clock=lambda: NOW)
        with self.assertLogs("prizeledger.scheduling.trade_poller", level="ERROR"):
            report = poller.run_once()
        self.assertEqual(len(report.settled), 1)
        self.assertEqual(self.balance(self.user_id), Decimal("19.5"))


if __name__ == "__main__":
    unittest.main()
