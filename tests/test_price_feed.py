import json
import os
import threading
import unittest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import requests

from prizeledger.errors import PriceUnavailable
from prizeledger.pricing.api import HttpPriceFeed
from prizeledger.pricing.feed import PriceResolver, StoredPriceFeed
from prizeledger.settlement.executor import decide_trade

from support import NOW, LedgerTestCase


class DummyResponse:
    def __init__(self, json_data=None, status_code: int = 200):
        self._json = json_data
        self.status_code = status_code
        self.content = json.dumps(json_data).encode() if json_data is not None else b""

    def json(self):
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, params=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "timeout": timeout})
        return self.responses.pop(0)


class StaticFeed:
    def __init__(self, at_time=None, latest=None, stale=True):
        self.at_time = at_time
        self.latest = latest
        self.stale = stale

    def get_price_at_time(self, symbol, timestamp):
        return self.at_time

    def get_latest_price(self, symbol):
        return self.latest

    def is_stale(self, symbol, now=None):
        return self.stale


class HangingFeed(StaticFeed):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def get_price_at_time(self, symbol, timestamp):
        self.release.wait(5)
        return Decimal("1")


class BrokenFeed(StaticFeed):
    def get_price_at_time(self, symbol, timestamp):
        raise ConnectionError("feed down")


class StoredPriceFeedTests(LedgerTestCase):
    def setUp(self) -> None:
        super().setUp()
        with self.Session.begin() as session:
            instrument = self.make_instrument(session, "BTCUSD")
            self.add_price(session, instrument, Decimal("100"), NOW - timedelta(seconds=50))
            self.add_price(session, instrument, Decimal("101"), NOW - timedelta(seconds=10))
        self.feed = StoredPriceFeed(
            self.Session, stale_after=timedelta(seconds=30), clock=lambda: NOW
        )

    def test_price_at_time_uses_last_observation(self) -> None:
        self.assertEqual(
            self.feed.get_price_at_time("BTCUSD", NOW - timedelta(seconds=20)), Decimal("100")
        )
        self.assertEqual(self.feed.get_price_at_time("BTCUSD", NOW), Decimal("101"))

    def test_price_at_time_ignores_old_observations(self) -> None:
        self.assertIsNone(
            self.feed.get_price_at_time("BTCUSD", NOW + timedelta(minutes=5))
        )
        self.assertIsNone(self.feed.get_price_at_time("BTCUSD", NOW - timedelta(minutes=5)))

    def test_latest_and_staleness(self) -> None:
        self.assertEqual(self.feed.get_latest_price("BTCUSD"), Decimal("101"))
        self.assertFalse(self.feed.is_stale("BTCUSD"))
        self.assertTrue(self.feed.is_stale("BTCUSD", NOW + timedelta(minutes=1)))
        self.assertTrue(self.feed.is_stale("ETHUSD"))
        self.assertIsNone(self.feed.get_latest_price("ETHUSD"))


class HttpPriceFeedTests(unittest.TestCase):
    @patch("prizeledger.pricing.api.load_dotenv")
    def test_requires_base_url(self, mock_load_dotenv) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                HttpPriceFeed(session=DummySession([]))

    @patch("prizeledger.pricing.api.load_dotenv")
    def test_price_at_time(self, mock_load_dotenv) -> None:
        session = DummySession([DummyResponse({"price": "64000.5", "timestamp": "2026-10-18T12:00:00Z"})])
        feed = HttpPriceFeed("https://prices.example/", session=session, timeout=3)

        price = feed.get_price_at_time("BTCUSD", NOW)

        self.assertEqual(price, Decimal("64000.5"))
        call = session.calls[0]
        self.assertEqual(call["method"], "GET")
        self.assertEqual(call["url"], "https://prices.example/api/v1/prices/BTCUSD/at")
        self.assertEqual(call["params"], {"timestamp": NOW.isoformat()})
        self.assertEqual(call["timeout"], 3)

    @patch("prizeledger.pricing.api.load_dotenv")
    def test_not_found_means_no_price(self, mock_load_dotenv) -> None:
        session = DummySession([DummyResponse(status_code=404)])
        feed = HttpPriceFeed("https://prices.example", session=session)
        self.assertIsNone(feed.get_latest_price("BTCUSD"))

    @patch("prizeledger.pricing.api.load_dotenv")
    def test_staleness_from_quote_timestamp(self, mock_load_dotenv) -> None:
        quote = {"price": "1.08", "timestamp": "2026-10-18T11:59:50Z"}
        session = DummySession([DummyResponse(quote), DummyResponse(quote)])
        feed = HttpPriceFeed(
            "https://prices.example", session=session, stale_after=timedelta(seconds=30)
        )
        self.assertFalse(feed.is_stale("EURUSD", NOW))
        self.assertTrue(feed.is_stale("EURUSD", NOW + timedelta(minutes=1)))

    @patch("prizeledger.pricing.api.load_dotenv")
    def test_server_error_propagates(self, mock_load_dotenv) -> None:
        session = DummySession([DummyResponse(status_code=503)])
        feed = HttpPriceFeed("https://prices.example", session=session)
        with self.assertRaises(requests.HTTPError):
            feed.get_latest_price("BTCUSD")


class PriceResolverTests(unittest.TestCase):
    def _resolve(self, feed, timeout=1.0):
        resolver = PriceResolver(feed, timeout=timeout)
        self.addCleanup(resolver.close)
        return resolver.resolve("BTCUSD", NOW, now=NOW)

    def test_prefers_price_at_expiry(self) -> None:
        feed = StaticFeed(at_time=Decimal("10"), latest=Decimal("11"), stale=False)
        self.assertEqual(self._resolve(feed), Decimal("10"))

    def test_falls_back_to_fresh_latest_price(self) -> None:
        feed = StaticFeed(latest=Decimal("11"), stale=False)
        self.assertEqual(self._resolve(feed), Decimal("11"))

    def test_float_prices_keep_their_decimal_value(self) -> None:
        price = self._resolve(StaticFeed(at_time=100.1, stale=False))
        self.assertEqual(price, Decimal("100.1"))
        self.assertEqual(decide_trade("down", Decimal("100.1"), price), "lost")

    def test_stale_feed_is_unavailable(self) -> None:
        with self.assertRaises(PriceUnavailable):
            self._resolve(StaticFeed(latest=Decimal("11"), stale=True))

    def test_feed_errors_are_unavailable(self) -> None:
        with self.assertRaises(PriceUnavailable):
            self._resolve(BrokenFeed())

    def test_timeout(self) -> None:
        feed = HangingFeed()
        self.addCleanup(feed.release.set)
        with self.assertRaises(PriceUnavailable):
            self._resolve(feed, timeout=0.05)


if __name__ == "__main__":
    unittest.main()
