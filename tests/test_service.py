import unittest
from unittest.mock import patch

from cryptography.fernet import Fernet

from prizeledger.config import Settings
from prizeledger.pricing.api import HttpPriceFeed
from prizeledger.pricing.feed import StoredPriceFeed
from prizeledger.service import SettlementEngine

from support import NOW, LedgerTestCase


class SettlementEngineTests(LedgerTestCase):
    def _engine(self, **settings_kwargs) -> SettlementEngine:
        settings = Settings(db_url="sqlite+pysqlite:///:memory:", **settings_kwargs)
        engine = SettlementEngine(settings, session_factory=self.Session, clock=lambda: NOW)
        self.addCleanup(engine.stop, 1)
        return engine

    def test_builds_four_timers(self) -> None:
        engine = self._engine(
            round_secret_key=Fernet.generate_key().decode(), trade_poll_seconds=5
        )
        self.assertEqual(
            [t.name for t in engine.timers],
            ["draws", "trades", "round-reveals", "round-completions"],
        )
        self.assertEqual(engine.timers[1].interval, 5)
        self.assertIsInstance(engine.resolver._feed, StoredPriceFeed)

    def test_missing_round_key_disables_mystery_rounds(self) -> None:
        with self.assertLogs("prizeledger.service", level="WARNING"):
            engine = self._engine()
        report = engine.round_manager.run_completions()
        self.assertEqual([c.split(":")[0] for c in report.created], ["try_your_luck"])

    @patch("prizeledger.pricing.api.load_dotenv")
    def test_http_feed_when_base_url_configured(self, mock_load_dotenv) -> None:
        engine = self._engine(price_feed_base_url="https://prices.example")
        self.assertIsInstance(engine.resolver._feed, HttpPriceFeed)
        self.assertEqual(engine.resolver._feed.base_url, "https://prices.example")


if __name__ == "__main__":
    unittest.main()
