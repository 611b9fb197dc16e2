import unittest
from datetime import timedelta
from decimal import Decimal

from cryptography.fernet import Fernet
from sqlalchemy import select

from prizeledger.models import MysterySearchRound, SurpriseDraw, TryYourLuckRound
from prizeledger.rounds.seed_phrase import PhraseCipher
from prizeledger.rounds.surprise import create_surprise_draw
from prizeledger.scheduling.round_manager import RoundManager

from support import NOW, LedgerTestCase


class RoundManagerTests(LedgerTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.cipher = PhraseCipher(Fernet.generate_key())
        self.manager = RoundManager(self.Session, self.cipher, rng=self.rng, clock=lambda: NOW)

    def test_first_completion_tick_opens_rounds(self) -> None:
        report = self.manager.run_completions()
        self.assertEqual(len(report.created), 2)
        self.assertEqual(report.failed, [])

        again = self.manager.run_completions()
        self.assertEqual(again.created, [])

    def test_reveal_tick_activates_and_reveals(self) -> None:
        self.manager.run_completions()
        self.assertEqual(self.manager.run_reveals(NOW + timedelta(hours=1)).revealed, [])

        report = self.manager.run_reveals(NOW + timedelta(hours=24))
        self.assertEqual(len(report.activated), 1)
        self.assertEqual(len(report.revealed), 1)
        with self.Session() as session:
            round_ = session.scalar(select(MysterySearchRound))
            self.assertEqual(round_.status, "active")
            self.assertEqual(round_.reveals_done, 1)

    def test_expired_rounds_are_completed_and_replaced(self) -> None:
        self.manager.run_completions()
        with self.Session.begin() as session:
            create_surprise_draw(
                session, title="Flash", prize_pool=Decimal("10"), ticket_price=Decimal("1"),
                start_time=NOW, end_time=NOW + timedelta(hours=1),
            )

        later = NOW + timedelta(days=3)
        report = self.manager.run_completions(later)

        self.assertEqual(report.failed, [])
        kinds = sorted(label.split(":")[0] for label in report.completed)
        self.assertEqual(kinds, ["mystery", "surprise", "try_your_luck"])
        self.assertEqual(report.activated[0].split(":")[0], "surprise")
        with self.Session() as session:
            open_mystery = session.scalars(
                select(MysterySearchRound).where(MysterySearchRound.status == "registration")
            ).all()
            self.assertEqual(len(open_mystery), 1)
            open_tyl = session.scalars(
                select(TryYourLuckRound).where(TryYourLuckRound.status == "active")
            ).all()
            self.assertEqual(len(open_tyl), 1)
            self.assertEqual(session.scalar(select(SurpriseDraw.status)), "completed")

    def test_without_cipher_mystery_rounds_are_left_alone(self) -> None:
        manager = RoundManager(self.Session, None, rng=self.rng, clock=lambda: NOW)
        report = manager.run_completions()
        self.assertEqual([c.split(":")[0] for c in report.created], ["try_your_luck"])
        self.assertEqual(manager.run_reveals().revealed, [])


if __name__ == "__main__":
    unittest.main()
