import unittest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from prizeledger.errors import AlreadySettled, DrawCancelled, NotDue
from prizeledger.models import Draw, DrawWinner
from prizeledger.prize_draw.engine import DrawEngine, split_pool
from prizeledger.prize_draw.tiers import TierRuleRegistry

from support import NOW, LedgerTestCase


class SplitPoolTests(unittest.TestCase):
    def test_thirty_percent_fee(self) -> None:
        fees, pool = split_pool(Decimal("1000"), Decimal("0.30"))
        self.assertEqual(fees, Decimal("300"))
        self.assertEqual(pool, Decimal("700"))
        self.assertEqual(fees + pool, Decimal("1000"))


class DrawEngineTests(LedgerTestCase):
    def _seed(self, lottery_type="daily", *, pool=Decimal("1000"), tickets=20, **draw_kwargs):
        with self.Session.begin() as session:
            lottery = self.make_lottery(session, lottery_type, prize_pool=Decimal("500"))
            draw = self.make_draw(session, lottery, total_prize_pool=pool, **draw_kwargs)
            users = self.make_users(session, tickets, prefix=lottery_type)
            self.make_tickets(session, draw, users)
            return draw.id, [u.id for u in users]

    def _settle(self, draw_id, **kwargs):
        force = kwargs.pop("force", False)
        with self.Session.begin() as session:
            engine = DrawEngine(session, rng=self.rng, **kwargs)
            return engine.settle(draw_id, now=NOW, force=force)

    def test_daily_draw_pays_tiered_winners(self) -> None:
        draw_id, user_ids = self._seed()
        result = self._settle(draw_id)

        # 700 distributable: 35 x $10 and 70 x $5 wanted, 20 tickets available.
        real = result.real_winners
        self.assertEqual(len(real), 20)
        self.assertEqual(len(result.winners), 21)
        self.assertLessEqual(result.total_paid, Decimal("700"))
        self.assertEqual(len(result.winning_numbers), 5)
        paid = sum((self.balance(uid) for uid in user_ids), Decimal("0"))
        self.assertEqual(paid, result.total_paid)

        with self.Session() as session:
            draw = session.get(Draw, draw_id)
            self.assertEqual(draw.status, "completed")
            self.assertEqual(draw.platform_fees, Decimal("300"))
            self.assertEqual(draw.distribution_pool, Decimal("700"))
            self.assertEqual(draw.tickets_sold, 20)

    def test_display_winner_toggle(self) -> None:
        draw_id, _ = self._seed()
        result = self._settle(draw_id, display_winners=False)
        self.assertFalse(any(w.display_only for w in result.winners))

    def test_future_draw_is_not_due_unless_forced(self) -> None:
        draw_id, _ = self._seed(draw_date=NOW + timedelta(hours=2))
        with self.assertRaises(NotDue):
            self._settle(draw_id)
        result = self._settle(draw_id, force=True)
        self.assertEqual(result.draw_id, draw_id)

    def test_completed_and_cancelled_draws(self) -> None:
        draw_id, _ = self._seed()
        self._settle(draw_id)
        with self.assertRaises(AlreadySettled):
            self._settle(draw_id)

        cancelled_id, _ = self._seed("weekly", status="cancelled")
        with self.assertRaises(DrawCancelled):
            self._settle(cancelled_id)

    def test_zero_ticket_draw_completes(self) -> None:
        draw_id, _ = self._seed("weekly", pool=Decimal("0"), tickets=0)
        result = self._settle(draw_id)
        self.assertEqual(result.real_winners, [])
        self.assertEqual(result.total_paid, Decimal("0"))
        with self.Session() as session:
            self.assertEqual(session.get(Draw, draw_id).status, "completed")

    def test_type_without_rules_uses_exact_match(self) -> None:
        draw_id, user_ids = self._seed("special", pool=Decimal("1000"), tickets=3)
        with self.Session.begin() as session:
            for ticket in session.get(Draw, draw_id).tickets:
                ticket.numbers = [7, 8, 9, 10, 11]

        result = self._settle(draw_id, registry=TierRuleRegistry())

        self.assertEqual(result.winning_numbers, [7, 8, 9, 10, 11])
        self.assertEqual(len(result.winners), 3)
        # Headline prize 500 shared equally, rounded down to cents.
        for winner in result.winners:
            self.assertEqual(winner.winner_type, "jackpot")
            self.assertEqual(winner.prize_amount, Decimal("166.66"))
        for uid in user_ids:
            self.assertEqual(self.balance(uid), Decimal("166.66"))
        with self.Session() as session:
            self.assertEqual(
                session.scalars(select(DrawWinner.display_only)).all(), [False] * 3
            )


if __name__ == "__main__":
    unittest.main()
