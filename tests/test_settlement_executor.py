import unittest
from decimal import Decimal

from sqlalchemy import func, select

from prizeledger.errors import AlreadySettled, DrawCancelled, NotDue, TierConfigError
from prizeledger.models import (
    BinaryTrade,
    Draw,
    DrawWinner,
    Ticket,
    TradeAuditLog,
    TradingInstrument,
    Transaction,
)
from prizeledger.prize_draw.allocator import WinnerAllocation
from prizeledger.settlement.executor import SettlementExecutor, decide_trade

from support import NOW, LedgerTestCase


class DecideTradeTests(unittest.TestCase):
    def test_directions(self) -> None:
        self.assertEqual(decide_trade("up", Decimal("100"), Decimal("101")), "won")
        self.assertEqual(decide_trade("up", Decimal("100"), Decimal("99")), "lost")
        self.assertEqual(decide_trade("down", Decimal("100"), Decimal("99")), "won")
        self.assertEqual(decide_trade("down", Decimal("100"), Decimal("101")), "lost")

    def test_unchanged_price_loses_both_ways(self) -> None:
        self.assertEqual(decide_trade("up", Decimal("100"), Decimal("100")), "lost")
        self.assertEqual(decide_trade("down", Decimal("100"), Decimal("100")), "lost")

    def test_unknown_direction(self) -> None:
        with self.assertRaises(ValueError):
            decide_trade("sideways", Decimal("1"), Decimal("2"))


class SettleDrawTests(LedgerTestCase):
    def _seed(self, status: str = "scheduled"):
        with self.Session.begin() as session:
            lottery = self.make_lottery(session, "daily")
            draw = self.make_draw(session, lottery, total_prize_pool=Decimal("100"), status=status)
            users = self.make_users(session, 2)
            tickets = self.make_tickets(session, draw, users)
            return draw.id, [(t.id, t.user_id) for t in tickets]

    def _allocations(self, tickets, amount=Decimal("10")):
        rows = [
            WinnerAllocation(
                winner_type="special_cash_display",
                amount=Decimal("10000"),
                description="Mega Prize Winner - $10,000",
                display_only=True,
                display_label="Ticket #ABCD1234",
            )
        ]
        for ticket_id, user_id in tickets:
            rows.append(
                WinnerAllocation(
                    winner_type="regular",
                    amount=amount,
                    description="Daily Draw Winner - $10",
                    ticket_id=ticket_id,
                    user_id=user_id,
                )
            )
        return rows

    def _settle(self, draw_id, allocations, pool=Decimal("70")):
        with self.Session.begin() as session:
            return SettlementExecutor(session).settle_draw(
                draw_id,
                allocations,
                winning_numbers=[1, 2, 3, 4, 5],
                platform_fees=Decimal("30"),
                distribution_pool=pool,
                tickets_sold=2,
                now=NOW,
            )

    def test_settles_and_pays_real_winners_only(self) -> None:
        draw_id, tickets = self._seed()
        result = self._settle(draw_id, self._allocations(tickets))

        self.assertEqual(result.total_paid, Decimal("20"))
        self.assertEqual(len(result.winners), 3)
        self.assertEqual(len(result.real_winners), 2)
        for _, user_id in tickets:
            self.assertEqual(self.balance(user_id), Decimal("10"))
            self.assertEqual(len(self.transactions(user_id, "prize_win")), 1)

        with self.Session() as session:
            draw = session.get(Draw, draw_id)
            self.assertEqual(draw.status, "completed")
            self.assertEqual(draw.winning_numbers, [1, 2, 3, 4, 5])
            self.assertEqual(draw.distribution_pool, Decimal("70"))
            self.assertEqual(draw.tickets_sold, 2)
            display = session.scalar(select(DrawWinner).where(DrawWinner.display_only.is_(True)))
            self.assertIsNone(display.user_id)
            self.assertEqual(display.display_label, "Ticket #ABCD1234")
            winners = session.scalars(select(Ticket).where(Ticket.is_winner.is_(True))).all()
            self.assertEqual(len(winners), 2)

    def test_second_settlement_is_rejected_without_side_effects(self) -> None:
        draw_id, tickets = self._seed()
        self._settle(draw_id, self._allocations(tickets))
        with self.assertRaises(AlreadySettled):
            self._settle(draw_id, self._allocations(tickets))
        for _, user_id in tickets:
            self.assertEqual(self.balance(user_id), Decimal("10"))
        with self.Session() as session:
            count = session.scalar(select(func.count(DrawWinner.id)))
            self.assertEqual(count, 3)

    def test_cancelled_draw(self) -> None:
        draw_id, tickets = self._seed(status="cancelled")
        with self.assertRaises(DrawCancelled):
            self._settle(draw_id, self._allocations(tickets))
        with self.Session() as session:
            self.assertEqual(session.scalar(select(func.count(DrawWinner.id))), 0)

    def test_allocations_above_pool_are_rejected(self) -> None:
        draw_id, tickets = self._seed()
        with self.assertRaises(TierConfigError):
            self._settle(draw_id, self._allocations(tickets, Decimal("40")))
        with self.Session() as session:
            self.assertEqual(session.get(Draw, draw_id).status, "scheduled")

    def test_failure_mid_settlement_rolls_back_everything(self) -> None:
        draw_id, tickets = self._seed()
        with self.Session.begin() as session:
            other_lottery = self.make_lottery(session, "weekly")
            other_draw = self.make_draw(session, other_lottery, total_prize_pool=Decimal("100"))
            outsider = self.make_users(session, 1, prefix="outsider")
            foreign = self.make_tickets(session, other_draw, outsider)[0]
            foreign_ticket = (foreign.id, foreign.user_id)

        # Second real allocation points at a ticket of another draw.
        allocations = self._allocations([tickets[0], foreign_ticket])
        with self.assertRaises(ValueError):
            self._settle(draw_id, allocations)

        with self.Session() as session:
            self.assertEqual(session.get(Draw, draw_id).status, "scheduled")
            self.assertEqual(session.scalar(select(func.count(DrawWinner.id))), 0)
            self.assertEqual(session.scalar(select(func.count(Transaction.id))), 0)
            winners = session.scalars(select(Ticket).where(Ticket.is_winner.is_(True))).all()
            self.assertEqual(winners, [])
        self.assertEqual(self.balance(tickets[0][1]), Decimal("0"))


class SettleTradeTests(LedgerTestCase):
    def _seed(self, **trade_kwargs) -> tuple[int, int]:
        with self.Session.begin() as session:
            user = self.make_user(session, "trader")
            instrument = self.make_instrument(session)
            trade = self.make_trade(session, user, instrument, **trade_kwargs)
            return trade.id, user.id

    def test_won_trade_pays_stake_times_multiplier(self) -> None:
        trade_id, user_id = self._seed(direction="up")
        with self.Session.begin() as session:
            result = SettlementExecutor(session).settle_trade(trade_id, Decimal("101"), now=NOW)
        self.assertEqual(result.status, "won")
        self.assertEqual(result.payout, Decimal("19.5"))
        self.assertEqual(self.balance(user_id), Decimal("19.5"))
        self.assertEqual(len(self.transactions(user_id, "binary_trade_win")), 1)

        with self.Session() as session:
            trade = session.get(BinaryTrade, trade_id)
            self.assertEqual(trade.status, "won")
            self.assertEqual(trade.exit_price, Decimal("101"))
            audit = session.scalars(select(TradeAuditLog)).all()
            self.assertEqual([a.action for a in audit], ["trade_settled"])

    def test_payout_is_exact_for_fractional_cent_products(self) -> None:
        trade_id, user_id = self._seed(direction="up", stake=Decimal("1.01"))
        with self.Session.begin() as session:
            result = SettlementExecutor(session).settle_trade(trade_id, Decimal("101"), now=NOW)
        self.assertEqual(result.payout, Decimal("1.9695"))
        self.assertEqual(self.balance(user_id), Decimal("1.9695"))
        with self.Session() as session:
            self.assertEqual(session.get(BinaryTrade, trade_id).payout_amount, Decimal("1.9695"))

    def test_stake_finer_than_cents_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self._seed(stake=Decimal("1.0001"))
        with self.Session() as session:
            self.assertEqual(session.scalar(select(func.count(BinaryTrade.id))), 0)

    def test_multiplier_finer_than_two_places_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            TradingInstrument(
                symbol="ETHUSD", name="ETHUSD pair", payout_multiplier=Decimal("1.955")
            )

    def test_tie_is_a_loss(self) -> None:
        trade_id, user_id = self._seed(direction="down")
        with self.Session.begin() as session:
            result = SettlementExecutor(session).settle_trade(trade_id, Decimal("100"), now=NOW)
        self.assertEqual(result.status, "lost")
        self.assertEqual(result.payout, Decimal("0"))
        self.assertEqual(self.balance(user_id), Decimal("0"))

    def test_settling_twice_is_rejected(self) -> None:
        trade_id, user_id = self._seed(direction="up")
        with self.Session.begin() as session:
            SettlementExecutor(session).settle_trade(trade_id, Decimal("150"), now=NOW)
        with self.assertRaises(AlreadySettled):
            with self.Session.begin() as session:
                SettlementExecutor(session).settle_trade(trade_id, Decimal("150"), now=NOW)
        self.assertEqual(self.balance(user_id), Decimal("19.5"))

    def test_trade_not_yet_expired(self) -> None:
        trade_id, _ = self._seed(expiry=NOW.replace(hour=13))
        with self.assertRaises(NotDue):
            with self.Session.begin() as session:
                SettlementExecutor(session).settle_trade(trade_id, Decimal("101"), now=NOW)

    def test_fail_trade_writes_one_audit_row_and_no_refund(self) -> None:
        trade_id, user_id = self._seed()
        with self.Session.begin() as session:
            result = SettlementExecutor(session).fail_trade(trade_id, "price_unavailable", now=NOW)
        self.assertEqual(result.status, "error")
        self.assertEqual(result.reason, "price_unavailable")
        self.assertEqual(self.balance(user_id), Decimal("0"))
        with self.Session() as session:
            audit = session.scalars(select(TradeAuditLog)).all()
            self.assertEqual(len(audit), 1)
            self.assertEqual(audit[0].action, "trade_error")
            self.assertEqual(audit[0].details["reason"], "price_unavailable")
            self.assertEqual(session.get(BinaryTrade, trade_id).status, "error")

        with self.assertRaises(AlreadySettled):
            with self.Session.begin() as session:
                SettlementExecutor(session).fail_trade(trade_id, "again", now=NOW)

    def test_fail_trade_before_expiry_is_not_due(self) -> None:
        trade_id, _ = self._seed(expiry=NOW.replace(hour=13))
        with self.assertRaises(NotDue):
            with self.Session.begin() as session:
                SettlementExecutor(session).fail_trade(trade_id, "price_unavailable", now=NOW)
        with self.Session() as session:
            self.assertEqual(session.get(BinaryTrade, trade_id).status, "active")
            self.assertEqual(session.scalars(select(TradeAuditLog)).all(), [])


if __name__ == "__main__":
    unittest.main()
