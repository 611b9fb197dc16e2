import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import select

from prizeledger.errors import AlreadySettled
from prizeledger.models import Draw
from prizeledger.scheduling.draw_scheduler import DrawScheduler

from support import NOW, LedgerTestCase


class DrawSchedulerTests(LedgerTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.notified = []
        self.scheduler = DrawScheduler(
            self.Session, rng=self.rng, notifier=self.notified.append, clock=lambda: NOW
        )
        with self.Session.begin() as session:
            daily = self.make_lottery(session, "daily")
            weekly = self.make_lottery(session, "weekly")
            due = self.make_draw(session, daily, total_prize_pool=Decimal("100"))
            self.make_tickets(session, due, self.make_users(session, 3))
            cancelled = self.make_draw(
                session, weekly, total_prize_pool=Decimal("50"), status="cancelled"
            )
            self.due_id, self.cancelled_id = due.id, cancelled.id

    def test_settles_due_draws_and_fills_calendar(self) -> None:
        report = self.scheduler.run_once()

        self.assertEqual([r.draw_id for r in report.settled], [self.due_id])
        self.assertEqual(report.failed, [])
        self.assertEqual(self.notified, report.settled)
        self.assertEqual(len(report.scheduled), 2)

        with self.Session() as session:
            self.assertEqual(session.get(Draw, self.due_id).status, "completed")
            self.assertEqual(session.get(Draw, self.cancelled_id).status, "cancelled")
            upcoming = session.scalars(
                select(Draw).where(Draw.id.in_(report.scheduled)).order_by(Draw.id)
            ).all()
            dates = [d.draw_date.replace(tzinfo=timezone.utc) for d in upcoming]
            self.assertEqual(
                dates,
                [
                    datetime(2026, 10, 18, 21, 0, tzinfo=timezone.utc),
                    datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc),
                ],
            )

    def test_second_run_is_a_no_op(self) -> None:
        self.scheduler.run_once()
        report = self.scheduler.run_once()
        self.assertEqual(report.settled, [])
        self.assertEqual(report.scheduled, [])

    def test_future_draws_wait(self) -> None:
        report = self.scheduler.run_once(NOW - timedelta(hours=1))
        self.assertEqual(report.settled, [])
        with self.Session() as session:
            self.assertEqual(session.get(Draw, self.due_id).status, "scheduled")

    def test_lost_race_is_skipped(self) -> None:
        with patch.object(
            DrawScheduler, "settle_one", side_effect=AlreadySettled("settled elsewhere")
        ):
            report = self.scheduler.run_once()
        self.assertEqual(report.skipped, [self.due_id])
        self.assertEqual(report.failed, [])

    def test_failures_are_isolated_per_draw(self) -> None:
        with patch.object(DrawScheduler, "settle_one", side_effect=RuntimeError("boom")):
            with self.assertLogs("prizeledger.scheduling.draw_scheduler", level="ERROR"):
                report = self.scheduler.run_once()
        self.assertEqual(report.failed, [self.due_id])
        self.assertEqual(len(report.scheduled), 2)

    def test_notifier_errors_do_not_undo_settlement(self) -> None:
        def broken(result):
            raise RuntimeError("push service down")

        scheduler = DrawScheduler(self.Session, rng=self.rng, notifier=broken, clock=lambda: NOW)
        with self.assertLogs("prizeledger.scheduling.draw_scheduler", level="ERROR"):
            report = scheduler.run_once()
        self.assertEqual(len(report.settled), 1)
        with self.Session() as session:
            self.assertEqual(session.get(Draw, self.due_id).status, "completed")


if __name__ == "__main__":
    unittest.main()
