import threading
import unittest

from prizeledger.scheduling.timer import RecurringTimer


class RecurringTimerTests(unittest.TestCase):
    def test_rejects_non_positive_interval(self) -> None:
        with self.assertRaises(ValueError):
            RecurringTimer("bad", 0, lambda: None)

    def test_failures_are_counted_not_raised(self) -> None:
        def job():
            raise RuntimeError("tick failed")

        timer = RecurringTimer("failing", 1, job)
        with self.assertLogs("prizeledger.scheduling.timer", level="ERROR"):
            self.assertTrue(timer.trigger())
        self.assertEqual(timer.failures, 1)
        self.assertEqual(timer.runs, 0)

    def test_overlapping_tick_is_skipped(self) -> None:
        entered = threading.Event()
        release = threading.Event()

        def slow_job():
            entered.set()
            release.wait(5)

        timer = RecurringTimer("slow", 1, slow_job)
        worker = threading.Thread(target=timer.trigger)
        worker.start()
        self.assertTrue(entered.wait(5))

        self.assertFalse(timer.trigger())
        self.assertEqual(timer.skipped, 1)

        release.set()
        worker.join(5)
        self.assertEqual(timer.runs, 1)

    def test_start_runs_immediately_and_stop_joins(self) -> None:
        ran = threading.Event()
        timer = RecurringTimer("quick", 60, ran.set)
        timer.start()
        try:
            self.assertTrue(ran.wait(5))
            self.assertTrue(timer.is_alive)
        finally:
            timer.stop(5)
        self.assertFalse(timer.is_alive)


if __name__ == "__main__":
    unittest.main()
