"""Recurring timer that runs one job on a fixed interval in a background thread."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RecurringTimer:
    """Run ``job`` every ``interval`` seconds until stopped.

    A tick is skipped when the previous run of the same job is still in
    progress. Exceptions raised by ``job`` are logged and counted; they never
    stop the timer.

    Parameters
    ----------
    name : str
        Name used in thread names and log messages.
    interval : float
        Seconds between the end of one wait and the start of the next run.
    job : Callable[[], object]
        Zero-argument callable invoked on every tick.
    run_immediately : bool, default: True
        Run once as soon as the timer starts instead of waiting one interval.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        job: Callable[[], object],
        *,
        run_immediately: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._job = job
        self._run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._running = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0
        self.failures = 0
        self.skipped = 0

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name=f"timer-{self.name}", daemon=True
        )
        self._thread.start()
        logger.info(f"Timer {self.name} started (every {self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"Timer {self.name} stopped")

    def trigger(self) -> bool:
        """Run the job now on the calling thread.

        Returns
        -------
        bool
            ``False`` when the tick was skipped because a run is in progress.
        """
        if not self._running.acquire(blocking=False):
            self.skipped += 1
            logger.debug(f"Timer {self.name}: previous run still active, skipping")
            return False
        try:
            self._job()
            self.runs += 1
        except Exception:
            self.failures += 1
            logger.exception(f"Timer {self.name}: job failed ({self.failures} failures)")
        finally:
            self._running.release()
        return True

    def _loop(self) -> None:
        if self._run_immediately:
            self.trigger()
        while not self._stop_event.wait(self.interval):
            self.trigger()


__all__ = ["RecurringTimer"]
