# carteira/services/market_data/scheduler.py
"""
Periodic background task runner used for the scheduled price refresh.

The job is registered on a private ``schedule.Scheduler`` and driven by a
single daemon thread: wait ``initial_delay`` seconds, run the job, then
call ``run_pending()`` whenever the next run is due. Waiting is done on an
Event, so stop() interrupts a pending wait immediately; a job that is
already running is allowed to finish (up to the stop timeout).
"""

import logging
import threading
from collections.abc import Callable

import schedule

logger = logging.getLogger(__name__)


class PriceRefreshScheduler:
    """
    Fixed-interval scheduler with start/stop lifecycle.

    Example:
        scheduler = PriceRefreshScheduler(service.refresh_now, initial_delay=10, interval=300)
        scheduler.start()
        ...
        scheduler.stop(timeout=5)
    """

    def __init__(
            self,
            job: Callable[[], object],
            initial_delay: float,
            interval: float,
            name: str = "price-refresh-scheduler",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._job = job
        self._initial_delay = max(initial_delay, 0)
        self._interval = interval
        self._name = name
        self._scheduler = schedule.Scheduler()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._runs = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def run_count(self) -> int:
        return self._runs

    @property
    def jobs(self) -> list[schedule.Job]:
        return list(self._scheduler.jobs)

    def start(self) -> None:
        """Start the scheduler thread. Calling start() twice is a no-op."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._scheduler.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()
        logger.info(
            f"Scheduler '{self._name}' started "
            f"(initial_delay={self._initial_delay}s, interval={self._interval}s)"
        )

    def stop(self, timeout: float | None = None) -> bool:
        """
        Signal the thread to stop and wait for it.

        Returns:
            True if the thread exited within the timeout
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        stopped = not thread.is_alive()
        if stopped:
            self._scheduler.clear()
            logger.info(f"Scheduler '{self._name}' stopped after {self._runs} run(s)")
        else:
            logger.warning(f"Scheduler '{self._name}' did not stop within {timeout}s")
        self._thread = None
        return stopped

    def _loop(self) -> None:
        if self._stop_event.wait(self._initial_delay):
            return

        self._scheduler.every(self._interval).seconds.do(self._run_once).tag(self._name)
        # First run is due now; run_all() also reschedules it one interval ahead
        self._scheduler.run_all()

        while not self._stop_event.is_set():
            idle = self._scheduler.idle_seconds
            if idle is None:
                return
            if self._stop_event.wait(max(idle, 0)):
                return
            self._scheduler.run_pending()

    def _run_once(self) -> None:
        self._runs += 1
        try:
            self._job()
        except Exception:
            # The next tick must still happen
            logger.exception(f"Scheduled job '{self._name}' failed")
