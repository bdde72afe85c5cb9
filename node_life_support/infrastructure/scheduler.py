from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

import schedule

from ..controller.fleet_sync import CycleReport, FleetSync
from . import metrics
from .error_handling import BackoffConfig, CycleBackoff, SyncError

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def next_tick_at(started: datetime, now: datetime, delay_seconds: float) -> datetime:
    """When the next cycle may start.

    The period is measured from the start of the previous cycle. A cycle that
    overran its period is followed immediately; missed ticks are dropped.
    """
    return max(started + timedelta(seconds=delay_seconds), now)


class BackgroundScheduler:
    """Runs one fleet sync per tick, forever, one cycle at a time."""

    def __init__(
        self,
        fleet: FleetSync,
        interval_seconds: int = 30,
        backoff: Optional[CycleBackoff] = None,
        poll_seconds: float = 1.0,
    ) -> None:
        self.fleet = fleet
        self.interval_seconds = interval_seconds
        self.backoff = backoff or CycleBackoff(BackoffConfig(initial_delay=interval_seconds))
        self.poll_seconds = poll_seconds
        self.state = SchedulerState.IDLE
        self.cycles = 0
        self.last_report: Optional[CycleReport] = None
        self.last_error: Optional[SyncError] = None
        self.thread: Optional[threading.Thread] = None
        self._schedule = schedule.Scheduler()
        self._job: Optional[schedule.Job] = None
        self._last_started: Optional[datetime] = None
        self._stop = threading.Event()

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.thread = threading.Thread(target=self.run_forever, name="node-life-support", daemon=True)
        self.thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Ask the loop to exit once the in-flight cycle (if any) completes."""
        self._stop.set()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)

    def run_forever(self) -> None:
        logger.info(
            f"node-life-support controller starting, syncing every {self.interval_seconds}s"
        )
        self._job = self._schedule.every(self.interval_seconds).seconds.do(self._tick)
        # First cycle runs right away.
        self._job.next_run = datetime.now()
        try:
            while not self._stop.is_set():
                self._schedule.run_pending()
                self._reschedule()
                idle = self._schedule.idle_seconds
                wait = self.poll_seconds if idle is None else min(max(idle, 0.0), self.poll_seconds)
                self._stop.wait(wait)
        finally:
            self._schedule.clear()
            self._job = None
            logger.info("node-life-support controller stopped")

    def _tick(self) -> None:
        self._last_started = datetime.now()
        self.run_tick()

    def _reschedule(self) -> None:
        # schedule measures the period from the end of the job; re-anchor it
        # on the start of the cycle instead.
        if self._job is None or self._last_started is None:
            return
        delay = self.backoff.next_delay()
        self._job.next_run = next_tick_at(self._last_started, datetime.now(), delay)
        if delay > self.interval_seconds:
            logger.info(f"Backing off: next sync in {delay:.0f}s")
        self._last_started = None

    def run_tick(self) -> Optional[CycleReport]:
        """Run exactly one cycle. Never raises for cycle or node failures."""
        self.state = SchedulerState.RUNNING
        self.cycles += 1
        start = time.monotonic()
        try:
            report = self.fleet.sync_all_nodes()
        except SyncError as e:
            logger.error(f"sync error: {e}")
            self.last_error = e
            self.backoff.record_failure()
            metrics.CYCLES.labels("error").inc()
            return None
        except Exception as e:
            logger.exception(f"Unexpected sync failure: {e}")
            self.last_error = SyncError("sync nodes", e)
            self.backoff.record_failure()
            metrics.CYCLES.labels("error").inc()
            return None
        else:
            self.last_report = report
            self.last_error = None
            self.backoff.record_success()
            metrics.CYCLES.labels("ok").inc()
            metrics.LAST_SUCCESS.set_to_current_time()
            logger.info(f"Sync cycle complete: {report.summary()}")
            return report
        finally:
            metrics.CYCLE_LATENCY.observe(time.monotonic() - start)
            self.state = SchedulerState.IDLE
