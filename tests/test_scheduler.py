import threading
from datetime import datetime, timedelta

from node_life_support.controller.fleet_sync import CycleReport
from node_life_support.infrastructure.error_handling import (
    BackoffConfig,
    CycleBackoff,
    NodeSyncError,
    SyncError,
)
from node_life_support.infrastructure.scheduler import (
    BackgroundScheduler,
    SchedulerState,
    next_tick_at,
)


class FakeFleet:
    """Plays back a script of results; exceptions are raised, callables are called."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self.states = []
        self.scheduler = None

    def sync_all_nodes(self):
        self.calls += 1
        self.states.append(self.scheduler.state if self.scheduler else None)
        result = self.results.pop(0) if self.results else CycleReport()
        if callable(result):
            result = result()
        if isinstance(result, BaseException):
            raise result
        return result


def _scheduler(fleet, **kwargs):
    sched = BackgroundScheduler(fleet, poll_seconds=0.01, **kwargs)
    fleet.scheduler = sched
    return sched


def test_run_tick_reports_and_returns_to_idle():
    report = CycleReport(succeeded=["n1"])
    fleet = FakeFleet(report)
    sched = _scheduler(fleet)

    assert sched.run_tick() is report
    assert fleet.states == [SchedulerState.RUNNING]
    assert sched.state is SchedulerState.IDLE
    assert sched.last_report is report
    assert sched.last_error is None


def test_cycle_error_is_reported_and_next_tick_still_runs():
    fleet = FakeFleet(SyncError("list nodes", RuntimeError("unreachable")), CycleReport(succeeded=["n1"]))
    sched = _scheduler(fleet)

    assert sched.run_tick() is None
    assert isinstance(sched.last_error, SyncError)
    assert sched.state is SchedulerState.IDLE

    assert sched.run_tick().succeeded == ["n1"]
    assert sched.last_error is None
    assert fleet.calls == 2


def test_unexpected_cycle_exception_does_not_escape():
    fleet = FakeFleet(RuntimeError("bug"))
    sched = _scheduler(fleet)

    assert sched.run_tick() is None
    assert sched.last_error.operation == "sync nodes"


def test_node_failures_do_not_trigger_backoff():
    backoff = CycleBackoff(BackoffConfig(initial_delay=30, max_delay=300))
    partial = CycleReport(succeeded=["n3"], failed={"n1": NodeSyncError("n1", "update lease", RuntimeError("x"))})
    sched = _scheduler(FakeFleet(partial), interval_seconds=30, backoff=backoff)

    sched.run_tick()

    assert backoff.consecutive_failures == 0
    assert backoff.next_delay() == 30


def test_cycle_failures_trigger_backoff_when_enabled():
    backoff = CycleBackoff(BackoffConfig(initial_delay=30, max_delay=300))
    err = SyncError("list nodes", RuntimeError("down"))
    sched = _scheduler(FakeFleet(err, err, CycleReport()), interval_seconds=30, backoff=backoff)

    sched.run_tick()
    assert backoff.next_delay() == 60
    sched.run_tick()
    assert backoff.next_delay() == 120
    sched.run_tick()
    assert backoff.next_delay() == 30


def test_next_tick_is_anchored_on_cycle_start():
    started = datetime(2024, 1, 1, 12, 0, 0)

    assert next_tick_at(started, started + timedelta(seconds=5), 30) == started + timedelta(seconds=30)


def test_overrunning_cycle_defers_next_tick_without_queueing():
    started = datetime(2024, 1, 1, 12, 0, 0)
    finished = started + timedelta(seconds=95)

    # Three periods were missed; the next cycle starts once, right away.
    assert next_tick_at(started, finished, 30) == finished


def test_run_forever_runs_first_cycle_immediately_and_stops():
    fleet = FakeFleet()
    sched = _scheduler(fleet, interval_seconds=3600)
    fleet.results = [lambda: (sched.stop(), CycleReport())[1]]

    sched.run_forever()

    assert fleet.calls == 1
    assert sched.state is SchedulerState.IDLE


def test_run_forever_keeps_going_after_cycle_error():
    fleet = FakeFleet()
    sched = _scheduler(fleet, interval_seconds=1)
    fleet.results = [
        SyncError("list nodes", RuntimeError("down")),
        lambda: (sched.stop(), CycleReport())[1],
    ]

    sched.run_forever()

    assert fleet.calls == 2
    assert sched.cycles == 2


def test_start_and_stop_background_thread():
    ran = threading.Event()

    def cycle():
        ran.set()
        return CycleReport()

    fleet = FakeFleet(cycle)
    sched = _scheduler(fleet, interval_seconds=3600)

    sched.start()
    assert ran.wait(timeout=5)
    sched.stop()

    assert not sched.running
    assert fleet.calls == 1
