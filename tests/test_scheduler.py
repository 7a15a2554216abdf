"""Tests for the debounce/throttle save scheduler.

The pure transition function is driven by a virtual clock. The
threaded driver gets hand-fired fake timers.
"""

from __future__ import annotations

import threading
import time

import pytest

from claude_profiles.scheduler import (
    ArmTimer,
    CancelTimer,
    Change,
    SaveCycle,
    SaveFailed,
    SaveScheduler,
    SaveSkipped,
    SaveSucceeded,
    SchedulerState,
    StartSave,
    Stop,
    TimerFired,
    transition,
)
from conftest import RecordingSink

SETTLE = 2.0
INTERVAL = 30.0


def _step(cycle, event, now):
    return transition(cycle, event, now, SETTLE, INTERVAL)


class TestTransition:
    """State-by-state behavior of the pure machine."""

    def test_change_starts_debounce(self) -> None:
        cycle, actions = _step(SaveCycle(), Change(), 0.0)
        assert cycle.state == SchedulerState.DEBOUNCING
        assert cycle.pending
        assert actions == [ArmTimer(SETTLE, 1)]

    def test_change_rearms_and_stale_timer_ignored(self) -> None:
        cycle, _ = _step(SaveCycle(), Change(), 0.0)
        cycle, actions = _step(cycle, Change(), 1.0)
        assert actions == [ArmTimer(SETTLE, 2)]

        same, actions = _step(cycle, TimerFired(1), 2.0)
        assert same == cycle
        assert actions == []

    def test_first_save_not_throttled(self) -> None:
        cycle, _ = _step(SaveCycle(), Change(), 0.0)
        cycle, actions = _step(cycle, TimerFired(cycle.timer_token), 2.0)
        assert cycle.state == SchedulerState.SAVING
        assert actions == [StartSave()]

    def test_throttle_defers_for_remainder(self) -> None:
        cycle = SaveCycle(last_save_at=0.0, save_count=1)
        cycle, _ = _step(cycle, Change(), 5.0)
        cycle, actions = _step(cycle, TimerFired(cycle.timer_token), 7.0)

        assert cycle.state == SchedulerState.WAITING_FOR_THROTTLE
        assert actions == [ArmTimer(23.0, cycle.timer_token)]

    def test_change_while_throttled_keeps_deadline(self) -> None:
        cycle = SaveCycle(last_save_at=0.0)
        cycle, _ = _step(cycle, Change(), 5.0)
        cycle, _ = _step(cycle, TimerFired(cycle.timer_token), 7.0)
        token = cycle.timer_token

        cycle, actions = _step(cycle, Change(), 10.0)
        assert actions == []
        assert cycle.timer_token == token
        assert cycle.state == SchedulerState.WAITING_FOR_THROTTLE

        cycle, actions = _step(cycle, TimerFired(token), 30.0)
        assert cycle.state == SchedulerState.SAVING
        assert actions == [StartSave()]

    def test_change_during_save_is_not_lost(self) -> None:
        cycle = SaveCycle(state=SchedulerState.SAVING, pending=True)
        cycle, actions = _step(cycle, Change(), 1.0)
        assert actions == []
        assert cycle.changed_while_saving

        cycle, actions = _step(cycle, SaveSucceeded(), 2.0)
        assert cycle.state == SchedulerState.DEBOUNCING
        assert cycle.pending
        assert cycle.save_count == 1
        assert actions == [ArmTimer(SETTLE, cycle.timer_token)]

    def test_success_records_baseline(self) -> None:
        cycle = SaveCycle(state=SchedulerState.SAVING, pending=True)
        cycle, actions = _step(cycle, SaveSucceeded(), 12.0)
        assert cycle.state == SchedulerState.IDLE
        assert cycle.last_save_at == 12.0
        assert not cycle.pending
        assert actions == []

    def test_failure_keeps_pending_and_baseline(self) -> None:
        cycle = SaveCycle(state=SchedulerState.SAVING, pending=True, last_save_at=3.0, save_count=2)
        cycle, _ = _step(cycle, SaveFailed("boom"), 50.0)
        assert cycle.state == SchedulerState.IDLE
        assert cycle.pending
        assert cycle.last_save_at == 3.0
        assert cycle.save_count == 2

    def test_skipped_leaves_counter_and_baseline(self) -> None:
        cycle = SaveCycle(state=SchedulerState.SAVING, pending=True, last_save_at=3.0, save_count=2)
        cycle, _ = _step(cycle, SaveSkipped(), 50.0)
        assert cycle.state == SchedulerState.IDLE
        assert not cycle.pending
        assert cycle.last_save_at == 3.0
        assert cycle.save_count == 2

    def test_stop_cancels_pending_cycle(self) -> None:
        cycle, _ = _step(SaveCycle(), Change(), 0.0)
        token = cycle.timer_token
        cycle, actions = _step(cycle, Stop(), 1.0)
        assert cycle.state == SchedulerState.IDLE
        assert actions == [CancelTimer()]

        assert _step(cycle, TimerFired(token), 2.0)[1] == []
        assert _step(cycle, Change(), 3.0) == (cycle, [])

    def test_stop_lets_save_finish(self) -> None:
        cycle = SaveCycle(state=SchedulerState.SAVING, changed_while_saving=True)
        cycle, _ = _step(cycle, Stop(), 1.0)
        assert cycle.state == SchedulerState.SAVING

        cycle, actions = _step(cycle, SaveSucceeded(), 2.0)
        assert cycle.state == SchedulerState.IDLE
        assert cycle.save_count == 1
        assert actions == []


def _simulate(change_times, settle=SETTLE, min_interval=INTERVAL, save_duration=1.0):
    """Run the pure machine against a virtual clock.

    Returns the final cycle and the (start, finish) times of every save.
    """
    cycle = SaveCycle()
    timer = None
    finish_at = None
    saves = []
    changes = sorted(change_times)
    i = 0

    def apply(event, now):
        nonlocal cycle, timer, finish_at
        cycle, actions = transition(cycle, event, now, settle, min_interval)
        for action in actions:
            if isinstance(action, ArmTimer):
                timer = (now + action.delay, action.token)
            elif isinstance(action, CancelTimer):
                timer = None
            elif isinstance(action, StartSave):
                assert finish_at is None, "second save started while one was in flight"
                finish_at = now + save_duration
                saves.append((now, finish_at))

    while True:
        candidates = []
        if i < len(changes):
            candidates.append((changes[i], 0))
        if finish_at is not None:
            candidates.append((finish_at, 1))
        if timer is not None:
            candidates.append((timer[0], 2))
        if not candidates:
            break
        now, kind = min(candidates)
        if kind == 0:
            i += 1
            apply(Change(), now)
        elif kind == 1:
            finish_at = None
            apply(SaveSucceeded(), now)
        else:
            token = timer[1]
            timer = None
            apply(TimerFired(token), now)

    return cycle, saves


class TestSimulation:
    """Whole-run properties over a virtual clock."""

    def test_burst_collapses_to_one_save(self) -> None:
        _, saves = _simulate([0.0, 0.5, 1.0, 1.5])
        assert [start for start, _ in saves] == [3.5]

    @pytest.mark.parametrize("spacing", [0.5, 1.0, 3.0, 7.0, 29.0, 31.0])
    def test_throttle_floor(self, spacing: float) -> None:
        changes = [i * spacing for i in range(60)]
        cycle, saves = _simulate(changes)

        for (_, finished), (started, _) in zip(saves, saves[1:]):
            assert started - finished >= INTERVAL - 1e-9

        assert saves[-1][0] >= changes[-1]
        assert cycle.state == SchedulerState.IDLE
        assert not cycle.pending

    def test_change_during_slow_save(self) -> None:
        cycle, saves = _simulate([0.0, 3.0], save_duration=5.0)
        assert len(saves) == 2
        assert cycle.save_count == 2


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False
        self.started = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.fn()


class FakeTimers:
    def __init__(self):
        self.created = []

    def __call__(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.created.append(timer)
        return timer

    @property
    def live(self):
        live = [t for t in self.created if not t.cancelled]
        return live[-1] if live else None


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _scheduler(save_fn, timers, clock=None, sink=None, min_interval=INTERVAL, spawn="inline"):
    return SaveScheduler(
        save_fn,
        settle=SETTLE,
        min_interval=min_interval,
        clock=clock or Clock(),
        timer_factory=timers,
        spawn=(lambda fn: fn()) if spawn == "inline" else None,
        sink=sink or RecordingSink(),
    )


class TestSaveScheduler:
    """The threaded driver with fake timers."""

    def test_change_then_settle_saves_once(self) -> None:
        calls = []
        timers = FakeTimers()
        sched = _scheduler(lambda: calls.append(1), timers)

        sched.notify_change("modified", "/x")
        sched.notify_change("modified", "/x")
        sched.notify_change("modified", "/x")
        assert len([t for t in timers.created if not t.cancelled]) == 1

        timers.live.fire()

        assert calls == [1]
        assert sched.save_count == 1
        assert sched.state == SchedulerState.IDLE

    def test_cancelled_timer_does_nothing(self) -> None:
        calls = []
        timers = FakeTimers()
        sched = _scheduler(lambda: calls.append(1), timers)

        sched.notify_change()
        first = timers.created[0]
        sched.notify_change()
        first.fn()

        assert calls == []
        assert sched.state == SchedulerState.DEBOUNCING

    def test_throttled_save_reports_wait(self) -> None:
        clock = Clock()
        timers = FakeTimers()
        sink = RecordingSink()
        sched = _scheduler(lambda: None, timers, clock=clock, sink=sink)

        sched.notify_change()
        timers.live.fire()
        clock.now = 10.0
        sched.notify_change()
        timers.live.fire()

        assert sched.state == SchedulerState.WAITING_FOR_THROTTLE
        assert timers.live.delay == pytest.approx(20.0)
        assert "Changes detected, will save in 20 seconds..." in sink.messages()

        clock.now = 30.0
        timers.live.fire()
        assert sched.save_count == 2
        assert "Profile auto-saved (save #2)" in sink.messages()

    def test_failure_reported_and_recovered(self) -> None:
        outcomes = [RuntimeError("boom"), None]
        timers = FakeTimers()
        sink = RecordingSink()

        def save():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome

        sched = _scheduler(save, timers, sink=sink, min_interval=0.0)
        sched.notify_change()
        timers.live.fire()

        assert sched.save_count == 0
        assert sched.state == SchedulerState.IDLE
        assert "Failed to auto-save: boom" in sink.messages()

        sched.notify_change()
        timers.live.fire()
        assert sched.save_count == 1

    def test_skipped_save_not_counted(self) -> None:
        timers = FakeTimers()
        sched = _scheduler(lambda: "skipped", timers)
        sched.notify_change()
        timers.live.fire()
        assert sched.save_count == 0
        assert sched.saves_started == 1

    def test_stop_cancels_pending(self) -> None:
        calls = []
        timers = FakeTimers()
        sink = RecordingSink()
        sched = _scheduler(lambda: calls.append(1), timers, sink=sink)

        sched.notify_change()
        sched.stop()
        assert timers.created[0].cancelled
        assert "Cancelled pending save" in sink.messages()

        sched.notify_change()
        assert timers.live is None
        assert calls == []
        assert sched.wait_idle(timeout=0.1)

    def test_single_flight_with_threads(self) -> None:
        entered = threading.Event()
        release = threading.Event()
        lock = threading.Lock()
        running = [0]
        peak = [0]
        calls = [0]

        def save():
            with lock:
                running[0] += 1
                calls[0] += 1
                peak[0] = max(peak[0], running[0])
            entered.set()
            release.wait(timeout=5)
            with lock:
                running[0] -= 1

        timers = FakeTimers()
        sched = _scheduler(save, timers, min_interval=0.0, spawn="thread")

        sched.notify_change()
        timers.live.fire()
        assert entered.wait(timeout=5)

        for _ in range(5):
            sched.notify_change()
        assert sched.state == SchedulerState.SAVING

        release.set()
        assert _wait_for(lambda: sched.state == SchedulerState.DEBOUNCING)

        timers.live.fire()
        assert sched.wait_idle(timeout=5)
        assert calls[0] == 2
        assert peak[0] == 1
        assert sched.save_count == 2
