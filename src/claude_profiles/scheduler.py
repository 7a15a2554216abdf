"""Debounce/throttle save scheduler.

Decides *when* watch mode saves and guarantees only one save runs at a
time.

States:
- IDLE: Nothing pending.
- DEBOUNCING: A change arrived, waiting for a quiet period of ``settle``.
- WAITING_FOR_THROTTLE: Settled, but the last save finished less than
  ``min_interval`` ago. A deferred attempt is armed for the remainder.
- SAVING: Build + upload in flight.

Transitions:
- IDLE + change -> DEBOUNCING (arm settle timer)
- DEBOUNCING + change -> DEBOUNCING (re-arm settle timer)
- DEBOUNCING + timer, interval elapsed -> SAVING
- DEBOUNCING + timer, interval not elapsed -> WAITING_FOR_THROTTLE
- WAITING_FOR_THROTTLE + change -> WAITING_FOR_THROTTLE (recorded only)
- WAITING_FOR_THROTTLE + timer -> SAVING (always flushes)
- SAVING + change -> SAVING (recorded, acted on after the save)
- SAVING + success -> IDLE, or DEBOUNCING if changes arrived meanwhile
- SAVING + skipped -> same as success, baseline and counter untouched
- SAVING + failure -> IDLE with pending kept, baseline untouched
- any + stop -> IDLE (an in-flight save still finishes)

``transition`` is a pure function over ``SaveCycle`` so the machine can
be exercised with a virtual clock. ``SaveScheduler`` drives it with real
timers and a worker thread.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Union

from .sink import LogSink

DEFAULT_SETTLE_SECONDS = 2.0
DEFAULT_MIN_SAVE_INTERVAL = 30.0


class SchedulerState(str, Enum):
    """Scheduler states."""

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    WAITING_FOR_THROTTLE = "waiting_for_throttle"
    SAVING = "saving"


# -- events -----------------------------------------------------------------


@dataclass(frozen=True)
class Change:
    """A file-system (or credential) change was observed."""

    kind: str = "modified"
    path: str = ""


@dataclass(frozen=True)
class TimerFired:
    """The armed timer with this token expired."""

    token: int


@dataclass(frozen=True)
class SaveSucceeded:
    pass


@dataclass(frozen=True)
class SaveSkipped:
    """The save found nothing new to upload."""


@dataclass(frozen=True)
class SaveFailed:
    error: str = ""


@dataclass(frozen=True)
class Stop:
    pass


Event = Union[Change, TimerFired, SaveSucceeded, SaveSkipped, SaveFailed, Stop]


# -- actions ----------------------------------------------------------------


@dataclass(frozen=True)
class ArmTimer:
    """Arm the single scheduler timer. Replaces any armed timer."""

    delay: float
    token: int


@dataclass(frozen=True)
class CancelTimer:
    pass


@dataclass(frozen=True)
class StartSave:
    pass


Action = Union[ArmTimer, CancelTimer, StartSave]


@dataclass(frozen=True)
class SaveCycle:
    """Scheduler state for one watched profile.

    Attributes:
        state: Current state.
        last_save_at: Clock time the last successful save finished.
        pending: Changes observed that no successful save has covered.
        changed_while_saving: A change arrived during the current save.
        timer_token: Token of the armed timer; stale fires are ignored.
        save_count: Number of successful saves.
        stopped: Stop was requested; no new cycle starts.
    """

    state: SchedulerState = SchedulerState.IDLE
    last_save_at: Optional[float] = None
    pending: bool = False
    changed_while_saving: bool = False
    timer_token: int = 0
    save_count: int = 0
    stopped: bool = False


def _arm(cycle: SaveCycle, state: SchedulerState, delay: float) -> tuple[SaveCycle, list[Action]]:
    token = cycle.timer_token + 1
    return replace(cycle, state=state, timer_token=token), [ArmTimer(delay, token)]


def _remaining(cycle: SaveCycle, now: float, min_interval: float) -> float:
    if cycle.last_save_at is None:
        return 0.0
    return max(0.0, min_interval - (now - cycle.last_save_at))


def _after_save(cycle: SaveCycle, settle: float) -> tuple[SaveCycle, list[Action]]:
    if cycle.changed_while_saving and not cycle.stopped:
        return _arm(
            replace(cycle, pending=True, changed_while_saving=False),
            SchedulerState.DEBOUNCING,
            settle,
        )
    return replace(cycle, state=SchedulerState.IDLE, changed_while_saving=False), []


def transition(
    cycle: SaveCycle,
    event: Event,
    now: float,
    settle: float = DEFAULT_SETTLE_SECONDS,
    min_interval: float = DEFAULT_MIN_SAVE_INTERVAL,
) -> tuple[SaveCycle, list[Action]]:
    """Apply one event to the scheduler state.

    Args:
        cycle: Current state.
        event: What happened.
        now: Current clock reading in seconds.
        settle: Debounce quiet period.
        min_interval: Minimum time between completed saves.

    Returns:
        The new state and the actions the driver must perform.
    """
    state = cycle.state

    if isinstance(event, Stop):
        stopped = replace(cycle, stopped=True, timer_token=cycle.timer_token + 1)
        if state == SchedulerState.SAVING:
            return stopped, [CancelTimer()]
        return replace(stopped, state=SchedulerState.IDLE), [CancelTimer()]

    if isinstance(event, Change):
        if cycle.stopped:
            return cycle, []
        if state in (SchedulerState.IDLE, SchedulerState.DEBOUNCING):
            return _arm(replace(cycle, pending=True), SchedulerState.DEBOUNCING, settle)
        if state == SchedulerState.WAITING_FOR_THROTTLE:
            return replace(cycle, pending=True), []
        return replace(cycle, pending=True, changed_while_saving=True), []

    if isinstance(event, TimerFired):
        if event.token != cycle.timer_token or cycle.stopped:
            return cycle, []
        if state == SchedulerState.DEBOUNCING:
            wait = _remaining(cycle, now, min_interval)
            if wait <= 0:
                return replace(cycle, state=SchedulerState.SAVING), [StartSave()]
            return _arm(cycle, SchedulerState.WAITING_FOR_THROTTLE, wait)
        if state == SchedulerState.WAITING_FOR_THROTTLE:
            return replace(cycle, state=SchedulerState.SAVING), [StartSave()]
        return cycle, []

    if state != SchedulerState.SAVING:
        return cycle, []

    if isinstance(event, SaveSucceeded):
        done = replace(
            cycle,
            last_save_at=now,
            pending=False,
            save_count=cycle.save_count + 1,
        )
        return _after_save(done, settle)

    if isinstance(event, SaveSkipped):
        return _after_save(replace(cycle, pending=False), settle)

    if isinstance(event, SaveFailed):
        return _after_save(cycle, settle)

    return cycle, []


class SaveScheduler:
    """Drives ``transition`` with real timers.

    Change notifications may come from any thread. All state changes
    happen under one lock and timers are armed and cancelled under it.
    Saves run outside it. Only the ``StartSave`` action invokes
    ``save_fn``, and the machine never emits it while a save is in flight.

    Args:
        save_fn: Performs build + upload. Returns ``"skipped"`` when there
            was nothing new to upload; raises on failure.
        settle: Debounce quiet period in seconds.
        min_interval: Minimum seconds between completed saves.
        clock: Monotonic clock. Injectable for tests.
        timer_factory: ``(delay, callback) -> timer`` with ``start``/``cancel``.
        spawn: Runs a callable in the background. Defaults to a daemon thread.
        sink: Where progress events go.
    """

    def __init__(
        self,
        save_fn: Callable[[], Optional[str]],
        settle: float = DEFAULT_SETTLE_SECONDS,
        min_interval: float = DEFAULT_MIN_SAVE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Optional[Callable[[float, Callable[[], None]], object]] = None,
        spawn: Optional[Callable[[Callable[[], None]], None]] = None,
        sink: Optional[LogSink] = None,
    ):
        self.save_fn = save_fn
        self.settle = settle
        self.min_interval = min_interval
        self.clock = clock
        self.timer_factory = timer_factory or threading.Timer
        self.spawn = spawn or self._spawn_thread
        self.sink = sink or LogSink("claude_profiles.scheduler")

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._cycle = SaveCycle()
        self._timer = None
        self.saves_started = 0

    @property
    def cycle(self) -> SaveCycle:
        with self._lock:
            return self._cycle

    @property
    def state(self) -> SchedulerState:
        return self.cycle.state

    @property
    def save_count(self) -> int:
        return self.cycle.save_count

    def notify_change(self, kind: str = "modified", path: str = "") -> None:
        """Record a change notification."""
        self.sink.debug("File change detected: %s on %s", kind, path or "unknown")
        self._dispatch(Change(kind, path))

    def stop(self) -> None:
        """Cancel timers. A save in flight is left to finish."""
        self._dispatch(Stop())

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no timer is armed and no save is running.

        Returns:
            True if the scheduler went idle before the timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._cycle.state != SchedulerState.IDLE:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
            return True

    def _dispatch(self, event: Event) -> None:
        with self._lock:
            before = self._cycle
            self._cycle, actions = transition(
                before, event, self.clock(), self.settle, self.min_interval
            )
            after = self._cycle
            start_save = self._perform(actions)
            if after.state == SchedulerState.IDLE:
                self._idle.notify_all()
        self._report(before, after, event)
        if start_save:
            self.saves_started += 1
            self.spawn(self._run_save)

    def _report(self, before: SaveCycle, after: SaveCycle, event: Event) -> None:
        if before.state == after.state and not isinstance(event, (SaveSucceeded, SaveFailed)):
            return
        if after.state == SchedulerState.WAITING_FOR_THROTTLE:
            wait = _remaining(after, self.clock(), self.min_interval)
            self.sink.info("Changes detected, will save in %d seconds...", round(wait))
        elif isinstance(event, SaveSucceeded):
            self.sink.info("Profile auto-saved (save #%d)", after.save_count)
        elif isinstance(event, SaveFailed):
            self.sink.error("Failed to auto-save: %s", event.error)
        elif isinstance(event, SaveSkipped):
            self.sink.debug("No content changes since last save, upload skipped")
        elif isinstance(event, Stop) and before.state != SchedulerState.IDLE:
            self.sink.info("Cancelled pending save")

    def _perform(self, actions: list[Action]) -> bool:
        """Apply timer actions. Called with the lock held.

        Returns:
            True if a save must be started.
        """
        start_save = False
        for action in actions:
            if isinstance(action, CancelTimer):
                self._cancel_timer()
            elif isinstance(action, ArmTimer):
                self._cancel_timer()
                timer = self.timer_factory(
                    action.delay,
                    lambda token=action.token: self._dispatch(TimerFired(token)),
                )
                if hasattr(timer, "daemon"):
                    timer.daemon = True
                self._timer = timer
                timer.start()
            elif isinstance(action, StartSave):
                start_save = True
        return start_save

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _run_save(self) -> None:
        self.sink.info("Changes detected, saving profile...", detail=True)
        try:
            outcome = self.save_fn()
        except Exception as exc:
            self._dispatch(SaveFailed(str(exc)))
            return
        self._dispatch(SaveSkipped() if outcome == "skipped" else SaveSucceeded())

    @staticmethod
    def _spawn_thread(fn: Callable[[], None]) -> None:
        threading.Thread(target=fn, name="profile-save", daemon=True).start()
