"""
Scheduled Callbacks
===================

Cancellable deferred and repeating callbacks used by the decision pipeline.

Two users:
    - SecurityStateMachine arms a single-shot escalation timer on WARNING
    - AlertDurationTracker polls the ALERT dwell once per second

Implementations:
    - ThreadingScheduler: real time, one daemon thread per task
    - ManualScheduler: manual clock for tests and offline replay, tasks
      fire only when advance() moves the clock past their due time

Design Rules:
    - cancel() is idempotent and never raises
    - A cancelled task never fires again
    - A callback that raises is logged; it never kills the scheduler
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Protocol, Tuple


logger = logging.getLogger(__name__)


Callback = Callable[[], None]


class ScheduledTask:
    """
    Handle for a scheduled callback.

    Attributes:
        due_at: Clock time of the next firing
        interval: Repeat interval, None for single-shot tasks
        name: Label used in logs
    """

    def __init__(
        self,
        callback: Callback,
        due_at: float,
        interval: Optional[float] = None,
        name: str = "task",
    ) -> None:
        self.callback = callback
        self.due_at = due_at
        self.interval = interval
        self.name = name
        self.fire_count: int = 0
        self._cancel_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    @property
    def active(self) -> bool:
        """True until cancelled, or until a single-shot task has fired."""
        if self.cancelled:
            return False
        return self.repeating or self.fire_count == 0

    def cancel(self) -> None:
        """Cancel the task. Safe to call any number of times."""
        self._cancel_event.set()

    def _run(self) -> None:
        self.fire_count += 1
        try:
            self.callback()
        except Exception:
            logger.exception(f"Scheduled callback '{self.name}' failed")

    def __repr__(self) -> str:
        kind = f"every {self.interval}s" if self.repeating else "once"
        return f"ScheduledTask({self.name}, due={self.due_at:.3f}, {kind}, active={self.active})"


class Scheduler(Protocol):
    """Source of time and of cancellable callbacks."""

    def now(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callback, name: str = "task") -> ScheduledTask:
        ...

    def call_every(self, interval: float, callback: Callback, name: str = "task") -> ScheduledTask:
        ...


class ThreadingScheduler:
    """
    Real-time scheduler backed by daemon threads.

    Callbacks run on their own thread; callers are responsible for
    serializing them with their own state (the state machine holds a lock).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def call_later(self, delay: float, callback: Callback, name: str = "task") -> ScheduledTask:
        task = ScheduledTask(callback, self.now() + delay, name=name)

        def _wait_and_fire() -> None:
            if not task._cancel_event.wait(max(0.0, delay)):
                task._run()

        threading.Thread(target=_wait_and_fire, name=f"sched-{name}", daemon=True).start()
        return task

    def call_every(self, interval: float, callback: Callback, name: str = "task") -> ScheduledTask:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        task = ScheduledTask(callback, self.now() + interval, interval=interval, name=name)

        def _loop() -> None:
            while not task._cancel_event.wait(interval):
                task._run()
                task.due_at = self.now() + interval

        threading.Thread(target=_loop, name=f"sched-{name}", daemon=True).start()
        return task


class ManualScheduler:
    """
    Deterministic scheduler driven by an explicit clock.

    Nothing fires until advance() or run_until() moves time forward. Tasks
    due at the same instant fire in scheduling order.

    Example:
        scheduler = ManualScheduler()
        task = scheduler.call_later(2.0, on_timeout)
        scheduler.advance(1.9)   # nothing
        scheduler.advance(0.1)   # on_timeout() runs at t=2.0
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: List[Tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()
        self._lock = threading.RLock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback, name: str = "task") -> ScheduledTask:
        task = ScheduledTask(callback, self._now + max(0.0, delay), name=name)
        self._push(task)
        return task

    def call_every(self, interval: float, callback: Callback, name: str = "task") -> ScheduledTask:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        task = ScheduledTask(callback, self._now + interval, interval=interval, name=name)
        self._push(task)
        return task

    @property
    def pending(self) -> List[ScheduledTask]:
        """Active tasks still waiting to fire, in due order."""
        with self._lock:
            return [t for _, _, t in sorted(self._queue) if not t.cancelled]

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every task that comes due."""
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        return self.run_until(self._now + seconds)

    def run_until(self, target: float) -> int:
        """
        Fire due tasks in order up to and including target.

        Returns:
            Number of callbacks executed.
        """
        fired = 0
        with self._lock:
            while self._queue and self._queue[0][0] <= target:
                due_at, _, task = heapq.heappop(self._queue)
                if task.cancelled:
                    continue
                self._now = max(self._now, due_at)
                task._run()
                fired += 1
                if task.repeating and not task.cancelled:
                    task.due_at = due_at + task.interval
                    self._push(task)
            self._now = max(self._now, target)
        return fired

    def _push(self, task: ScheduledTask) -> None:
        with self._lock:
            heapq.heappush(self._queue, (task.due_at, next(self._seq), task))
