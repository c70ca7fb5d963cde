"""
Alert Duration Tracker
======================

Tells a brief ALERT blip apart from a sustained threat.

On every transition into ALERT a persistence window is opened and polled
once per poll interval. When the window has been open for at least the
threshold, the threat is flagged persistent exactly once and a
PersistentThreatSignal is emitted. Leaving ALERT closes the window and
clears the flag.

This is a pure duration gate. It reads transition events and never
influences the security state.
"""

import logging
import threading
from typing import Callable, List, Optional

from screenguard_agent.agent.scheduler import ScheduledTask, Scheduler
from screenguard_agent.models.state import PersistentThreatSignal, SecurityState, TransitionEvent


logger = logging.getLogger(__name__)


PersistentThreatListener = Callable[[PersistentThreatSignal], None]


class AlertDurationTracker:
    """
    Measures the current unbroken ALERT dwell.

    Attributes:
        threshold_sec: Dwell time after which the threat is persistent
        poll_interval_sec: Resolution of the dwell check
    """

    def __init__(
        self,
        scheduler: Scheduler,
        threshold_sec: float = 60.0,
        poll_interval_sec: float = 1.0,
    ) -> None:
        if threshold_sec <= 0:
            raise ValueError("threshold_sec must be > 0")
        if poll_interval_sec <= 0:
            raise ValueError("poll_interval_sec must be > 0")

        self.threshold_sec = threshold_sec
        self.poll_interval_sec = poll_interval_sec
        self._scheduler = scheduler
        self._lock = threading.RLock()
        self._listeners: List[PersistentThreatListener] = []

        self._window_started_at: Optional[float] = None
        self._poll_task: Optional[ScheduledTask] = None
        self._persistent = False
        self._signals_emitted = 0

        logger.info(
            f"AlertDurationTracker initialized: "
            f"threshold={threshold_sec}s, poll={poll_interval_sec}s"
        )

    def add_listener(self, listener: PersistentThreatListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    @property
    def is_persistent(self) -> bool:
        return self._persistent

    @property
    def window_started_at(self) -> Optional[float]:
        return self._window_started_at

    @property
    def is_tracking(self) -> bool:
        return self._window_started_at is not None

    def alert_duration(self, now: Optional[float] = None) -> float:
        """Seconds spent in the current ALERT dwell, 0 if none."""
        started = self._window_started_at
        if started is None:
            return 0.0
        if now is None:
            now = self._scheduler.now()
        return max(0.0, now - started)

    def on_transition(self, event: TransitionEvent) -> None:
        """Transition listener."""
        with self._lock:
            if event.new_state == SecurityState.ALERT:
                if self._window_started_at is None:
                    self._open_window(event.timestamp)
            elif self._window_started_at is not None:
                self._close_window()

    def check(self, now: Optional[float] = None) -> bool:
        """
        Evaluate the open window. Called by the poll task.

        Returns:
            True if this call flagged the threat as persistent.
        """
        with self._lock:
            if self._window_started_at is None or self._persistent:
                return False
            if now is None:
                now = self._scheduler.now()
            if now - self._window_started_at < self.threshold_sec:
                return False

            self._persistent = True
            self._signals_emitted += 1
            signal = PersistentThreatSignal(
                started_at=self._window_started_at,
                detected_at=now,
            )
            logger.warning(
                f"Persistent threat detected - alert sustained for {signal.duration:.0f}s"
            )
            for listener in list(self._listeners):
                try:
                    listener(signal)
                except Exception:
                    logger.exception("Persistent threat listener failed")
            return True

    def reset(self) -> None:
        """Close any open window and clear the persistent flag."""
        with self._lock:
            self._close_window()

    def _open_window(self, started_at: float) -> None:
        self._window_started_at = started_at
        self._persistent = False
        if self._poll_task is not None:
            self._poll_task.cancel()
        self._poll_task = self._scheduler.call_every(
            self.poll_interval_sec, self.check, name="alert-duration"
        )
        logger.info("Started tracking alert duration")

    def _close_window(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self._window_started_at is not None:
            logger.info("Stopped tracking alert duration")
        self._window_started_at = None
        self._persistent = False

    def get_metrics(self) -> dict:
        return {
            "alert_tracking": self.is_tracking,
            "alert_duration": round(self.alert_duration(), 3),
            "persistent_threat": self._persistent,
            "persistent_signals": self._signals_emitted,
        }
