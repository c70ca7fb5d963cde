"""
Notification Gate
=================

Decides whether a transition deserves a user-facing notification.

A transition passes when ALL of:
    1. The cooldown has elapsed since the last notification
       (waived for an escalation above the last notified state)
    2. The new state differs from the last notified state
    3. The new state is WARNING or ALERT

On a pass the gate records the time and state atomically; the caller is
then responsible for invoking the notifier exactly once.
"""

import logging
import threading
import time
from typing import Callable, Optional

from screenguard_agent.models.state import SecurityState, TransitionEvent


logger = logging.getLogger(__name__)


_NOTIFIABLE = frozenset({SecurityState.WARNING, SecurityState.ALERT})


class NotificationGate:
    """
    Cooldown and relevance filter in front of the notifier.

    Attributes:
        cooldown_sec: Minimum seconds between two notifications
        escalation_bypasses_cooldown: Let WARNING -> ALERT through the cooldown
    """

    def __init__(
        self,
        cooldown_sec: float = 5.0,
        escalation_bypasses_cooldown: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if cooldown_sec < 0:
            raise ValueError("cooldown_sec must be >= 0")

        self.cooldown_sec = cooldown_sec
        self.escalation_bypasses_cooldown = escalation_bypasses_cooldown
        self._clock = clock
        self._lock = threading.Lock()

        self._last_notified_at: Optional[float] = None
        self._last_notified_state: Optional[SecurityState] = None
        self._passed = 0
        self._suppressed = 0

        logger.info(
            f"NotificationGate initialized: cooldown={cooldown_sec}s, "
            f"escalation_bypass={escalation_bypasses_cooldown}"
        )

    @property
    def last_notified_at(self) -> Optional[float]:
        return self._last_notified_at

    @property
    def last_notified_state(self) -> Optional[SecurityState]:
        return self._last_notified_state

    def should_notify(self, event: TransitionEvent, now: Optional[float] = None) -> bool:
        """
        Decide and, on True, record the dispatch.

        Args:
            event: Transition to judge
            now: Decision time, defaults to the gate clock

        Returns:
            True if the caller must notify now.
        """
        if now is None:
            now = self._clock()

        with self._lock:
            new_state = event.new_state

            if new_state not in _NOTIFIABLE:
                return self._suppress(event, "state not notifiable")

            if new_state == self._last_notified_state:
                return self._suppress(event, "state already notified")

            if not self._cooldown_elapsed(now) and not self._is_escalation(new_state):
                return self._suppress(event, "cooldown")

            self._last_notified_at = now
            self._last_notified_state = new_state
            self._passed += 1
            return True

    def should_notify_persistent(self, now: Optional[float] = None) -> bool:
        """Gate for the persistent-threat notification (cooldown only)."""
        if now is None:
            now = self._clock()

        with self._lock:
            if not self._cooldown_elapsed(now):
                self._suppressed += 1
                logger.debug("Persistent threat notification suppressed: cooldown")
                return False
            self._last_notified_at = now
            self._passed += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._last_notified_at = None
            self._last_notified_state = None

    def _cooldown_elapsed(self, now: float) -> bool:
        if self._last_notified_at is None:
            return True
        return now - self._last_notified_at >= self.cooldown_sec

    def _is_escalation(self, new_state: SecurityState) -> bool:
        if not self.escalation_bypasses_cooldown or self._last_notified_state is None:
            return False
        return new_state.severity_rank > self._last_notified_state.severity_rank

    def _suppress(self, event: TransitionEvent, why: str) -> bool:
        self._suppressed += 1
        logger.debug(f"Notification suppressed ({why}): {event!r}")
        return False

    def get_metrics(self) -> dict:
        return {
            "notifications_passed": self._passed,
            "notifications_suppressed": self._suppressed,
            "last_notified_state": (
                self._last_notified_state.value if self._last_notified_state else None
            ),
        }
