"""
Security State Machine
======================

Deterministic decision engine that turns face counts into security states.

This module implements the rules for moving between security states:
    SAFE -> WARNING -> ALERT, with ERROR for sensor silence

Key Features:
    - Timer-gated escalation (WARNING -> ALERT after escalation_delay_sec)
    - Noise tolerance: short runs of zero-face observations are replaced by
      the last known nonzero count
    - Single pending escalation at any time, cancelled on leaving WARNING
    - Listener fan-out of transition events in the order they happen
    - Lock-free snapshot reads for UI polling

Transition Rules:
    count == 1                      -> SAFE     (cancels pending escalation)
    count >= 2 from SAFE or ERROR   -> WARNING  (arms escalation)
    count >= 2 in WARNING or ALERT  -> no change
    escalation fires in WARNING     -> ALERT
    zero_tolerance consecutive 0s   -> ERROR    (cancels pending escalation)

The ERROR -> WARNING path re-arms the escalation timer directly; there is no
extra confirmation through SAFE.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from screenguard_agent.agent.scheduler import ScheduledTask, Scheduler
from screenguard_agent.models.input import coerce_face_count
from screenguard_agent.models.reason_codes import ReasonCode
from screenguard_agent.models.state import SecurityState, StateSnapshot, TransitionEvent


logger = logging.getLogger(__name__)


TransitionListener = Callable[[TransitionEvent], None]


class MonitoringStateError(RuntimeError):
    """Raised when start() is called on an already running component."""


@dataclass
class StateMachineTiming:
    """
    Timing parameters of the state machine.

    Loaded from the `timing` configuration section.
    """

    escalation_delay_sec: float = 2.0
    zero_tolerance: int = 10


class SecurityStateMachine:
    """
    Canonical security decision engine.

    update() and the escalation timer callback are serialized by one lock.
    current_state and snapshot() read an immutable snapshot that is replaced
    wholesale on every change, so they never block.

    Example:
        scheduler = ThreadingScheduler()
        machine = SecurityStateMachine(scheduler)
        machine.add_listener(lambda event: print(event))
        machine.start()
        machine.update(2)   # -> WARNING, ALERT follows after 2s
    """

    def __init__(
        self,
        scheduler: Scheduler,
        timing: Optional[StateMachineTiming] = None,
    ) -> None:
        """
        Initialize the state machine.

        Args:
            scheduler: Clock and single-shot timer provider
            timing: Escalation delay and zero tolerance (defaults if None)
        """
        self.timing = timing or StateMachineTiming()
        if self.timing.zero_tolerance < 1:
            raise ValueError("zero_tolerance must be >= 1")
        if self.timing.escalation_delay_sec <= 0:
            raise ValueError("escalation_delay_sec must be > 0")

        self._scheduler = scheduler
        self._lock = threading.RLock()
        self._listeners: List[TransitionListener] = []

        self._running = False
        self._snapshot = StateSnapshot(entered_at=scheduler.now())
        self._pending: Optional[ScheduledTask] = None
        self._escalation_generation = 0
        self._zero_streak = 0
        self._last_face_count = 1
        self._effective_count = 1

        # Counters
        self._updates_processed = 0
        self._zeros_smoothed = 0
        self._transitions = 0
        self._stale_escalations = 0

        logger.info(
            f"SecurityStateMachine initialized: "
            f"escalation_delay={self.timing.escalation_delay_sec}s, "
            f"zero_tolerance={self.timing.zero_tolerance}"
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: TransitionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: TransitionListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def current_state(self) -> SecurityState:
        """Current security state (lock-free)."""
        return self._snapshot.state

    def snapshot(self) -> StateSnapshot:
        """Immutable copy of the public state (lock-free)."""
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_pending_escalation(self) -> bool:
        pending = self._pending
        return pending is not None and pending.active

    def time_until_alert(self, now: Optional[float] = None) -> float:
        """Seconds until the armed escalation fires, 0 outside WARNING."""
        snap = self._snapshot
        if snap.state != SecurityState.WARNING or snap.escalation_due_at is None:
            return 0.0
        if now is None:
            now = self._scheduler.now()
        return max(0.0, snap.escalation_due_at - now)

    def alert_progress(self, now: Optional[float] = None) -> float:
        """Fraction of the escalation delay already spent in WARNING."""
        snap = self._snapshot
        if snap.state != SecurityState.WARNING:
            return 0.0
        if now is None:
            now = self._scheduler.now()
        return min(1.0, snap.time_in_state(now) / self.timing.escalation_delay_sec)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Reset to SAFE and begin accepting observations.

        Raises:
            MonitoringStateError: If already running
        """
        with self._lock:
            if self._running:
                raise MonitoringStateError("SecurityStateMachine already started")

            self._cancel_escalation()
            self._zero_streak = 0
            self._last_face_count = 1
            self._effective_count = 1
            self._running = True
            self._snapshot = StateSnapshot(
                state=SecurityState.SAFE,
                entered_at=self._scheduler.now(),
                monitoring=True,
            )
            logger.info("SecurityStateMachine started")

    def stop(self) -> None:
        """
        Cancel any armed escalation and reset to SAFE. Idempotent.

        If the machine was not SAFE, a final transition to SAFE is delivered
        to listeners so they can release their own state.
        """
        with self._lock:
            self._cancel_escalation()
            if not self._running:
                return

            now = self._scheduler.now()
            if self._snapshot.state != SecurityState.SAFE:
                self._transition(SecurityState.SAFE, ReasonCode.MONITORING_STOPPED, 0, now)

            self._running = False
            self._zero_streak = 0
            self._last_face_count = 1
            self._effective_count = 1
            self._publish(monitoring=False)
            logger.info("SecurityStateMachine stopped")

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def update(self, count: Any) -> Optional[TransitionEvent]:
        """
        Process one face-count observation.

        Never raises. Invalid or negative counts are treated as 0.
        Observations are ignored while the machine is stopped.

        Args:
            count: Number of faces visible

        Returns:
            The transition this observation caused, or None
        """
        face_count = coerce_face_count(count)

        with self._lock:
            if not self._running:
                logger.debug(f"Observation ignored, not monitoring (count={face_count})")
                return None

            now = self._scheduler.now()
            self._updates_processed += 1

            if face_count == 0:
                self._zero_streak += 1
                if self._zero_streak >= self.timing.zero_tolerance:
                    self._effective_count = 0
                    event = self._transition(
                        SecurityState.ERROR, ReasonCode.SENSOR_SILENCE, 0, now
                    )
                    self._publish()
                    return event

                # Transient zero: re-evaluate the last known count
                self._zeros_smoothed += 1
                logger.debug(
                    f"Zero faces smoothed ({self._zero_streak}/"
                    f"{self.timing.zero_tolerance}), using {self._last_face_count}"
                )
                effective = self._last_face_count
            else:
                self._zero_streak = 0
                self._last_face_count = face_count
                effective = face_count

            event = self._evaluate(effective, now)
            self._publish()
            return event

    def _evaluate(self, effective: int, now: float) -> Optional[TransitionEvent]:
        """Apply the transition table to an effective (nonzero) count."""
        self._effective_count = effective
        current = self._snapshot.state

        if effective == 1:
            self._cancel_escalation()
            return self._transition(SecurityState.SAFE, ReasonCode.SINGLE_FACE, effective, now)

        if current in (SecurityState.SAFE, SecurityState.ERROR):
            return self._transition(
                SecurityState.WARNING, ReasonCode.MULTIPLE_FACES, effective, now
            )

        # WARNING keeps its armed timer, ALERT stays ALERT
        return None

    def _transition(
        self,
        target: SecurityState,
        reason: ReasonCode,
        face_count: int,
        now: float,
    ) -> Optional[TransitionEvent]:
        """Swap in the new state and notify listeners. Caller holds the lock."""
        previous = self._snapshot.state
        if target == previous:
            return None

        # Any way out of WARNING ends the pending escalation
        self._cancel_escalation()

        due_at: Optional[float] = None
        if target == SecurityState.WARNING:
            due_at = self._arm_escalation(now)

        self._snapshot = StateSnapshot(
            state=target,
            entered_at=now,
            escalation_due_at=due_at,
            zero_streak=self._zero_streak,
            last_face_count=self._last_face_count,
            monitoring=self._running,
        )
        self._transitions += 1

        event = TransitionEvent(
            previous_state=previous,
            new_state=target,
            timestamp=now,
            reason=reason,
            face_count=face_count,
        )
        logger.warning(
            f"STATE CHANGE: {previous.value} -> {target.value} | reason={reason.value}"
        )
        self._dispatch(event)
        return event

    def _dispatch(self, event: TransitionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Transition listener failed for {event!r}")

    def _publish(self, monitoring: Optional[bool] = None) -> None:
        """Refresh counters in the snapshot without changing state."""
        snap = self._snapshot
        self._snapshot = StateSnapshot(
            state=snap.state,
            entered_at=snap.entered_at,
            escalation_due_at=snap.escalation_due_at,
            zero_streak=self._zero_streak,
            last_face_count=self._last_face_count,
            monitoring=self._running if monitoring is None else monitoring,
        )

    # ------------------------------------------------------------------
    # Escalation timer
    # ------------------------------------------------------------------

    def _arm_escalation(self, now: float) -> float:
        self._cancel_escalation()
        self._escalation_generation += 1
        generation = self._escalation_generation
        delay = self.timing.escalation_delay_sec

        self._pending = self._scheduler.call_later(
            delay,
            lambda: self._on_escalation_due(generation),
            name="escalation",
        )
        logger.info(f"Escalation armed ({delay}s)")
        return now + delay

    def _cancel_escalation(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_escalation_due(self, generation: int) -> None:
        """Timer callback. A fire for a superseded WARNING episode is a no-op."""
        with self._lock:
            if (
                self._pending is None
                or generation != self._escalation_generation
            ):
                self._stale_escalations += 1
                logger.debug("Stale escalation fire ignored")
                return

            # Consumed
            self._pending = None

            if (
                not self._running
                or self._snapshot.state != SecurityState.WARNING
                or self._effective_count < 2
            ):
                self._stale_escalations += 1
                logger.debug("Escalation fire ignored, no longer in WARNING")
                return

            logger.warning("Escalation delay reached - shoulder surfer alert")
            self._transition(
                SecurityState.ALERT,
                ReasonCode.ESCALATION_TIMER,
                self._effective_count,
                self._scheduler.now(),
            )
            self._publish()

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """Get state machine metrics for observability."""
        snap = self._snapshot
        now = self._scheduler.now()
        return {
            "security_state": snap.state.value,
            "time_in_state": round(snap.time_in_state(now), 3),
            "updates_processed": self._updates_processed,
            "zeros_smoothed": self._zeros_smoothed,
            "zero_streak": snap.zero_streak,
            "transitions": self._transitions,
            "stale_escalations": self._stale_escalations,
            "pending_escalation": self.has_pending_escalation,
        }
