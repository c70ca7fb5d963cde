"""
Monitoring Service
==================

Owning context of the decision pipeline.

Constructs every component once and wires them together:

    sensor sample -> ObservationThrottle -> SecurityStateMachine.update()
        -> TransitionEvent -> AlertDurationTracker.on_transition
                           -> NotificationDispatcher.on_transition -> Notifier
        AlertDurationTracker -> PersistentThreatSignal -> NotificationDispatcher

There is no module-level instance; the application (or a test) creates a
MonitoringService and passes it to whoever needs it.
"""

import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from screenguard_agent.agent.duration import AlertDurationTracker
from screenguard_agent.agent.notification_gate import NotificationGate
from screenguard_agent.agent.scheduler import Scheduler, ThreadingScheduler
from screenguard_agent.agent.state_machine import (
    MonitoringStateError,
    SecurityStateMachine,
    StateMachineTiming,
)
from screenguard_agent.config import Settings
from screenguard_agent.models.output import MonitoringStatus
from screenguard_agent.models.state import SecurityState, StateSnapshot, TransitionEvent
from screenguard_agent.notifications import LoggingNotifier, NotificationDispatcher, Notifier
from screenguard_agent.stream.throttle import ObservationThrottle


logger = logging.getLogger(__name__)


class MonitoringService:
    """
    Builds and runs the screen guard pipeline.

    Attributes:
        settings: Effective configuration
        scheduler: Clock and timer provider shared by all components
        state_machine: Security decision engine
        throttle: Rate limiter in front of the state machine
        duration_tracker: Persistent threat detector
        gate: Notification cooldown filter
        dispatcher: Routes gated events to the notifier
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        scheduler: Optional[Scheduler] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.scheduler = scheduler or ThreadingScheduler()

        timing = self.settings.timing
        self.state_machine = SecurityStateMachine(
            self.scheduler,
            StateMachineTiming(
                escalation_delay_sec=timing.escalation_delay_sec,
                zero_tolerance=timing.zero_tolerance,
            ),
        )
        self.throttle = ObservationThrottle(
            self.state_machine.update,
            min_interval_sec=self.settings.throttle.min_interval_sec,
            skip_factor=self.settings.throttle.skip_factor,
            clock=self.scheduler.now,
        )
        self.duration_tracker = AlertDurationTracker(
            self.scheduler,
            threshold_sec=timing.persistent_threshold_sec,
            poll_interval_sec=timing.persistence_poll_sec,
        )

        notifications = self.settings.notifications
        self.gate = NotificationGate(
            cooldown_sec=notifications.cooldown_sec,
            escalation_bypasses_cooldown=notifications.escalation_bypasses_cooldown,
            clock=self.scheduler.now,
        )
        self.dispatcher = NotificationDispatcher(
            self.gate,
            notifier or LoggingNotifier(),
            enabled=notifications.enabled,
            notify_persistent=notifications.notify_persistent,
            background=notifications.background_delivery,
        )

        self._lock = threading.Lock()
        self._monitoring = False
        self._events: Deque[TransitionEvent] = deque(
            maxlen=self.settings.server.event_history_size
        )

        # Fan-out order: history, duration, notifications
        self.state_machine.add_listener(self._events.append)
        self.state_machine.add_listener(self.duration_tracker.on_transition)
        self.state_machine.add_listener(self.dispatcher.on_transition)
        self.duration_tracker.add_listener(self.dispatcher.on_persistent_threat)

        logger.info(f"MonitoringService initialized ({self.settings.agent.name})")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    def start(self) -> None:
        """
        Start monitoring from a clean SAFE state.

        Raises:
            MonitoringStateError: If already monitoring
        """
        with self._lock:
            if self._monitoring:
                raise MonitoringStateError("Monitoring already started")
            self.throttle.reset()
            self.gate.reset()
            self.duration_tracker.reset()
            self._events.clear()
            self.state_machine.start()
            self._monitoring = True
        logger.info("Started monitoring for shoulder surfers")

    def stop(self) -> None:
        """Stop monitoring. Idempotent."""
        with self._lock:
            if not self._monitoring:
                return
            self.state_machine.stop()
            self.duration_tracker.reset()
            self._monitoring = False
        logger.info("Stopped monitoring")

    def close(self) -> None:
        """Stop monitoring and drain pending notifications."""
        self.stop()
        self.dispatcher.close()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def submit(self, face_count: Any) -> bool:
        """
        Offer a raw sensor sample to the pipeline.

        Returns:
            True if the sample reached the state machine.
        """
        if not self._monitoring:
            return False
        return self.throttle.submit(face_count)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def current_state(self) -> SecurityState:
        return self.state_machine.current_state

    def snapshot(self) -> StateSnapshot:
        return self.state_machine.snapshot()

    def status(self) -> MonitoringStatus:
        now = self.scheduler.now()
        snap = self.state_machine.snapshot()
        return MonitoringStatus(
            state=snap.state,
            alert_level=snap.alert_level,
            status_message=snap.status_message,
            time_in_state=round(snap.time_in_state(now), 3),
            time_until_alert=round(self.state_machine.time_until_alert(now), 3),
            alert_progress=round(self.state_machine.alert_progress(now), 3),
            persistent_threat=self.duration_tracker.is_persistent,
            monitoring=self._monitoring,
            notifications_enabled=self.dispatcher.enabled,
        )

    def recent_events(self) -> List[Dict[str, Any]]:
        return [
            {
                "previous_state": event.previous_state.value,
                "new_state": event.new_state.value,
                "timestamp": round(event.timestamp, 3),
                "reason": event.reason.value,
                "face_count": event.face_count,
            }
            for event in list(self._events)
        ]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def set_notifications_enabled(self, enabled: bool) -> None:
        self.dispatcher.enabled = enabled
        logger.info(f"Notifications {'enabled' if enabled else 'disabled'}")

    def send_test_notification(self) -> bool:
        return self.dispatcher.send_test()

    def flush_notifications(self, timeout: Optional[float] = 5.0) -> bool:
        """Wait for queued notifications to reach the notifier."""
        return self.dispatcher.flush(timeout)

    def get_metrics(self) -> Dict[str, Any]:
        """Detailed metrics for observability."""
        return {
            "monitoring": self._monitoring,
            "throttle": self.throttle.metrics.to_dict(),
            **self.state_machine.get_metrics(),
            **self.duration_tracker.get_metrics(),
            **self.gate.get_metrics(),
            **self.dispatcher.get_metrics(),
        }
