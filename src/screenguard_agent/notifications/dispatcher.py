"""
Notification Dispatcher
=======================

Glue between the decision pipeline and the external notifier.

Listens to:
    - transition events from SecurityStateMachine
    - persistent-threat signals from AlertDurationTracker

For each, asks the NotificationGate and invokes the notifier at most
once. Notifier failures are logged and counted, never raised.

Delivery:
    The gate decision is taken synchronously inside the listener call, so
    the cooldown bookkeeping follows transition order exactly. The notifier
    itself is invoked by a single background consumer thread fed through a
    FIFO queue: a slow sink never holds up the state machine or its timer,
    and notifications still reach the sink in decision order.
"""

import logging
import queue
import threading
from collections import deque
from typing import Deque, List, Optional, Union

from screenguard_agent.agent.notification_gate import NotificationGate
from screenguard_agent.models.output import Notification
from screenguard_agent.models.state import PersistentThreatSignal, TransitionEvent
from screenguard_agent.notifications.catalog import (
    PERSISTENT_NOTIFICATION,
    TEST_NOTIFICATION,
    notification_for_state,
)
from screenguard_agent.notifications.notifier import Notifier


logger = logging.getLogger(__name__)


# Queue items: a notification to deliver, an Event marker to set once
# everything queued before it is delivered, or None to stop the consumer
_QueueItem = Union[Notification, threading.Event, None]


class NotificationDispatcher:
    """
    Routes gated events to the notifier.

    Attributes:
        gate: Cooldown and relevance filter
        notifier: External sink
        enabled: Runtime switch; when False nothing is dispatched
        notify_persistent: Send a critical message on persistent threats
        background: Deliver on the consumer thread (False = in the caller)
    """

    def __init__(
        self,
        gate: NotificationGate,
        notifier: Notifier,
        enabled: bool = True,
        notify_persistent: bool = True,
        history_size: int = 50,
        background: bool = True,
    ) -> None:
        self.gate = gate
        self.notifier = notifier
        self.enabled = enabled
        self.notify_persistent = notify_persistent
        self.background = background

        self._lock = threading.Lock()
        self._sent: Deque[Notification] = deque(maxlen=history_size)
        self._sent_count = 0
        self._failures = 0

        self._queue: "queue.Queue[_QueueItem]" = queue.Queue()
        self._consumer: Optional[threading.Thread] = None

    @property
    def sent(self) -> List[Notification]:
        """Most recent notifications handed to the notifier."""
        with self._lock:
            return list(self._sent)

    def on_transition(self, event: TransitionEvent) -> None:
        """Transition listener. Never blocks on the notifier."""
        if not self.enabled:
            return
        notification = notification_for_state(event.new_state)
        if notification is None:
            return
        if self.gate.should_notify(event, event.timestamp):
            logger.info(f"Sending {event.new_state.value} notification")
            self._deliver(notification)

    def on_persistent_threat(self, signal: PersistentThreatSignal) -> None:
        """Persistent threat listener. Never blocks on the notifier."""
        if not self.enabled or not self.notify_persistent:
            return
        if self.gate.should_notify_persistent(signal.detected_at):
            logger.info("Sending persistent threat notification")
            self._deliver(PERSISTENT_NOTIFICATION)

    def send_test(self) -> bool:
        """Send a test notification in the caller, bypassing the gate and queue."""
        return self._send(TEST_NOTIFICATION)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def flush(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Wait until every notification queued so far has been delivered.

        Returns:
            False if the timeout expired first.
        """
        if not self.background:
            return True
        marker = threading.Event()
        self._enqueue(marker)
        return marker.wait(timeout)

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Deliver what is queued, then stop the consumer thread."""
        with self._lock:
            consumer = self._consumer
            self._consumer = None
        if consumer is None:
            return
        self._queue.put(None)
        consumer.join(timeout)
        if consumer.is_alive():
            logger.warning("Notification consumer did not stop in time")

    def _deliver(self, notification: Notification) -> None:
        if self.background:
            self._enqueue(notification)
        else:
            self._send(notification)

    def _enqueue(self, item: _QueueItem) -> None:
        with self._lock:
            if self._consumer is None or not self._consumer.is_alive():
                self._consumer = threading.Thread(
                    target=self._consume,
                    name="notification-consumer",
                    daemon=True,
                )
                self._consumer.start()
        self._queue.put(item)

    def _consume(self) -> None:
        """Consumer thread: deliver queued notifications in order."""
        while True:
            item = self._queue.get()
            try:
                if item is None:
                    return
                if isinstance(item, threading.Event):
                    item.set()
                else:
                    self._send(item)
            finally:
                self._queue.task_done()

    def _send(self, notification: Notification) -> bool:
        try:
            self.notifier.notify(notification.title, notification.body, notification.severity)
        except Exception:
            with self._lock:
                self._failures += 1
            logger.exception(f"Notifier failed for '{notification.title}'")
            return False
        with self._lock:
            self._sent.append(notification)
            self._sent_count += 1
        return True

    def get_metrics(self) -> dict:
        with self._lock:
            return {
                "notifications_enabled": self.enabled,
                "notifications_sent": self._sent_count,
                "notifier_failures": self._failures,
                "notifications_queued": self._queue.qsize(),
            }
