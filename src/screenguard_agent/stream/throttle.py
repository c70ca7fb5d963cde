"""
Observation Throttle
====================

Bounds the rate at which raw sensor samples reach the state machine.

The sensor is not trusted to rate-limit itself. Every raw sample passes
through submit(); only a bounded subset is forwarded.

Forwarding Rules (all must hold):
    1. No forward is currently in flight
    2. The skip counter has reached skip_factor (1 of every N samples)
    3. At least min_interval_sec has elapsed since the last forward

Design Rules:
    - Non-blocking: a busy throttle drops, it never waits
    - No queueing or buffering, dropped samples are gone
    - Never raises; malformed counts are forwarded as 0
    - Safe to call from several threads at once
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

from screenguard_agent.models.input import coerce_face_count
from screenguard_agent.stream.observation import Observation


logger = logging.getLogger(__name__)


ObservationSink = Callable[[int], Any]


class ThrottleMetrics:
    """Metrics for ObservationThrottle observability."""

    __slots__ = (
        "submitted",
        "forwarded",
        "dropped_in_flight",
        "dropped_skip",
        "dropped_interval",
        "sink_errors",
        "last_forwarded_count",
    )

    def __init__(self) -> None:
        self.submitted: int = 0
        self.forwarded: int = 0
        self.dropped_in_flight: int = 0
        self.dropped_skip: int = 0
        self.dropped_interval: int = 0
        self.sink_errors: int = 0
        self.last_forwarded_count: Optional[int] = None

    @property
    def dropped(self) -> int:
        return self.dropped_in_flight + self.dropped_skip + self.dropped_interval

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "submitted": self.submitted,
            "forwarded": self.forwarded,
            "dropped": self.dropped,
            "dropped_in_flight": self.dropped_in_flight,
            "dropped_skip": self.dropped_skip,
            "dropped_interval": self.dropped_interval,
            "sink_errors": self.sink_errors,
            "last_forwarded_count": self.last_forwarded_count,
        }


class ObservationThrottle:
    """
    Rate and concurrency limiter in front of the state machine.

    Attributes:
        sink: Callable receiving forwarded face counts
        min_interval_sec: Minimum time between two forwards
        skip_factor: Forward at most 1 of every N raw samples
        metrics: Operational counters

    Example:
        throttle = ObservationThrottle(machine.update, min_interval_sec=0.2, skip_factor=3)

        # From the sensor callback
        throttle.submit(face_count)
    """

    def __init__(
        self,
        sink: ObservationSink,
        min_interval_sec: float = 0.2,
        skip_factor: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the throttle.

        Args:
            sink: Receives each forwarded count (usually SecurityStateMachine.update)
            min_interval_sec: Minimum seconds between forwards. Must be >= 0.
            skip_factor: Process 1 of every N samples. Must be >= 1.
            clock: Time source used when a sample has no arrival time
        """
        if skip_factor < 1:
            raise ValueError("skip_factor must be >= 1")
        if min_interval_sec < 0:
            raise ValueError("min_interval_sec must be >= 0")

        self.sink = sink
        self.min_interval_sec = min_interval_sec
        self.skip_factor = skip_factor
        self._clock = clock

        self._in_flight = threading.Lock()
        self._metrics_lock = threading.Lock()
        self._skip_counter: int = 0
        self._last_forward_at: Optional[float] = None
        self.metrics = ThrottleMetrics()

        logger.info(
            f"ObservationThrottle initialized: "
            f"min_interval={min_interval_sec}s, skip_factor={skip_factor}"
        )

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def submit(self, raw_count: Any, arrival_time: Optional[float] = None) -> bool:
        """
        Offer one raw sample.

        Args:
            raw_count: Face count from the sensor (untrusted)
            arrival_time: Arrival clock time, defaults to now

        Returns:
            True if the sample was forwarded to the sink, False if dropped.
        """
        with self._metrics_lock:
            self.metrics.submitted += 1

        if not self._in_flight.acquire(blocking=False):
            with self._metrics_lock:
                self.metrics.dropped_in_flight += 1
            logger.debug("Observation dropped: forward in flight")
            return False

        try:
            self._skip_counter += 1
            if self._skip_counter < self.skip_factor:
                self.metrics.dropped_skip += 1
                return False
            self._skip_counter = 0

            if arrival_time is None:
                arrival_time = self._clock()
            if (
                self._last_forward_at is not None
                and arrival_time - self._last_forward_at < self.min_interval_sec
            ):
                self.metrics.dropped_interval += 1
                logger.debug("Observation dropped: min interval not elapsed")
                return False
            self._last_forward_at = arrival_time

            observation = Observation(
                face_count=coerce_face_count(raw_count),
                arrival_time=arrival_time,
            )
            self._forward(observation)
            return True
        finally:
            self._in_flight.release()

    def _forward(self, observation: Observation) -> None:
        self.metrics.forwarded += 1
        self.metrics.last_forwarded_count = observation.face_count
        try:
            self.sink(observation.face_count)
        except Exception:
            self.metrics.sink_errors += 1
            logger.exception(f"Observation sink failed for {observation!r}")

    def reset(self) -> None:
        """Clear skip and interval state (used when monitoring restarts)."""
        with self._in_flight:
            self._skip_counter = 0
            self._last_forward_at = None
