"""
Sensor Consumer
===============

WebSocket client for consuming face counts from an external sensor.

This module provides the SensorConsumer class which:
    - Connects to the sensor's WebSocket endpoint
    - Receives face-count messages ({"face_count": 2, "timestamp": ...})
    - Logs timestamp ordering problems
    - Handles reconnection with a fixed backoff
    - Submits every sample to the pipeline (throttling happens downstream)

Design Rules:
    - The sensor is untrusted: a message with a missing or invalid count is
      submitted as 0, only unparseable JSON is skipped
    - Logs validation warnings but continues processing
    - Reconnects automatically on disconnect
    - Exposes metrics for health monitoring
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    ConnectionClosedError,
    WebSocketException,
)

from screenguard_agent.models.input import ObservationMessage


logger = logging.getLogger(__name__)


SampleSink = Callable[[Any], Any]


class SensorConsumerMetrics:
    """Metrics for SensorConsumer observability."""

    __slots__ = (
        "samples_received",
        "samples_forwarded",
        "reconnect_count",
        "last_timestamp",
        "validation_warnings",
        "parse_errors",
    )

    def __init__(self) -> None:
        self.samples_received: int = 0
        self.samples_forwarded: int = 0
        self.reconnect_count: int = 0
        self.last_timestamp: float = 0.0
        self.validation_warnings: int = 0
        self.parse_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "samples_received": self.samples_received,
            "samples_forwarded": self.samples_forwarded,
            "reconnect_count": self.reconnect_count,
            "last_timestamp": self.last_timestamp,
            "validation_warnings": self.validation_warnings,
            "parse_errors": self.parse_errors,
        }


class SensorConsumer:
    """
    WebSocket consumer for face-count samples.

    Attributes:
        url: WebSocket URL to connect to
        sink: Receives each face count (MonitoringService.submit)
        connected: Whether currently connected
        metrics: Operational metrics

    Example:
        consumer = SensorConsumer(
            url="ws://localhost:9000/ws/faces",
            sink=service.submit,
        )
        task = asyncio.create_task(consumer.run())

        # Later, stop gracefully
        await consumer.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        sink: SampleSink,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        """
        Initialize sensor consumer.

        Args:
            url: WebSocket URL of the face-count sensor
            sink: Callable receiving the face count of every sample
            reconnect_backoff_ms: Backoff between reconnect attempts
            max_reconnect_attempts: Max attempts (0 = unlimited)
        """
        self.url = url
        self.sink = sink
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.metrics = SensorConsumerMetrics()

    @property
    def connected(self) -> bool:
        """Whether currently connected to the sensor."""
        return self._connected

    async def run(self) -> None:
        """
        Start consuming samples.

        Runs indefinitely, reconnecting on disconnect.
        Call stop() to terminate gracefully.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"SensorConsumer starting, connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except (OSError, WebSocketException) as e:
                if not self._running:
                    break

                logger.error(f"Sensor connection error: {e}")
                self._connected = False

                if (
                    self.max_reconnect_attempts > 0
                    and self.metrics.reconnect_count >= self.max_reconnect_attempts
                ):
                    logger.error(
                        f"Max reconnect attempts ({self.max_reconnect_attempts}) exceeded"
                    )
                    break

                self.metrics.reconnect_count += 1
                backoff_sec = self.reconnect_backoff_ms / 1000.0
                logger.info(
                    f"Reconnecting in {backoff_sec:.1f}s "
                    f"(attempt {self.metrics.reconnect_count})"
                )

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_sec)
                    break
                except asyncio.TimeoutError:
                    pass

        logger.info("SensorConsumer stopped")

    async def stop(self) -> None:
        """Signal the run loop to exit and close the connection."""
        logger.info("SensorConsumer stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except (OSError, ConnectionClosed) as e:
                logger.debug(f"Error while closing sensor connection: {e}")

        self._connected = False

    async def _connect_and_consume(self) -> None:
        """Connect to the sensor and consume messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
        ) as ws:
            self._websocket = ws
            self._connected = True
            logger.info(f"Connected to sensor: {self.url}")

            try:
                async for message in ws:
                    if not self._running:
                        break
                    self.handle_message(message)
            except ConnectionClosedOK:
                logger.info("Sensor connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Sensor connection closed with error: {e}")
                raise
            finally:
                self._connected = False
                self._websocket = None

    def handle_message(self, raw: Any) -> bool:
        """
        Parse one raw message and hand its count to the sink.

        Returns:
            True if the sink accepted the sample.
        """
        message = self._parse(raw)
        if message is None:
            return False

        self.metrics.samples_received += 1
        try:
            accepted = bool(self.sink(message.face_count))
        except Exception:
            logger.exception("Sample sink failed")
            return False
        if accepted:
            self.metrics.samples_forwarded += 1
        return accepted

    def _parse(self, raw: Any) -> Optional[ObservationMessage]:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            self.metrics.parse_errors += 1
            logger.error(f"Failed to parse sensor JSON: {e}")
            return None

        if isinstance(data, dict):
            timestamp = data.get("timestamp")
            try:
                timestamp = float(timestamp) if timestamp is not None else None
            except (TypeError, ValueError):
                self.metrics.validation_warnings += 1
                timestamp = None
            message = ObservationMessage(face_count=data.get("face_count"), timestamp=timestamp)
        else:
            # A bare number is accepted as a count
            message = ObservationMessage(face_count=data)

        if message.timestamp is not None:
            if self.metrics.last_timestamp > 0 and message.timestamp < self.metrics.last_timestamp:
                self.metrics.validation_warnings += 1
                logger.warning(
                    f"Timestamp went backwards: got {message.timestamp:.3f}, "
                    f"previous was {self.metrics.last_timestamp:.3f}"
                )
            self.metrics.last_timestamp = message.timestamp

        return message
