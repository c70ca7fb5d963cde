"""
Stream Module
=============

Sensor ingestion and rate limiting.

This module provides the ingestion layer for ScreenGuardAgent:
    - Observation: Typed face-count sample (internal representation)
    - ObservationThrottle: Bounds rate and concurrency of forwarded samples
    - SensorConsumer: WebSocket client for an external face-count sensor

Example:
    from screenguard_agent.stream import ObservationThrottle, SensorConsumer

    throttle = ObservationThrottle(machine.update)
    consumer = SensorConsumer(url="ws://localhost:9000/ws/faces", sink=throttle.submit)
    task = asyncio.create_task(consumer.run())
"""

from screenguard_agent.stream.observation import Observation
from screenguard_agent.stream.throttle import ObservationThrottle, ThrottleMetrics
from screenguard_agent.stream.consumer import SensorConsumer, SensorConsumerMetrics


__all__ = [
    "Observation",
    "ObservationThrottle",
    "ThrottleMetrics",
    "SensorConsumer",
    "SensorConsumerMetrics",
]
