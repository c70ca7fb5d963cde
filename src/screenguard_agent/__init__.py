"""
ScreenGuardAgent
================

Shoulder-surfer detection agent for protected screens.

This package turns a noisy stream of "faces visible" counts from an external
face-detection sensor into a stable security verdict, escalates it through
time-gated states and notifies the user without flooding them.

Components:
    - stream: Sensor ingestion and observation throttling
    - agent: Security state machine, alert duration tracking, notification gate
    - notifications: Notifier sinks and dispatch
    - service: Owning context that wires the pipeline together
    - main: FastAPI application

Example:
    from screenguard_agent.service import MonitoringService

    service = MonitoringService()
    service.start()
    service.submit(2)
    print(service.current_state)
"""

__version__ = "0.1.0"
__author__ = "ScreenGuard Project"

__all__ = [
    "__version__",
]
