"""
Test Configuration
==================

Pytest fixtures and test configuration for ScreenGuardAgent.

Time never passes on its own in these tests: every component runs on a
ManualScheduler and tests move the clock with advance().
"""

from typing import List, Tuple

import pytest


class RecordingNotifier:
    """Notifier sink that remembers every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, str]] = []

    def notify(self, title, body, severity) -> None:
        self.calls.append((title, body, severity.value))

    @property
    def severities(self) -> List[str]:
        return [severity for _, _, severity in self.calls]


@pytest.fixture
def scheduler():
    """Manual clock starting at t=0."""
    from screenguard_agent.agent.scheduler import ManualScheduler

    return ManualScheduler()


@pytest.fixture
def machine(scheduler):
    """Started state machine with default timing (T=2.0s, K=10)."""
    from screenguard_agent.agent.state_machine import SecurityStateMachine

    sm = SecurityStateMachine(scheduler)
    sm.start()
    return sm


@pytest.fixture
def recorded_events(machine):
    """List collecting every transition event of the machine fixture."""
    events = []
    machine.add_listener(events.append)
    return events


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    """Default settings, independent of any config.yaml on disk."""
    from screenguard_agent.config import Settings

    return Settings()


@pytest.fixture
def service(settings, scheduler, notifier):
    """Monitoring service on the manual clock, not yet started."""
    from screenguard_agent.service import MonitoringService

    return MonitoringService(settings, scheduler=scheduler, notifier=notifier)
