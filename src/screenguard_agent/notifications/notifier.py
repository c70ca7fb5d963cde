"""
Notifier Sinks
==============

The external notifier is a single sink with one operation:

    notify(title, body, severity)

Anything that implements it (desktop banner, push service, chat hook)
can be plugged into the dispatcher. LoggingNotifier is the default sink
for headless runs.
"""

import logging
from typing import Protocol

from screenguard_agent.models.output import Severity


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """User-facing notification sink."""

    def notify(self, title: str, body: str, severity: Severity) -> None:
        ...


class LoggingNotifier:
    """Writes notifications to the log (critical ones at WARNING level)."""

    def __init__(self, name: str = "screenguard.notify") -> None:
        self._log = logging.getLogger(name)

    def notify(self, title: str, body: str, severity: Severity) -> None:
        level = logging.WARNING if severity == Severity.CRITICAL else logging.INFO
        self._log.log(level, f"[{severity.value}] {title}: {body}")
