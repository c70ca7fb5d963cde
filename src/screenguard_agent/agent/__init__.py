"""
Agent Module
============

Deterministic decision pipeline for screen privacy protection.

    - scheduler.py: Cancellable single-shot and repeating callbacks
    - state_machine.py: SAFE / WARNING / ALERT / ERROR decision engine
    - duration.py: Persistent threat detection over ALERT dwell time
    - notification_gate.py: Cooldown and relevance filter for notifications

Key Design Decisions:
    - All transitions are deterministic and inspectable
    - Timers are injected, so tests run on a manual clock
    - Consumers observe transitions through listeners, never mutate state
"""

from screenguard_agent.agent.duration import AlertDurationTracker
from screenguard_agent.agent.notification_gate import NotificationGate
from screenguard_agent.agent.scheduler import ManualScheduler, ScheduledTask, ThreadingScheduler
from screenguard_agent.agent.state_machine import (
    MonitoringStateError,
    SecurityStateMachine,
    StateMachineTiming,
)

__all__ = [
    "AlertDurationTracker",
    "NotificationGate",
    "ManualScheduler",
    "ScheduledTask",
    "ThreadingScheduler",
    "MonitoringStateError",
    "SecurityStateMachine",
    "StateMachineTiming",
]
