"""
Data Models
===========

Models for the ScreenGuardAgent.

This module re-exports all data models for convenient access.

Models:
    Input:
        - ObservationMessage: Face-count sample from the sensor

    State:
        - SecurityState: Enum of security states (SAFE, WARNING, ALERT, ERROR)
        - AlertLevel: Derived user-facing urgency
        - TransitionEvent: One state change
        - StateSnapshot: Immutable public state of the state machine
        - PersistentThreatSignal: Sustained ALERT signal

    Output:
        - Severity, Notification: Notifier payload
        - MonitoringStatus: Status payload for UI polling
"""

from screenguard_agent.models.input import ObservationMessage
from screenguard_agent.models.reason_codes import ReasonCode
from screenguard_agent.models.state import (
    AlertLevel,
    PersistentThreatSignal,
    SecurityState,
    StateSnapshot,
    TransitionEvent,
)
from screenguard_agent.models.output import MonitoringStatus, Notification, Severity

__all__ = [
    # Input
    "ObservationMessage",
    # State
    "ReasonCode",
    "SecurityState",
    "AlertLevel",
    "TransitionEvent",
    "StateSnapshot",
    "PersistentThreatSignal",
    # Output
    "Severity",
    "Notification",
    "MonitoringStatus",
]
