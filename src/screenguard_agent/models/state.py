"""
Security State Models
=====================

This module defines the state representation shared by the decision pipeline.

Core Concepts:
    - SecurityState: Discrete security states (SAFE, WARNING, ALERT, ERROR)
    - AlertLevel: User-facing urgency derived from the security state
    - TransitionEvent: One state change, fanned out to all listeners
    - StateSnapshot: Immutable copy of the state machine's public state
    - PersistentThreatSignal: Emitted once an ALERT has been sustained

Transitions:
    SAFE    -> WARNING: two or more faces visible
    WARNING -> ALERT:   multiple faces still visible after the escalation delay
    any     -> SAFE:    exactly one face visible
    any     -> ERROR:   too many consecutive zero-face observations

Example:
    from screenguard_agent.models.state import SecurityState, AlertLevel

    level = AlertLevel.for_state(SecurityState.WARNING)
    assert level == AlertLevel.LOW
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from screenguard_agent.models.reason_codes import ReasonCode


class SecurityState(str, Enum):
    """
    Discrete security states of the screen guard.

    Exactly one state is active at any instant. Only the state machine
    changes it; everything else reads a snapshot.

    Attributes:
        SAFE: One face detected, the user is alone
        WARNING: Two or more faces detected, escalation timer armed
        ALERT: Multiple faces sustained past the escalation delay
        ERROR: Sensor silence, no face seen for too long
    """

    SAFE = "SAFE"
    WARNING = "WARNING"
    ALERT = "ALERT"
    ERROR = "ERROR"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def severity_rank(self) -> int:
        """Relative urgency. SAFE and ERROR carry no threat."""
        return _SEVERITY[self]


_DESCRIPTIONS = {
    SecurityState.SAFE: "Safe - You're alone",
    SecurityState.WARNING: "Warning - Multiple faces detected",
    SecurityState.ALERT: "ALERT - Shoulder surfer detected!",
    SecurityState.ERROR: "Error - Camera issue",
}

_SEVERITY = {
    SecurityState.SAFE: 0,
    SecurityState.ERROR: 0,
    SecurityState.WARNING: 1,
    SecurityState.ALERT: 2,
}


class AlertLevel(str, Enum):
    """User-facing urgency level."""

    NONE = "NONE"
    LOW = "LOW"
    HIGH = "HIGH"

    @classmethod
    def for_state(cls, state: SecurityState) -> "AlertLevel":
        if state == SecurityState.WARNING:
            return cls.LOW
        if state == SecurityState.ALERT:
            return cls.HIGH
        return cls.NONE


@dataclass(frozen=True, slots=True)
class TransitionEvent:
    """
    A single security state change.

    Events are produced only by the state machine and delivered to every
    listener in the order the transitions happened.

    Attributes:
        previous_state: State before the transition
        new_state: State after the transition
        timestamp: Clock time of the transition (seconds)
        reason: Why the transition happened
        face_count: Effective face count that drove the decision
    """

    previous_state: SecurityState
    new_state: SecurityState
    timestamp: float
    reason: ReasonCode
    face_count: int = 0

    def __repr__(self) -> str:
        return (
            f"TransitionEvent({self.previous_state.value} -> "
            f"{self.new_state.value}, {self.reason.value}, t={self.timestamp:.3f})"
        )


@dataclass(frozen=True, slots=True)
class StateSnapshot:
    """
    Immutable view of the state machine.

    The state machine swaps in a new snapshot on every change, so a reader
    never observes a half-applied transition.

    Attributes:
        state: Current security state
        entered_at: Clock time the current state was entered
        escalation_due_at: When the armed escalation fires (WARNING only)
        zero_streak: Consecutive zero-face observations so far
        last_face_count: Last nonzero face count seen
        monitoring: Whether the state machine is running
    """

    state: SecurityState = SecurityState.SAFE
    entered_at: float = 0.0
    escalation_due_at: Optional[float] = None
    zero_streak: int = 0
    last_face_count: int = 1
    monitoring: bool = False

    @property
    def alert_level(self) -> AlertLevel:
        return AlertLevel.for_state(self.state)

    @property
    def status_message(self) -> str:
        return self.state.description

    def time_in_state(self, now: float) -> float:
        return max(0.0, now - self.entered_at)


@dataclass(frozen=True, slots=True)
class PersistentThreatSignal:
    """Raised once per unbroken ALERT dwell that exceeds the threshold."""

    started_at: float
    detected_at: float

    @property
    def duration(self) -> float:
        return self.detected_at - self.started_at
