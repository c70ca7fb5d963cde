"""
Reason Codes
============

Fixed set of machine-readable reason codes for security state transitions.

Each transition event carries exactly ONE reason code explaining why
the state machine moved (or was reset) into its new state.

Rules:
    - No free-text explanations
    - One clear cause per code
"""

from enum import Enum


class ReasonCode(str, Enum):
    """
    Machine-readable transition explanation codes.

    Attributes:
        SINGLE_FACE: Exactly one face visible, the user is alone
        MULTIPLE_FACES: Two or more faces visible
        ESCALATION_TIMER: Multiple faces persisted for the escalation delay
        SENSOR_SILENCE: Too many consecutive zero-face observations
        MONITORING_STOPPED: Monitoring stopped, state reset to SAFE
    """

    SINGLE_FACE = "SINGLE_FACE"
    MULTIPLE_FACES = "MULTIPLE_FACES"
    ESCALATION_TIMER = "ESCALATION_TIMER"
    SENSOR_SILENCE = "SENSOR_SILENCE"
    MONITORING_STOPPED = "MONITORING_STOPPED"
