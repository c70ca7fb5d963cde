"""
Agent Output Models
===================

Payloads emitted by the screen guard to its collaborators.

    - Notification: what the external notifier is asked to show
    - MonitoringStatus: read-only status polled by UI and menu rendering

Output Contract (GET /status):
    {
        "state": "WARNING",
        "alert_level": "LOW",
        "status_message": "Warning - Multiple faces detected",
        "time_in_state": 1.2,
        "time_until_alert": 0.8,
        "alert_progress": 0.6,
        "persistent_threat": false,
        "monitoring": true,
        "notifications_enabled": true
    }
"""

from enum import Enum

from pydantic import BaseModel, Field

from screenguard_agent.models.state import AlertLevel, SecurityState


class Severity(str, Enum):
    """Notifier urgency."""

    INFO = "info"
    CRITICAL = "critical"


class Notification(BaseModel):
    """
    A user-facing notification.

    Attributes:
        title: Short headline
        body: Explanatory text
        severity: info or critical
        category: Stable identifier of the message kind
    """

    title: str = Field(..., description="Notification headline")
    body: str = Field(..., description="Notification body text")
    severity: Severity = Field(..., description="Notification urgency")
    category: str = Field(default="", description="Message category identifier")


class MonitoringStatus(BaseModel):
    """Snapshot of the whole pipeline for UI polling."""

    state: SecurityState = Field(..., description="Current security state")
    alert_level: AlertLevel = Field(..., description="Derived alert level")
    status_message: str = Field(..., description="Human readable state description")
    time_in_state: float = Field(..., ge=0.0, description="Seconds in the current state")
    time_until_alert: float = Field(
        ...,
        ge=0.0,
        description="Seconds until WARNING escalates (0 outside WARNING)",
    )
    alert_progress: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Progress towards escalation (0 outside WARNING)",
    )
    persistent_threat: bool = Field(..., description="ALERT sustained past threshold")
    monitoring: bool = Field(..., description="Whether monitoring is active")
    notifications_enabled: bool = Field(..., description="Whether notifications are dispatched")
