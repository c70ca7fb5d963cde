"""
Notification Catalog
====================

Fixed user-facing messages, one per notifiable situation.
"""

from typing import Optional

from screenguard_agent.models.output import Notification, Severity
from screenguard_agent.models.state import SecurityState


WARNING_NOTIFICATION = Notification(
    title="Multiple People Detected",
    body=(
        "More than one person is visible. Be cautious with sensitive "
        "information on your screen."
    ),
    severity=Severity.INFO,
    category="WARNING_ALERT",
)

ALERT_NOTIFICATION = Notification(
    title="Shoulder Surfer Detected!",
    body=(
        "Someone is looking at your screen. Consider covering sensitive "
        "information or moving to a private location."
    ),
    severity=Severity.CRITICAL,
    category="SHOULDER_SURFER_ALERT",
)

PERSISTENT_NOTIFICATION = Notification(
    title="Shoulder Surfer Still Present",
    body=(
        "Someone has been watching your screen for over a minute. "
        "Lock your screen or move to a private location."
    ),
    severity=Severity.CRITICAL,
    category="PERSISTENT_THREAT",
)

TEST_NOTIFICATION = Notification(
    title="ScreenGuard Test Notification",
    body="This is a test notification to verify the system is working",
    severity=Severity.INFO,
    category="TEST",
)


def notification_for_state(state: SecurityState) -> Optional[Notification]:
    """Message for a state, None for states that never notify."""
    if state == SecurityState.WARNING:
        return WARNING_NOTIFICATION
    if state == SecurityState.ALERT:
        return ALERT_NOTIFICATION
    return None
