"""
Notifications Module
====================

User-facing notification dispatch.

    - notifier.py: Notifier protocol and LoggingNotifier sink
    - catalog.py: Fixed messages per notifiable situation
    - dispatcher.py: Gate-controlled routing of events to the notifier
"""

from screenguard_agent.notifications.dispatcher import NotificationDispatcher
from screenguard_agent.notifications.notifier import LoggingNotifier, Notifier

__all__ = [
    "Notifier",
    "LoggingNotifier",
    "NotificationDispatcher",
]
