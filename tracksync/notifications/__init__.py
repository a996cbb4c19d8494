"""
Customer notifications for tracking changes.
"""

from tracksync.notifications.policy import SILENT_STATUSES, should_notify
from tracksync.notifications.publisher import (
    EmailEventPublisher,
    EventPublisher,
    SmtpMailer,
)

__all__ = [
    "SILENT_STATUSES",
    "EmailEventPublisher",
    "EventPublisher",
    "SmtpMailer",
    "should_notify",
]
