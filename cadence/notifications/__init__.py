"""Notification layer — channels, payloads and the Notifier fan-out."""

from cadence.notifications.channels import NotificationChannel
from cadence.notifications.content import NotificationContent, create_notification_content
from cadence.notifications.log_channel import LogChannel
from cadence.notifications.router import Notifier

__all__ = [
    "LogChannel",
    "NotificationChannel",
    "NotificationContent",
    "Notifier",
    "create_notification_content",
]
