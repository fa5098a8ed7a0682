"""Notification delivery."""

from .dispatcher import (
    Notification,
    NotificationDispatcher,
    NotificationListener,
    NotificationType,
    SQLiteNotificationSink,
)

__all__ = [
    "Notification",
    "NotificationDispatcher",
    "NotificationListener",
    "NotificationType",
    "SQLiteNotificationSink",
]
