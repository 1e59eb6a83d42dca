from marketplace.notifications.dispatcher import (
    LogNotificationSender,
    NotificationDispatcher,
    NotificationEvent,
    notification_for,
)

__all__ = [
    "LogNotificationSender",
    "NotificationDispatcher",
    "NotificationEvent",
    "notification_for",
]
