from .service import (
    BREAK_REMINDER_MESSAGE,
    BREAK_REMINDER_TITLE,
    BreakReminderHandler,
    NotificationPublisher,
    NotificationService,
)

__all__ = [
    "BREAK_REMINDER_MESSAGE",
    "BREAK_REMINDER_TITLE",
    "BreakReminderHandler",
    "NotificationPublisher",
    "NotificationService",
]
