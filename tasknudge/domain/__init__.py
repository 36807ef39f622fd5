"""Domain models and DTOs."""

from tasknudge.domain.notification import (
    ClickResult,
    Notification,
    NotificationData,
    NotificationOptions,
    ScheduleNotificationMessage,
)
from tasknudge.domain.reminder import (
    ChannelKind,
    ChannelOutcome,
    ChannelStatus,
    PermissionState,
    ReminderRequest,
    ReminderResult,
    ReminderState,
    Task,
)


__all__ = [
    "ChannelKind",
    "ChannelOutcome",
    "ChannelStatus",
    "ClickResult",
    "Notification",
    "NotificationData",
    "NotificationOptions",
    "PermissionState",
    "ReminderRequest",
    "ReminderResult",
    "ReminderState",
    "ScheduleNotificationMessage",
    "Task",
]
