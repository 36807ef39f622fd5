from tasknudge.services import (
    foreground_channel,
    permission_service,
    persistent_timer_channel,
    reminder_service,
    remote_push_channel,
)


__all__ = [
    "foreground_channel",
    "permission_service",
    "persistent_timer_channel",
    "reminder_service",
    "remote_push_channel",
]
