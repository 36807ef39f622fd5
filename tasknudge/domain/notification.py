"""Notification rendering and worker message models."""

from typing import Literal

from pydantic import BaseModel, Field

from tasknudge.core.config import constants, settings


class NotificationData(BaseModel):
    """Payload attached to a notification for click handling."""

    url: str = Field(..., description="Origin to focus/open when the notification is clicked")
    reminder_id: str | None = Field(default=None, description="Request that produced the notification")


class NotificationOptions(BaseModel):
    """Render parameters for a displayed notification."""

    body: str
    icon: str = Field(default_factory=lambda: settings.notification_icon)
    badge: str = Field(default_factory=lambda: settings.notification_badge)
    vibrate: list[int] = Field(default_factory=lambda: list(constants.VIBRATION_PATTERN))
    tag: str
    renotify: bool = True
    require_interaction: bool = True
    data: NotificationData = Field(default_factory=lambda: NotificationData(url=settings.app_origin))


class Notification(BaseModel):
    """A notification as held by the host's notification surface."""

    title: str
    options: NotificationOptions

    @property
    def tag(self) -> str:
        return self.options.tag

    @property
    def reminder_id(self) -> str | None:
        return self.options.data.reminder_id


class ScheduleNotificationMessage(BaseModel):
    """Message posted from a page to the background worker."""

    type: Literal["SCHEDULE_NOTIFICATION"] = "SCHEDULE_NOTIFICATION"
    title: str
    body: str
    delay_ms: int = Field(..., ge=0)
    tag: str
    reminder_id: str | None = None


class ClickResult(BaseModel):
    """What the worker did in response to a notification click."""

    action: Literal["focused", "opened"]
    client_id: str
    url: str
