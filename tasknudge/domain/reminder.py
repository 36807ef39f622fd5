"""Reminder domain models and enums."""

import uuid
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tasknudge.core.config import constants
from tasknudge.core.errors import ErrorCategory


class PermissionState(StrEnum):
    """User consent to display notifications."""

    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "default"


class ChannelKind(StrEnum):
    """Delivery mechanisms a reminder can be armed on."""

    PERSISTENT = "persistent"
    REMOTE_PUSH = "remote_push"
    FOREGROUND = "foreground"


class ChannelStatus(StrEnum):
    """Result of arming a single channel."""

    ARMED = "armed"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class ReminderState(StrEnum):
    """Reminder request lifecycle state."""

    CREATED = "CREATED"
    PERMISSION_CHECKED = "PERMISSION_CHECKED"
    CHANNEL_ARMED = "CHANNEL_ARMED"
    DELIVERED = "DELIVERED"
    EXHAUSTED = "EXHAUSTED"


class Task(BaseModel):
    """Task owned by the task list; read-only here."""

    id: str = Field(..., description="Opaque unique token (creation timestamp is fine)")
    text: str = Field(..., description="Task text")
    completed: bool = Field(default=False, description="Completion flag")


class ReminderRequest(BaseModel):
    """One-shot reminder created when a task is added with a delay."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, description="Unique per request, carried by its notifications"
    )
    task_id: str = Field(..., description="ID of the task this reminder is for")
    text: str = Field(..., description="Task text shown in the reminder")
    delay_ms: int = Field(..., ge=0, description="Delay before the reminder fires, in milliseconds")
    requested_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the reminder was requested (UTC)"
    )

    @field_validator("requested_at")
    @classmethod
    def validate_aware(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @classmethod
    def for_task(cls, task: Task, delay_ms: int) -> "ReminderRequest":
        """Build a request from a task list entry."""
        return cls(task_id=task.id, text=task.text, delay_ms=delay_ms)

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000

    @property
    def due_at(self) -> datetime:
        return self.requested_at + timedelta(milliseconds=self.delay_ms)

    @property
    def dedup_tag(self) -> str:
        """Tag shared by every notification for this task, so the surface collapses repeats."""
        return f"{constants.DEDUP_TAG_PREFIX}{self.task_id}"

    @property
    def body(self) -> str:
        return constants.REMINDER_BODY_TEMPLATE.format(text=self.text)


class ChannelOutcome(BaseModel):
    """What a channel reported when asked to arm a reminder."""

    channel: ChannelKind
    status: ChannelStatus
    detail: str | None = None
    category: ErrorCategory | None = None

    @property
    def armed(self) -> bool:
        return self.status == ChannelStatus.ARMED


class ReminderResult(BaseModel):
    """Outcome of one escalation run."""

    request: ReminderRequest
    state: ReminderState
    outcomes: list[ChannelOutcome] = Field(default_factory=list)
    notices: list[str] = Field(default_factory=list, description="User-facing messages raised during the run")

    def outcome_for(self, channel: ChannelKind) -> ChannelOutcome | None:
        """Return the last outcome recorded for a channel, if it was attempted."""
        matches = [o for o in self.outcomes if o.channel == channel]
        return matches[-1] if matches else None

    @property
    def armed_channels(self) -> list[ChannelKind]:
        return [o.channel for o in self.outcomes if o.armed]
