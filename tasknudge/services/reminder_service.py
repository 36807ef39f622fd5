"""Reminder scheduling: picks delivery channels and escalates when one cannot take the request."""

import logging
from collections.abc import Callable

from tasknudge.core.config import constants, settings
from tasknudge.core.errors import (
    ChannelUnavailable,
    DeliveryRejected,
    ErrorCategory,
    PermissionDenied,
    TransportFailure,
    classify_reminder_error,
)
from tasknudge.core.logging import log_with_context, span
from tasknudge.domain.notification import Notification
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
from tasknudge.interface.host import NotificationSurface
from tasknudge.interface.onesignal_client import PushClient
from tasknudge.services.foreground_channel import ForegroundFallbackChannel
from tasknudge.services.permission_service import PermissionGatekeeper
from tasknudge.services.persistent_timer_channel import PersistentTimerChannel
from tasknudge.services.remote_push_channel import RemotePushChannel


logger = logging.getLogger(__name__)

SettleHook = Callable[[str], None]

_FAILURE_ERRORS = {
    ErrorCategory.DELIVERY_REJECTED: DeliveryRejected,
    ErrorCategory.TRANSPORT_FAILURE: TransportFailure,
}


def _remember(index: dict[str, ReminderResult], key: str, result: ReminderResult) -> None:
    index.pop(key, None)
    index[key] = result
    while len(index) > constants.REMINDER_HISTORY_MAXLEN:
        del index[next(iter(index))]


def _advance(result: ReminderResult, state: ReminderState) -> None:
    # A fast timer may already have delivered the reminder while channels were still arming
    if result.state != ReminderState.DELIVERED:
        result.state = state


class ReminderService:
    """Escalation policy for reminder requests.

    Order per request:
      1. foreground fallback, armed first and unconditionally
      2. permission check (one prompt if undetermined and user-initiated)
      3. persistent timer on the background worker
      4. remote push, with a bounded number of subscription prompts

    Reminders cannot be cancelled once armed, and a second request for the same
    task is not merged with the first; both share the task's notification tag,
    so the surface shows only the latest.
    """

    def __init__(
        self,
        *,
        gatekeeper: PermissionGatekeeper,
        foreground: ForegroundFallbackChannel,
        persistent: PersistentTimerChannel,
        remote: RemotePushChannel | None,
        push_client: PushClient | None,
        surface: NotificationSurface | None = None,
        subscription_prompt_retries: int | None = None,
        on_settled: SettleHook | None = None,
    ) -> None:
        self._gatekeeper = gatekeeper
        self._foreground = foreground
        self._persistent = persistent
        self._remote = remote
        self._push_client = push_client
        self._prompt_retries = (
            settings.subscription_prompt_retries if subscription_prompt_retries is None else subscription_prompt_retries
        )
        self._on_settled = on_settled
        self._denied_notice_shown = False
        # Latest result per task, and results still waiting for delivery by request id
        self._latest: dict[str, ReminderResult] = {}
        self._pending: dict[str, ReminderResult] = {}

        if surface is not None:
            surface.subscribe(self._mark_delivered)

    @property
    def remote_push_enabled(self) -> bool:
        return self._remote is not None and self._push_client is not None

    @property
    def pending_count(self) -> int:
        """Reminders armed but not yet delivered."""
        return len(self._pending)

    def get_reminder(self, task_id: str) -> ReminderResult | None:
        """Latest reminder result for a task, if any."""
        return self._latest.get(task_id)

    async def schedule_for_task(self, task: Task, delay_ms: int, *, user_initiated: bool = True) -> ReminderResult:
        return await self.schedule(task.id, task.text, delay_ms, user_initiated=user_initiated)

    async def schedule(
        self,
        task_id: str,
        text: str,
        delay_ms: int,
        *,
        user_initiated: bool = True,
    ) -> ReminderResult:
        """Arm a reminder for a task on every channel that will take it.

        Never raises for channel problems: unavailable and failed channels are
        recorded as outcomes and, where the user can act on them, as notices.

        Raises:
            ValidationError: If ``delay_ms`` is negative
        """
        with span("reminder_service.schedule"):
            try:
                request = ReminderRequest(task_id=task_id, text=text, delay_ms=delay_ms)
                result = ReminderResult(request=request, state=ReminderState.CREATED)
                _remember(self._latest, request.task_id, result)
                _remember(self._pending, request.id, result)

                self._arm_foreground(request, result)

                permission = await self._gatekeeper.request_permission(user_initiated=user_initiated)
                _advance(result, ReminderState.PERMISSION_CHECKED)

                if permission != PermissionState.GRANTED:
                    self._notify_permission_denied(result)
                    _advance(result, ReminderState.CHANNEL_ARMED)
                    return result

                persistent = await self._persistent.arm(request)
                result.outcomes.append(persistent)
                if persistent.armed:
                    _advance(result, ReminderState.CHANNEL_ARMED)
                    return result

                log_with_context(
                    logger,
                    "info",
                    "Persistent channel not armed, escalating to remote push",
                    task_id=task_id,
                    status=persistent.status.value,
                    detail=persistent.detail,
                )
                remote = await self._escalate_to_remote(request, result, user_initiated=user_initiated)
                _advance(result, ReminderState.CHANNEL_ARMED if remote.armed else ReminderState.EXHAUSTED)
                return result
            finally:
                self._settle(task_id)

    def _arm_foreground(self, request: ReminderRequest, result: ReminderResult) -> None:
        self._foreground.arm(request, on_delivered=self._record_delivery)
        result.outcomes.append(ChannelOutcome(channel=ChannelKind.FOREGROUND, status=ChannelStatus.ARMED))

    def _notify_permission_denied(self, result: ReminderResult) -> None:
        logger.info("Notifications not permitted, foreground reminder only task=%s", result.request.task_id)
        if self._denied_notice_shown:
            return
        self._denied_notice_shown = True
        result.notices.append(classify_reminder_error(PermissionDenied()).message)

    async def _escalate_to_remote(
        self,
        request: ReminderRequest,
        result: ReminderResult,
        *,
        user_initiated: bool,
    ) -> ChannelOutcome:
        if self._remote is None or self._push_client is None:
            outcome = ChannelOutcome(
                channel=ChannelKind.REMOTE_PUSH,
                status=ChannelStatus.UNAVAILABLE,
                detail="remote push is not configured",
                category=ErrorCategory.CHANNEL_UNAVAILABLE,
            )
            result.outcomes.append(outcome)
            return outcome

        outcome = await self._remote.schedule(request, self._push_client.get_subscription_id())
        result.outcomes.append(outcome)

        prompts = 0
        while outcome.status == ChannelStatus.UNAVAILABLE and prompts < self._prompt_retries:
            prompts += 1
            logger.info("No push subscription, prompting (attempt %d) task=%s", prompts, request.task_id)
            subscription_id = await self._gatekeeper.request_subscription(
                self._push_client, user_initiated=user_initiated
            )
            outcome = await self._remote.schedule(request, subscription_id)
            result.outcomes.append(outcome)

        if outcome.status == ChannelStatus.UNAVAILABLE:
            logger.warning("Remote push unavailable, relying on foreground reminder task=%s", request.task_id)
            result.notices.append(classify_reminder_error(ChannelUnavailable(outcome.detail or "")).message)
        elif outcome.status == ChannelStatus.FAILED:
            error_cls = _FAILURE_ERRORS.get(outcome.category or ErrorCategory.TRANSPORT_FAILURE, TransportFailure)
            result.notices.append(classify_reminder_error(error_cls(outcome.detail or "")).message)

        return outcome

    def _mark_delivered(self, notification: Notification) -> None:
        if notification.reminder_id is not None:
            self._record_delivery(notification.reminder_id)

    def _record_delivery(self, reminder_id: str) -> None:
        result = self._pending.pop(reminder_id, None)
        if result is None:
            return
        result.state = ReminderState.DELIVERED
        logger.info("Reminder delivered task=%s", result.request.task_id)

    def _settle(self, task_id: str) -> None:
        if self._on_settled is None:
            return
        try:
            self._on_settled(task_id)
        except Exception:
            logger.exception("Reminder settle hook failed for task=%s", task_id)
