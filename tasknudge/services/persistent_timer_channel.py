"""Persistent timer channel: hands the reminder to the background worker."""

import asyncio
import logging

from tasknudge.core.config import settings
from tasknudge.core.errors import ErrorCategory
from tasknudge.domain.notification import ScheduleNotificationMessage
from tasknudge.domain.reminder import ChannelKind, ChannelOutcome, ChannelStatus, ReminderRequest
from tasknudge.services.background_worker import BackgroundWorker


logger = logging.getLogger(__name__)


class PersistentTimerChannel:
    """Arms a reminder on the background worker so it survives the page closing."""

    def __init__(self, worker: BackgroundWorker | None, *, ready_timeout: float | None = None) -> None:
        self._worker = worker
        self._ready_timeout = settings.worker_ready_timeout_seconds if ready_timeout is None else ready_timeout

    def _outcome(
        self, status: ChannelStatus, detail: str | None = None, category: ErrorCategory | None = None
    ) -> ChannelOutcome:
        return ChannelOutcome(channel=ChannelKind.PERSISTENT, status=status, detail=detail, category=category)

    async def arm(self, request: ReminderRequest) -> ChannelOutcome:
        """Post a SCHEDULE_NOTIFICATION message once the worker controls the page.

        A worker that is missing or not yet in control is an expected state and
        reported as UNAVAILABLE; a failing post is reported as FAILED.
        """
        if self._worker is None:
            return self._outcome(
                ChannelStatus.UNAVAILABLE, "no background worker registered", ErrorCategory.CHANNEL_UNAVAILABLE
            )

        try:
            await asyncio.wait_for(self._worker.ready(), timeout=self._ready_timeout)
        except TimeoutError:
            logger.warning("Background worker not ready after %.1fs for task=%s", self._ready_timeout, request.task_id)
            return self._outcome(
                ChannelStatus.UNAVAILABLE,
                f"background worker did not take control within {self._ready_timeout:g}s",
                ErrorCategory.CHANNEL_UNAVAILABLE,
            )

        message = ScheduleNotificationMessage(
            title=settings.notification_title,
            body=request.body,
            delay_ms=request.delay_ms,
            tag=request.dedup_tag,
            reminder_id=request.id,
        )
        try:
            self._worker.post_message(message.model_dump())
        except Exception as e:
            logger.error("Failed to post reminder to background worker for task=%s: %s", request.task_id, e)
            return self._outcome(ChannelStatus.FAILED, str(e) or type(e).__name__, ErrorCategory.TRANSPORT_FAILURE)

        logger.info("Reminder armed on background worker task=%s delay_ms=%d", request.task_id, request.delay_ms)
        return self._outcome(ChannelStatus.ARMED)
