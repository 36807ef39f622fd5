"""Remote push channel: lets the push service time the reminder."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from tasknudge.core.config import settings
from tasknudge.core.errors import ErrorCategory, TransportFailure
from tasknudge.domain.reminder import ChannelKind, ChannelOutcome, ChannelStatus, ReminderRequest
from tasknudge.interface.onesignal_client import PushClient


logger = logging.getLogger(__name__)

GENERIC_TRANSPORT_DETAIL = "Could not reach the push service"


def format_send_after(instant: datetime) -> str:
    """Render an absolute UTC instant as ISO-8601 with an explicit offset."""
    return instant.astimezone(UTC).isoformat(timespec="seconds")


class RemotePushChannel:
    """Schedules a push message for ``now + delay + buffer``. Never retries on its own."""

    def __init__(
        self,
        client: PushClient,
        *,
        buffer_seconds: int | None = None,
        language: str | None = None,
        title: str | None = None,
    ) -> None:
        self._client = client
        self._buffer = timedelta(
            seconds=settings.push_send_after_buffer_seconds if buffer_seconds is None else buffer_seconds
        )
        self._language = language or settings.push_language
        self._title = title or settings.notification_title

    def compute_send_after(self, request: ReminderRequest, now: datetime | None = None) -> datetime:
        base = now or datetime.now(UTC)
        return base + timedelta(milliseconds=request.delay_ms) + self._buffer

    def build_payload(self, request: ReminderRequest, subscription_id: str, send_after: datetime) -> dict[str, Any]:
        return {
            "include_subscription_ids": [subscription_id],
            "contents": {self._language: request.body},
            "headings": {self._language: self._title},
            "send_after": format_send_after(send_after),
            "web_push_topic": request.dedup_tag,
        }

    def _outcome(
        self, status: ChannelStatus, detail: str | None = None, category: ErrorCategory | None = None
    ) -> ChannelOutcome:
        return ChannelOutcome(channel=ChannelKind.REMOTE_PUSH, status=status, detail=detail, category=category)

    async def schedule(self, request: ReminderRequest, subscription_id: str | None) -> ChannelOutcome:
        """Issue one scheduling request to the push service."""
        if not subscription_id:
            return self._outcome(ChannelStatus.UNAVAILABLE, "no push subscription", ErrorCategory.CHANNEL_UNAVAILABLE)

        send_after = self.compute_send_after(request)
        payload = self.build_payload(request, subscription_id, send_after)

        try:
            response = await self._client.create_notification(payload)
        except TransportFailure as e:
            logger.error("Push scheduling transport failure for task=%s: %s", request.task_id, e)
            return self._outcome(ChannelStatus.FAILED, GENERIC_TRANSPORT_DETAIL, ErrorCategory.TRANSPORT_FAILURE)
        except Exception:
            logger.exception("Unexpected error scheduling push for task=%s", request.task_id)
            return self._outcome(ChannelStatus.FAILED, GENERIC_TRANSPORT_DETAIL, ErrorCategory.TRANSPORT_FAILURE)

        if not response.success:
            detail = response.errors[0] if response.errors else f"Push service returned HTTP {response.status_code}"
            logger.error("Push service rejected reminder for task=%s: %s", request.task_id, detail)
            return self._outcome(ChannelStatus.FAILED, detail, ErrorCategory.DELIVERY_REJECTED)

        logger.info(
            "Push reminder scheduled task=%s send_after=%s id=%s",
            request.task_id,
            payload["send_after"],
            response.notification_id,
        )
        return self._outcome(ChannelStatus.ARMED, response.notification_id)
