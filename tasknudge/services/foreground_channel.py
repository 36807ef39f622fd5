"""Foreground fallback channel: an in-page timer that only fires while the page stays open."""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from tasknudge.core.config import settings
from tasknudge.core.errors import PlaybackBlocked
from tasknudge.domain.notification import NotificationData, NotificationOptions
from tasknudge.domain.reminder import PermissionState, ReminderRequest
from tasknudge.interface.host import Alert, AudioCue, NotificationSurface
from tasknudge.services.permission_service import PermissionGatekeeper


logger = logging.getLogger(__name__)

DeliveryHook = Callable[[str], None]


class PageContext:
    """A foreground page. Its timers live and die with it."""

    def __init__(self, *, client_id: str | None = None) -> None:
        self.client_id = client_id or f"page-{uuid.uuid4().hex[:8]}"
        self.scheduler = AsyncIOScheduler(timezone=UTC)

    @property
    def is_open(self) -> bool:
        return self.scheduler.running

    def open(self) -> None:
        """Start the page's timer loop. Must be called from a running event loop."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.debug("Page %s opened", self.client_id)

    def close(self) -> None:
        """Close the page, dropping every pending in-page timer."""
        if self.scheduler.running:
            self.scheduler.remove_all_jobs()
            self.scheduler.shutdown(wait=False)
            logger.debug("Page %s closed", self.client_id)

    def pending_timers(self) -> int:
        return len(self.scheduler.get_jobs())


class ForegroundFallbackChannel:
    """Last-resort reminder that plays a sound and shows a notification or alert.

    Unreliable by nature: the timer is lost if the page closes. It is armed for
    every request so a reminder is never dropped while other channels settle.
    """

    def __init__(
        self,
        *,
        page: PageContext,
        gatekeeper: PermissionGatekeeper,
        surface: NotificationSurface,
        audio: AudioCue,
        alert: Alert,
    ) -> None:
        self._page = page
        self._gatekeeper = gatekeeper
        self._surface = surface
        self._audio = audio
        self._alert = alert

    def arm(self, request: ReminderRequest, *, on_delivered: DeliveryHook | None = None) -> None:
        """Start the in-page timer. ``on_delivered`` receives the request id once the reminder is shown."""
        run_date = datetime.now(UTC) + timedelta(milliseconds=request.delay_ms)
        self._page.scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_date),
            args=[request, on_delivered],
            id=f"{request.dedup_tag}-{uuid.uuid4().hex[:8]}",
            misfire_grace_time=None,
        )
        logger.debug("Foreground timer armed task=%s run_date=%s", request.task_id, run_date.isoformat())

    async def _fire(self, request: ReminderRequest, on_delivered: DeliveryHook | None = None) -> None:
        try:
            await self._audio.play()
        except PlaybackBlocked as e:
            logger.debug("Reminder sound blocked: %s", e.detail)
        except Exception as e:
            logger.debug("Reminder sound failed: %s", e)

        if self._gatekeeper.query_permission() == PermissionState.GRANTED:
            self._surface.show(
                settings.notification_title,
                NotificationOptions(
                    body=request.body,
                    tag=request.dedup_tag,
                    data=NotificationData(url=settings.app_origin, reminder_id=request.id),
                ),
            )
        else:
            self._alert(f"Reminder: {request.text}")
        logger.info("Foreground reminder fired task=%s", request.task_id)

        if on_delivered is not None:
            try:
                on_delivered(request.id)
            except Exception:
                logger.exception("Delivery hook failed for task=%s", request.task_id)
