"""Background worker that keeps reminder timers running independently of any page.

Pages talk to the worker only by posting plain-dict messages. While a timer is
pending the worker holds a keep-alive token (``wait_until``) so it is not torn
down early; the token is released once the notification has been displayed.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any

from pydantic import ValidationError

from tasknudge.core.config import constants, settings
from tasknudge.core.errors import TransportFailure
from tasknudge.domain.notification import (
    ClickResult,
    NotificationData,
    NotificationOptions,
    ScheduleNotificationMessage,
)
from tasknudge.interface.host import ClientRegistry, NotificationSurface


logger = logging.getLogger(__name__)


class BackgroundWorker:
    """Page-independent execution context for persistent reminder timers."""

    def __init__(self, *, surface: NotificationSurface, clients: ClientRegistry) -> None:
        self._surface = surface
        self._clients = clients
        self._inbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._controlling = asyncio.Event()
        self._keep_alive: set[asyncio.Future[Any]] = set()
        self._runner: asyncio.Task[None] | None = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def controlling(self) -> bool:
        return self._controlling.is_set()

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    @property
    def outstanding_work(self) -> int:
        """Number of keep-alive tokens currently held."""
        return len(self._keep_alive)

    def install(self) -> None:
        """Install and skip the waiting phase so the new worker activates immediately."""
        self._installed = True
        logger.info("Background worker installed (skip waiting)")

    async def activate(self) -> None:
        """Take control of every open client, including ones opened before install."""
        if not self._installed:
            self.install()
        claimed = self._clients.match_all(include_uncontrolled=True)
        self._controlling.set()
        logger.info("Background worker activated, claimed %d client(s)", len(claimed))

    async def ready(self) -> None:
        """Resolve once the worker controls the page."""
        await self._controlling.wait()

    def start(self) -> None:
        """Start consuming posted messages. Must be called from a running event loop."""
        if self.running:
            return
        self._runner = asyncio.create_task(self._run(), name="background-worker")

    async def stop(self) -> None:
        """Stop the worker. Pending timers are dropped."""
        if self._runner is not None:
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
            self._runner = None
        for pending in list(self._keep_alive):
            pending.cancel()
        self._keep_alive.clear()
        self._controlling.clear()
        logger.info("Background worker stopped")

    def post_message(self, message: dict[str, Any]) -> None:
        """Deliver a message to the worker. Fire-and-forget: there is no reply.

        Raises:
            TransportFailure: If the worker is not running
        """
        if not self.running:
            raise TransportFailure("background worker is not running")
        # Copy so the page keeps no reference into the worker's state
        self._inbox.put_nowait(dict(message))

    def wait_until(self, work: Awaitable[Any]) -> asyncio.Future[Any]:
        """Hold a keep-alive token until ``work`` completes."""
        future = asyncio.ensure_future(work)
        self._keep_alive.add(future)
        future.add_done_callback(self._keep_alive.discard)
        return future

    async def drain(self) -> None:
        """Wait for every pending timer to finish."""
        while self._keep_alive:
            await asyncio.gather(*self._keep_alive, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                self._handle_message(message)
            except Exception:
                logger.exception("Background worker failed to handle message type=%s", message.get("type"))
            finally:
                self._inbox.task_done()

    def _handle_message(self, message: dict[str, Any]) -> None:
        if message.get("type") != constants.SCHEDULE_NOTIFICATION:
            logger.debug("Ignoring worker message type=%s", message.get("type"))
            return

        try:
            schedule = ScheduleNotificationMessage.model_validate(message)
        except ValidationError as e:
            logger.warning("Malformed schedule message: %s", e)
            return

        logger.info("Scheduling notification tag=%s in %dms", schedule.tag, schedule.delay_ms)
        self.wait_until(self._show_after(schedule))

    async def _show_after(self, schedule: ScheduleNotificationMessage) -> None:
        await asyncio.sleep(schedule.delay_ms / 1000)
        self._surface.show(
            schedule.title,
            NotificationOptions(
                body=schedule.body,
                tag=schedule.tag,
                data=NotificationData(url=settings.app_origin, reminder_id=schedule.reminder_id),
            ),
        )

    async def handle_notification_click(self, tag: str) -> ClickResult:
        """Close the clicked notification and focus an open page, or open one at the root."""
        self._surface.close(tag)

        open_clients = self._clients.match_all(include_uncontrolled=True)
        if open_clients:
            client = await self._clients.focus(open_clients[0])
            logger.info("Notification click tag=%s focused client=%s", tag, client.id)
            return ClickResult(action="focused", client_id=client.id, url=client.url)

        client = await self._clients.open_window(constants.CLIENT_ROOT_PATH)
        logger.info("Notification click tag=%s opened client=%s", tag, client.id)
        return ClickResult(action="opened", client_id=client.id, url=client.url)
