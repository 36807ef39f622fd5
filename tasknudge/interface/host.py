"""Host platform capabilities the reminder subsystem runs against.

The notification surface, the open-client registry, the consent prompt, audio
playback and blocking alerts all belong to the host. The protocols here describe
what the subsystem needs from them; the in-memory implementations back a
headless deployment and the test suite.
"""

import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from pydantic import BaseModel

from tasknudge.core.errors import PlaybackBlocked
from tasknudge.domain.notification import Notification, NotificationOptions
from tasknudge.domain.reminder import PermissionState


logger = logging.getLogger(__name__)

NotificationListener = Callable[[Notification], None]


class NotificationSurface(Protocol):
    """Where notifications are displayed. Same-tag notifications replace each other."""

    def show(self, title: str, options: NotificationOptions) -> Notification: ...

    def close(self, tag: str) -> None: ...

    def visible(self) -> list[Notification]: ...

    def subscribe(self, listener: NotificationListener) -> None: ...


class PermissionHost(Protocol):
    """Owner of the process-wide notification permission."""

    notifications_supported: bool
    permission: PermissionState

    async def prompt(self) -> PermissionState: ...


class WindowClient(BaseModel):
    """An open page of the application."""

    id: str
    url: str
    focused: bool = False


class ClientRegistry(Protocol):
    """Open pages the background worker can focus or open."""

    def match_all(self, *, include_uncontrolled: bool = False) -> list[WindowClient]: ...

    async def focus(self, client: WindowClient) -> WindowClient: ...

    async def open_window(self, url: str) -> WindowClient: ...


class AudioCue(Protocol):
    """Short sound played when an in-page reminder fires."""

    async def play(self) -> None: ...


Alert = Callable[[str], None]


class InMemoryNotificationSurface:
    """Notification surface that keeps one notification per tag."""

    def __init__(self) -> None:
        self._by_tag: dict[str, Notification] = {}
        self._listeners: list[NotificationListener] = []
        self.shown_count = 0

    def show(self, title: str, options: NotificationOptions) -> Notification:
        notification = Notification(title=title, options=options)
        replaced = options.tag in self._by_tag
        # Re-inserting moves the tag to the end so visible() stays in display order
        self._by_tag.pop(options.tag, None)
        self._by_tag[options.tag] = notification
        self.shown_count += 1
        logger.info("Notification shown tag=%s replaced=%s", options.tag, replaced)

        for listener in self._listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed for tag=%s", options.tag)
        return notification

    def close(self, tag: str) -> None:
        if self._by_tag.pop(tag, None) is not None:
            logger.debug("Notification closed tag=%s", tag)

    def visible(self) -> list[Notification]:
        return list(self._by_tag.values())

    def subscribe(self, listener: NotificationListener) -> None:
        self._listeners.append(listener)


class InMemoryPermissionHost:
    """Permission host whose prompt answer is decided up front (or by a callback)."""

    def __init__(
        self,
        *,
        permission: PermissionState = PermissionState.UNDETERMINED,
        notifications_supported: bool = True,
        answer: PermissionState | Callable[[], Awaitable[PermissionState]] = PermissionState.GRANTED,
    ) -> None:
        self.permission = permission
        self.notifications_supported = notifications_supported
        self._answer = answer
        self.prompt_count = 0

    async def prompt(self) -> PermissionState:
        self.prompt_count += 1
        if callable(self._answer):
            self.permission = await self._answer()
        else:
            self.permission = self._answer
        logger.info("Notification permission prompt answered: %s", self.permission)
        return self.permission


class InMemoryClientRegistry:
    """Tracks open application pages."""

    def __init__(self, *, origin: str) -> None:
        self._origin = origin.rstrip("/")
        self._clients: dict[str, WindowClient] = {}
        self._ids = itertools.count(1)

    def add(self, path: str = "/") -> WindowClient:
        client = WindowClient(id=f"client-{next(self._ids)}", url=f"{self._origin}{path}")
        self._clients[client.id] = client
        return client

    def remove(self, client_id: str) -> None:
        self._clients.pop(client_id, None)

    def match_all(self, *, include_uncontrolled: bool = False) -> list[WindowClient]:  # noqa: ARG002
        return list(self._clients.values())

    async def focus(self, client: WindowClient) -> WindowClient:
        for other in self._clients.values():
            other.focused = other.id == client.id
        return self._clients.get(client.id, client)

    async def open_window(self, url: str) -> WindowClient:
        path = url if url.startswith("/") else f"/{url}"
        client = self.add(path)
        return await self.focus(client)


class SilentAudioCue:
    """Audio cue for hosts without sound output; playback is always blocked."""

    async def play(self) -> None:
        raise PlaybackBlocked("no audio output available")


def log_alert(text: str) -> None:
    """Blocking alert stand-in for headless hosts."""
    logger.warning("ALERT: %s", text)


def log_settled(task_id: str) -> None:
    """Settle hook for headless hosts, which have no pending-selection UI to close."""
    logger.info("Reminder request settled task=%s", task_id)
