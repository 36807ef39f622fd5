"""Pytest configuration and fixtures for unit tests."""

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
import pytest_asyncio

from tasknudge.domain.reminder import PermissionState
from tasknudge.interface.host import InMemoryClientRegistry, InMemoryNotificationSurface, InMemoryPermissionHost
from tasknudge.services.background_worker import BackgroundWorker
from tasknudge.services.foreground_channel import ForegroundFallbackChannel, PageContext
from tasknudge.services.permission_service import PermissionGatekeeper
from tasknudge.services.persistent_timer_channel import PersistentTimerChannel
from tasknudge.services.reminder_service import ReminderService
from tasknudge.services.remote_push_channel import RemotePushChannel
from tests.unit.mocks import FakePushClient, RecordingAlert, RecordingAudioCue


@pytest.fixture
def surface() -> InMemoryNotificationSurface:
    return InMemoryNotificationSurface()


@pytest.fixture
def clients() -> InMemoryClientRegistry:
    return InMemoryClientRegistry(origin="http://localhost:3000")


@pytest.fixture
def permission_host() -> InMemoryPermissionHost:
    """Host where the user has already allowed notifications."""
    return InMemoryPermissionHost(permission=PermissionState.GRANTED)


@pytest.fixture
def gatekeeper(permission_host: InMemoryPermissionHost) -> PermissionGatekeeper:
    return PermissionGatekeeper(permission_host)


@pytest.fixture
def audio() -> RecordingAudioCue:
    return RecordingAudioCue()


@pytest.fixture
def alert() -> RecordingAlert:
    return RecordingAlert()


@pytest.fixture
def push_client() -> FakePushClient:
    return FakePushClient()


@pytest_asyncio.fixture
async def worker(surface, clients) -> AsyncIterator[BackgroundWorker]:
    """A running worker that already controls the page."""
    background = BackgroundWorker(surface=surface, clients=clients)
    background.install()
    background.start()
    await background.activate()
    yield background
    await background.stop()


@pytest_asyncio.fixture
async def idle_worker(surface, clients) -> AsyncIterator[BackgroundWorker]:
    """A running worker that never takes control of the page."""
    background = BackgroundWorker(surface=surface, clients=clients)
    background.start()
    yield background
    await background.stop()


@pytest_asyncio.fixture
async def page() -> AsyncIterator[PageContext]:
    context = PageContext(client_id="page-test")
    context.open()
    yield context
    context.close()


@pytest.fixture
def foreground(page, gatekeeper, surface, audio, alert) -> ForegroundFallbackChannel:
    return ForegroundFallbackChannel(page=page, gatekeeper=gatekeeper, surface=surface, audio=audio, alert=alert)


@pytest.fixture
def make_service(
    gatekeeper, foreground, surface, push_client
) -> Callable[..., ReminderService]:
    """Build a ReminderService; pass ``worker=`` and any constructor override."""

    def _make(*, worker: Any = None, ready_timeout: float = 0.2, **overrides: Any) -> ReminderService:
        kwargs: dict[str, Any] = {
            "gatekeeper": gatekeeper,
            "foreground": foreground,
            "persistent": PersistentTimerChannel(worker, ready_timeout=ready_timeout),
            "remote": RemotePushChannel(push_client, buffer_seconds=5, language="en", title="Task Reminder"),
            "push_client": push_client,
            "surface": surface,
            "subscription_prompt_retries": 1,
        }
        kwargs.update(overrides)
        return ReminderService(**kwargs)

    return _make
