"""tasknudge - task reminders that survive a closed page."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tasknudge.core.config import Settings, settings
from tasknudge.core.logging import configure_logfire, instrument_fastapi, instrument_httpx
from tasknudge.interface.host import (
    InMemoryClientRegistry,
    InMemoryNotificationSurface,
    InMemoryPermissionHost,
    SilentAudioCue,
    log_alert,
    log_settled,
)
from tasknudge.interface.onesignal_client import OneSignalClient
from tasknudge.interface.reminder_router import router as reminder_router
from tasknudge.services.background_worker import BackgroundWorker
from tasknudge.services.foreground_channel import ForegroundFallbackChannel, PageContext
from tasknudge.services.permission_service import PermissionGatekeeper
from tasknudge.services.persistent_timer_channel import PersistentTimerChannel
from tasknudge.services.reminder_service import ReminderService
from tasknudge.services.remote_push_channel import RemotePushChannel


logger = logging.getLogger(__name__)


@dataclass
class ReminderRuntime:
    """Everything wired together for one running process."""

    surface: InMemoryNotificationSurface
    clients: InMemoryClientRegistry
    permission_host: InMemoryPermissionHost
    gatekeeper: PermissionGatekeeper
    worker: BackgroundWorker
    page: PageContext
    push_client: OneSignalClient | None
    reminder_service: ReminderService

    async def start(self) -> None:
        self.worker.install()
        self.worker.start()
        await self.worker.activate()
        self.page.open()

    async def stop(self) -> None:
        self.page.close()
        await self.worker.stop()


def create_push_client(config: Settings) -> OneSignalClient | None:
    """Build the push client, or None when remote push is disabled or not configured."""
    if not config.enable_remote_push:
        logger.info("startup_validation", extra={"service": "onesignal", "status": "disabled"})
        return None
    try:
        client = OneSignalClient.initialize(config)
    except ValueError as e:
        logger.warning("startup_validation", extra={"service": "onesignal", "status": "unconfigured", "error": str(e)})
        return None
    logger.info("startup_validation", extra={"service": "onesignal", "status": "ok"})
    return client


def build_runtime(config: Settings) -> ReminderRuntime:
    """Wire host capabilities, channels and the reminder service."""
    surface = InMemoryNotificationSurface()
    clients = InMemoryClientRegistry(origin=config.app_origin)
    permission_host = InMemoryPermissionHost()
    gatekeeper = PermissionGatekeeper(permission_host)
    worker = BackgroundWorker(surface=surface, clients=clients)
    page = PageContext()
    clients.add("/")

    push_client = create_push_client(config)
    remote = (
        RemotePushChannel(
            push_client,
            buffer_seconds=config.push_send_after_buffer_seconds,
            language=config.push_language,
            title=config.notification_title,
        )
        if push_client is not None
        else None
    )

    reminder_service = ReminderService(
        gatekeeper=gatekeeper,
        foreground=ForegroundFallbackChannel(
            page=page,
            gatekeeper=gatekeeper,
            surface=surface,
            audio=SilentAudioCue(),
            alert=log_alert,
        ),
        persistent=PersistentTimerChannel(worker, ready_timeout=config.worker_ready_timeout_seconds),
        remote=remote,
        push_client=push_client,
        surface=surface,
        subscription_prompt_retries=config.subscription_prompt_retries,
        on_settled=log_settled,
    )

    return ReminderRuntime(
        surface=surface,
        clients=clients,
        permission_host=permission_host,
        gatekeeper=gatekeeper,
        worker=worker,
        page=page,
        push_client=push_client,
        reminder_service=reminder_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()
    instrument_httpx()

    runtime = build_runtime(settings)
    await runtime.start()
    app.state.runtime = runtime
    logger.info("Reminder runtime started")
    yield
    # Shutdown
    await runtime.stop()


app = FastAPI(
    title="tasknudge",
    description="Task reminders that survive a closed page",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(reminder_router)


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    runtime: ReminderRuntime = request.app.state.runtime
    worker_ok = runtime.worker.running and runtime.worker.controlling
    return JSONResponse(
        content={
            "status": "healthy" if worker_ok else "degraded",
            "worker": {
                "running": runtime.worker.running,
                "controlling": runtime.worker.controlling,
                "outstanding_work": runtime.worker.outstanding_work,
            },
            "permission": runtime.gatekeeper.query_permission().value,
            "remote_push": runtime.reminder_service.remote_push_enabled,
            "pending_reminders": runtime.reminder_service.pending_count,
        },
        status_code=200 if worker_ok else 503,
    )
