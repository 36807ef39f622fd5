"""HTTP endpoints for arming reminders and forwarding notification clicks."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from tasknudge.domain.notification import ClickResult
from tasknudge.domain.reminder import ReminderResult
from tasknudge.services.background_worker import BackgroundWorker
from tasknudge.services.reminder_service import ReminderService


router = APIRouter(prefix="/api", tags=["reminders"])
logger = logging.getLogger(__name__)


class ReminderCreate(BaseModel):
    """Reminder requested when a task is added with a delay."""

    model_config = ConfigDict(str_strip_whitespace=True)

    task_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    delay_ms: int = Field(..., ge=0)


def get_reminder_service(request: Request) -> ReminderService:
    return request.app.state.runtime.reminder_service


def get_worker(request: Request) -> BackgroundWorker:
    return request.app.state.runtime.worker


@router.post("/reminders", response_model=ReminderResult)
async def create_reminder(
    body: ReminderCreate,
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResult:
    """Arm a reminder for a newly created task.

    Arrives from a direct user action (the task was just submitted), so a
    permission prompt may be shown.
    """
    return await service.schedule(body.task_id, body.text, body.delay_ms, user_initiated=True)


@router.get("/reminders/{task_id}", response_model=ReminderResult)
async def get_reminder(
    task_id: str,
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderResult:
    """Return the latest reminder armed for a task."""
    result = service.get_reminder(task_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No reminder for task {task_id}")
    return result


@router.post("/notifications/{tag}/click", response_model=ClickResult)
async def click_notification(
    tag: str,
    worker: BackgroundWorker = Depends(get_worker),
) -> ClickResult:
    """Forward a notification click to the background worker."""
    return await worker.handle_notification_click(tag)
