"""Unit tests for the reminder escalation policy."""

import asyncio

import pytest
from pydantic import ValidationError

from tasknudge.core.config import constants
from tasknudge.core.errors import ErrorCategory
from tasknudge.domain.reminder import ChannelKind, ChannelStatus, PermissionState, ReminderState, Task
from tasknudge.interface.host import InMemoryPermissionHost
from tasknudge.interface.onesignal_client import PushResponse
from tasknudge.services.permission_service import PermissionGatekeeper
from tests.unit.mocks import BrokenWorker, wait_for_condition


@pytest.mark.unit
class TestGrantedWithReadyWorker:
    """Permission granted and the background worker in control."""

    @pytest.mark.asyncio
    async def test_five_minute_reminder_goes_to_worker_only(self, make_service, worker, push_client, monkeypatch):
        """A 5 minute reminder is posted to the worker and no push request is made."""
        posted: list[dict] = []
        original_post = worker.post_message

        def record(message: dict) -> None:
            posted.append(message)
            original_post(message)

        monkeypatch.setattr(worker, "post_message", record)
        service = make_service(worker=worker)

        result = await service.schedule("1700000000000", "Write report", 300000)

        assert len(posted) == 1
        assert posted[0]["type"] == "SCHEDULE_NOTIFICATION"
        assert posted[0]["delay_ms"] == 300000
        assert posted[0]["body"] == "Time to work on: Write report"
        assert posted[0]["tag"] == "todo-1700000000000"
        assert push_client.payloads == []
        assert result.state == ReminderState.CHANNEL_ARMED
        assert result.armed_channels == [ChannelKind.FOREGROUND, ChannelKind.PERSISTENT]

    @pytest.mark.asyncio
    async def test_foreground_armed_alongside_persistent(self, make_service, worker, page):
        """The in-page fallback is armed even though the worker accepted the reminder."""
        service = make_service(worker=worker)

        await service.schedule("t1", "Stretch", 60000)

        assert page.pending_timers() == 1

    @pytest.mark.asyncio
    async def test_both_channels_collapse_to_one_notification(self, make_service, worker, surface):
        """Worker and foreground notifications share a tag, so only one stays visible."""
        service = make_service(worker=worker)

        result = await service.schedule("t1", "Stretch", 10)

        assert await wait_for_condition(lambda: surface.shown_count == 2)
        assert len(surface.visible()) == 1
        assert surface.visible()[0].tag == "todo-t1"
        assert result.state == ReminderState.DELIVERED


@pytest.mark.unit
class TestPermissionDenied:
    """Only the foreground fallback is armed when notifications are blocked."""

    @pytest.fixture
    def permission_host(self) -> InMemoryPermissionHost:
        return InMemoryPermissionHost(permission=PermissionState.DENIED)

    @pytest.mark.asyncio
    async def test_no_background_message_and_no_network(self, make_service, worker, push_client, page, monkeypatch):
        posted: list[dict] = []
        monkeypatch.setattr(worker, "post_message", posted.append)
        service = make_service(worker=worker)

        result = await service.schedule("t1", "Call mom", 1000)

        assert posted == []
        assert push_client.payloads == []
        assert push_client.prompt_count == 0
        assert [o.channel for o in result.outcomes] == [ChannelKind.FOREGROUND]
        assert result.state == ReminderState.CHANNEL_ARMED
        assert page.pending_timers() == 1

    @pytest.mark.asyncio
    async def test_explanation_shown_once(self, make_service, worker):
        service = make_service(worker=worker)

        first = await service.schedule("t1", "Call mom", 1000)
        second = await service.schedule("t2", "Pay rent", 1000)

        assert len(first.notices) == 1
        assert "blocked" in first.notices[0].lower()
        assert second.notices == []

    @pytest.mark.asyncio
    async def test_foreground_falls_back_to_alert(self, make_service, worker, alert, audio, surface):
        service = make_service(worker=worker)

        result = await service.schedule("t1", "Call mom", 0)

        assert await wait_for_condition(lambda: alert.messages == ["Reminder: Call mom"])
        assert audio.plays == 1
        assert surface.visible() == []
        assert await wait_for_condition(lambda: result.state == ReminderState.DELIVERED)


@pytest.mark.unit
class TestUndeterminedPermission:
    """A single prompt is shown for user-initiated requests."""

    @pytest.fixture
    def permission_host(self) -> InMemoryPermissionHost:
        return InMemoryPermissionHost(permission=PermissionState.UNDETERMINED, answer=PermissionState.GRANTED)

    @pytest.mark.asyncio
    async def test_prompt_then_persistent(self, make_service, worker, permission_host):
        service = make_service(worker=worker)

        result = await service.schedule("t1", "Water plants", 5000)

        assert permission_host.prompt_count == 1
        assert result.outcome_for(ChannelKind.PERSISTENT).status == ChannelStatus.ARMED

    @pytest.mark.asyncio
    async def test_background_request_does_not_prompt(self, make_service, worker, permission_host, push_client):
        service = make_service(worker=worker)

        result = await service.schedule("t1", "Water plants", 5000, user_initiated=False)

        assert permission_host.prompt_count == 0
        assert result.armed_channels == [ChannelKind.FOREGROUND]
        assert push_client.payloads == []


@pytest.mark.unit
class TestEscalationToRemotePush:
    """Remote push is used when the worker cannot take the reminder."""

    @pytest.mark.asyncio
    async def test_worker_never_ready_does_not_hang(self, make_service, idle_worker, push_client):
        service = make_service(worker=idle_worker, ready_timeout=0.05)

        result = await asyncio.wait_for(service.schedule("t1", "Stretch", 1000), timeout=2)

        persistent = result.outcome_for(ChannelKind.PERSISTENT)
        assert persistent.status == ChannelStatus.UNAVAILABLE
        assert result.outcome_for(ChannelKind.REMOTE_PUSH).status == ChannelStatus.ARMED
        assert len(push_client.payloads) == 1
        assert result.state == ReminderState.CHANNEL_ARMED

    @pytest.mark.asyncio
    async def test_post_failure_escalates(self, make_service, push_client):
        service = make_service(worker=BrokenWorker())

        result = await service.schedule("t1", "Stretch", 1000)

        persistent = result.outcome_for(ChannelKind.PERSISTENT)
        assert persistent.status == ChannelStatus.FAILED
        assert persistent.category == ErrorCategory.TRANSPORT_FAILURE
        assert result.outcome_for(ChannelKind.REMOTE_PUSH).armed

    @pytest.mark.asyncio
    async def test_missing_subscription_prompts_once_then_succeeds(self, make_service, push_client):
        push_client.subscription_id = None
        push_client.prompt_result = "sub-new"
        service = make_service(worker=None)

        result = await service.schedule("t1", "Stretch", 1000)

        remote_outcomes = [o for o in result.outcomes if o.channel == ChannelKind.REMOTE_PUSH]
        assert [o.status for o in remote_outcomes] == [ChannelStatus.UNAVAILABLE, ChannelStatus.ARMED]
        assert push_client.prompt_count == 1
        assert push_client.payloads[0]["include_subscription_ids"] == ["sub-new"]
        assert result.state == ReminderState.CHANNEL_ARMED

    @pytest.mark.asyncio
    async def test_still_no_subscription_exhausts(self, make_service, push_client, page):
        push_client.subscription_id = None
        service = make_service(worker=None)

        result = await service.schedule("t1", "Stretch", 1000)

        assert push_client.prompt_count == 1
        assert push_client.payloads == []
        assert result.state == ReminderState.EXHAUSTED
        assert result.armed_channels == [ChannelKind.FOREGROUND]
        assert page.pending_timers() == 1
        assert len(result.notices) == 1

    @pytest.mark.asyncio
    async def test_remote_errors_surfaced_once_and_foreground_fires(self, make_service, push_client, surface):
        push_client.response = PushResponse(success=False, errors=["invalid subscription"], status_code=400)
        service = make_service(worker=None)

        result = await service.schedule("t1", "Stretch", 50)

        remote = result.outcome_for(ChannelKind.REMOTE_PUSH)
        assert remote.status == ChannelStatus.FAILED
        assert remote.detail == "invalid subscription"
        assert len(push_client.payloads) == 1
        assert len(result.notices) == 1
        assert "invalid subscription" in result.notices[0]
        assert result.state == ReminderState.EXHAUSTED
        assert await wait_for_condition(lambda: len(surface.visible()) == 1)
        assert result.state == ReminderState.DELIVERED

    @pytest.mark.asyncio
    async def test_remote_push_not_configured(self, make_service):
        service = make_service(worker=None, remote=None, push_client=None)

        result = await service.schedule("t1", "Stretch", 1000)

        assert result.outcome_for(ChannelKind.REMOTE_PUSH).status == ChannelStatus.UNAVAILABLE
        assert result.state == ReminderState.EXHAUSTED
        assert result.armed_channels == [ChannelKind.FOREGROUND]


@pytest.mark.unit
class TestCleanup:
    """The settle hook runs exactly once on every exit path."""

    @pytest.mark.asyncio
    async def test_settle_on_success(self, make_service, worker):
        settled: list[str] = []
        service = make_service(worker=worker, on_settled=settled.append)

        await service.schedule("t1", "Stretch", 1000)

        assert settled == ["t1"]

    @pytest.mark.asyncio
    async def test_settle_on_denied(self, make_service, permission_host):
        permission_host.permission = PermissionState.DENIED
        settled: list[str] = []
        service = make_service(on_settled=settled.append)

        await service.schedule("t1", "Stretch", 1000)

        assert settled == ["t1"]

    @pytest.mark.asyncio
    async def test_settle_on_invalid_delay(self, make_service):
        settled: list[str] = []
        service = make_service(on_settled=settled.append)

        with pytest.raises(ValidationError):
            await service.schedule("t1", "Stretch", -1)

        assert settled == ["t1"]

    @pytest.mark.asyncio
    async def test_settle_hook_failure_is_contained(self, make_service, worker):
        def explode(_task_id: str) -> None:
            raise RuntimeError("ui already closed")

        service = make_service(worker=worker, on_settled=explode)

        result = await service.schedule("t1", "Stretch", 1000)

        assert result.state == ReminderState.CHANNEL_ARMED


@pytest.mark.unit
class TestAlwaysArmed:
    """Every request ends with at least one armed channel."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("delay_ms", [0, 1, 60000, 86400000])
    async def test_at_least_one_channel_armed(self, make_service, push_client, delay_ms):
        push_client.subscription_id = None
        service = make_service(worker=None)

        result = await service.schedule("t1", "Stretch", delay_ms)

        assert ChannelKind.FOREGROUND in result.armed_channels

    @pytest.mark.asyncio
    async def test_host_without_notifications(self, make_service, foreground, surface, push_client):
        gatekeeper = PermissionGatekeeper(InMemoryPermissionHost(notifications_supported=False))
        service = make_service(gatekeeper=gatekeeper)

        result = await service.schedule("t1", "Stretch", 1000)

        assert result.armed_channels == [ChannelKind.FOREGROUND]
        assert push_client.payloads == []


@pytest.mark.unit
class TestTracking:
    """Latest request per task is tracked without request-level dedup."""

    @pytest.mark.asyncio
    async def test_second_request_replaces_first(self, make_service, worker):
        service = make_service(worker=worker)

        await service.schedule("t1", "Stretch", 60000)
        second = await service.schedule("t1", "Stretch again", 60000)

        assert service.get_reminder("t1") is second
        assert await wait_for_condition(lambda: worker.outstanding_work == 2)

    @pytest.mark.asyncio
    async def test_earlier_delivery_does_not_mark_later_request(self, make_service, worker, surface):
        service = make_service(worker=worker)

        first = await service.schedule("t1", "Stretch", 20)
        second = await service.schedule("t1", "Stretch later", 3_600_000)

        assert await wait_for_condition(lambda: first.state == ReminderState.DELIVERED)
        assert second.state == ReminderState.CHANNEL_ARMED
        assert service.get_reminder("t1") is second
        assert service.pending_count == 1

    @pytest.mark.asyncio
    async def test_delivered_reminders_leave_pending(self, make_service, worker):
        service = make_service(worker=worker)

        result = await service.schedule("t1", "Stretch", 0)

        assert await wait_for_condition(lambda: result.state == ReminderState.DELIVERED)
        assert service.pending_count == 0

    @pytest.mark.asyncio
    async def test_tracking_is_bounded(self, make_service, worker, monkeypatch):
        monkeypatch.setattr(constants, "REMINDER_HISTORY_MAXLEN", 2)
        service = make_service(worker=worker)

        for task_id in ("t1", "t2", "t3"):
            await service.schedule(task_id, "Stretch", 60000)

        assert service.get_reminder("t1") is None
        assert service.get_reminder("t3") is not None
        assert service.pending_count == 2

    @pytest.mark.asyncio
    async def test_schedule_for_task(self, make_service, worker):
        service = make_service(worker=worker)

        result = await service.schedule_for_task(Task(id="42", text="Read"), 1000)

        assert result.request.task_id == "42"
        assert result.request.text == "Read"

    def test_unknown_task_has_no_reminder(self, make_service):
        service = make_service()

        assert service.get_reminder("missing") is None
