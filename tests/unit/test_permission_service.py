"""Unit tests for the permission gatekeeper."""

from unittest.mock import AsyncMock

import pytest

from tasknudge.domain.reminder import PermissionState
from tasknudge.interface.host import InMemoryPermissionHost
from tasknudge.services.permission_service import PermissionGatekeeper
from tests.unit.mocks import FakePushClient


@pytest.mark.unit
class TestQueryPermission:
    def test_reads_host_state(self):
        host = InMemoryPermissionHost(permission=PermissionState.GRANTED)

        assert PermissionGatekeeper(host).query_permission() == PermissionState.GRANTED

    def test_no_host_is_denied(self):
        assert PermissionGatekeeper(None).query_permission() == PermissionState.DENIED

    def test_unsupported_host_is_denied(self):
        host = InMemoryPermissionHost(permission=PermissionState.GRANTED, notifications_supported=False)

        assert PermissionGatekeeper(host).query_permission() == PermissionState.DENIED

    def test_unknown_value_is_denied(self):
        host = InMemoryPermissionHost()
        host.permission = "prompt"  # type: ignore[assignment]

        assert PermissionGatekeeper(host).query_permission() == PermissionState.DENIED


@pytest.mark.unit
class TestRequestPermission:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [PermissionState.GRANTED, PermissionState.DENIED])
    async def test_known_state_does_not_prompt(self, state):
        host = InMemoryPermissionHost(permission=state)

        assert await PermissionGatekeeper(host).request_permission() == state
        assert host.prompt_count == 0

    @pytest.mark.asyncio
    async def test_undetermined_prompts_once(self):
        host = InMemoryPermissionHost(answer=PermissionState.GRANTED)
        gatekeeper = PermissionGatekeeper(host)

        assert await gatekeeper.request_permission() == PermissionState.GRANTED
        assert await gatekeeper.request_permission() == PermissionState.GRANTED
        assert host.prompt_count == 1

    @pytest.mark.asyncio
    async def test_not_user_initiated_never_prompts(self):
        host = InMemoryPermissionHost(answer=PermissionState.GRANTED)

        result = await PermissionGatekeeper(host).request_permission(user_initiated=False)

        assert result == PermissionState.UNDETERMINED
        assert host.prompt_count == 0

    @pytest.mark.asyncio
    async def test_prompt_failure_is_denied(self):
        host = InMemoryPermissionHost(answer=AsyncMock(side_effect=RuntimeError("prompt dismissed")))

        assert await PermissionGatekeeper(host).request_permission() == PermissionState.DENIED

    @pytest.mark.asyncio
    async def test_prompt_answer_from_callback(self):
        host = InMemoryPermissionHost(answer=AsyncMock(return_value=PermissionState.DENIED))

        assert await PermissionGatekeeper(host).request_permission() == PermissionState.DENIED
        assert host.permission == PermissionState.DENIED


@pytest.mark.unit
class TestRequestSubscription:
    @pytest.mark.asyncio
    async def test_prompts_push_client(self):
        client = FakePushClient(subscription_id=None, prompt_result="sub-new")

        assert await PermissionGatekeeper(None).request_subscription(client) == "sub-new"
        assert client.prompt_count == 1

    @pytest.mark.asyncio
    async def test_background_call_does_not_prompt(self):
        client = FakePushClient(subscription_id=None, prompt_result="sub-new")

        assert await PermissionGatekeeper(None).request_subscription(client, user_initiated=False) is None
        assert client.prompt_count == 0

    @pytest.mark.asyncio
    async def test_prompt_failure_returns_existing(self):
        client = FakePushClient(subscription_id="sub-old")
        client.request_permission = AsyncMock(side_effect=RuntimeError("sdk not loaded"))

        assert await PermissionGatekeeper(None).request_subscription(client) == "sub-old"
