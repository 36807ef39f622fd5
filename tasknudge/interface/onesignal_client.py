"""OneSignal REST client used to schedule remote push notifications."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field

from tasknudge.core.config import Settings, constants
from tasknudge.core.errors import TransportFailure


logger = logging.getLogger(__name__)


SubscriptionPrompt = Callable[[], Awaitable[str | None]]


class PushResponse(BaseModel):
    """Result of a push scheduling request."""

    success: bool = Field(..., description="Whether the push service accepted the notification")
    notification_id: str | None = Field(None, description="Push service notification ID if accepted")
    errors: list[str] = Field(default_factory=list, description="Structured errors returned by the service")
    status_code: int | None = Field(None, description="HTTP status code of the response")


class PushClient(Protocol):
    """What the remote push channel needs from a push-delivery service."""

    def get_subscription_id(self) -> str | None: ...

    async def request_permission(self) -> str | None: ...

    async def create_notification(self, payload: dict[str, Any]) -> PushResponse: ...


def _extract_errors(data: Any) -> list[str]:
    """Pull error messages out of a OneSignal response body.

    OneSignal returns ``{"errors": [...]}`` for most failures but
    ``{"errors": {"invalid_player_ids": [...]}}`` for bad recipients.
    """
    if not isinstance(data, dict):
        return []
    errors = data.get("errors")
    if isinstance(errors, list):
        return [str(e) for e in errors]
    if isinstance(errors, dict):
        return [f"{key}: {value}" for key, value in errors.items()]
    if errors:
        return [str(errors)]
    return []


class OneSignalClient:
    """Injected push client. Built once at startup and handed to the reminder service."""

    def __init__(
        self,
        *,
        app_id: str,
        api_key: str,
        api_url: str = "https://onesignal.com/api/v1",
        auth_scheme: str = "Basic",
        subscription_id: str | None = None,
        subscription_prompt: SubscriptionPrompt | None = None,
    ) -> None:
        self.app_id = app_id
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._auth_scheme = auth_scheme
        self._subscription_id = subscription_id
        self._subscription_prompt = subscription_prompt

    @classmethod
    def initialize(
        cls,
        config: Settings,
        *,
        subscription_prompt: SubscriptionPrompt | None = None,
    ) -> "OneSignalClient":
        """Create a client from settings.

        Raises:
            ValueError: If the app ID or API key is not configured
        """
        return cls(
            app_id=config.require_credential("onesignal_app_id", "OneSignal app ID"),
            api_key=config.require_credential("onesignal_api_key", "OneSignal API key"),
            api_url=config.onesignal_api_url,
            auth_scheme=config.onesignal_auth_scheme,
            subscription_id=config.onesignal_subscription_id,
            subscription_prompt=subscription_prompt,
        )

    def get_subscription_id(self) -> str | None:
        return self._subscription_id

    def register_subscription(self, subscription_id: str | None) -> None:
        """Record the id the push service issued (or revoked) for this user."""
        self._subscription_id = subscription_id or None

    async def request_permission(self) -> str | None:
        """Run the push opt-in prompt and return the resulting subscription id."""
        if self._subscription_prompt is None:
            logger.debug("No push opt-in prompt configured")
            return self._subscription_id
        subscription_id = await self._subscription_prompt()
        if subscription_id:
            self.register_subscription(subscription_id)
        return self._subscription_id

    async def create_notification(self, payload: dict[str, Any]) -> PushResponse:
        """POST a notification to OneSignal.

        Raises:
            TransportFailure: If the request could not be sent or no response arrived
        """
        url = f"{self._api_url}/notifications"
        headers = {
            "Authorization": f"{self._auth_scheme} {self._api_key}",
            "Content-Type": "application/json; charset=utf-8",
        }
        body = {"app_id": self.app_id, **payload}

        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise TransportFailure(f"OneSignal request failed: {e!s}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        errors = _extract_errors(data)
        if response.is_success and not errors:
            notification_id = data.get("id") if isinstance(data, dict) else None
            return PushResponse(success=True, notification_id=notification_id, status_code=response.status_code)

        if not errors and response.text:
            errors = [response.text]
        return PushResponse(success=False, errors=errors, status_code=response.status_code)
