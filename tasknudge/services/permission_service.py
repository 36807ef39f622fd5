"""Permission gatekeeper for notification consent."""

import logging

from tasknudge.domain.reminder import PermissionState
from tasknudge.interface.host import PermissionHost
from tasknudge.interface.onesignal_client import PushClient


logger = logging.getLogger(__name__)


class PermissionGatekeeper:
    """Reads and requests the user's consent to display notifications.

    The host owns the permission; the gatekeeper never writes it. A host without
    notification support reads as DENIED.
    """

    def __init__(self, host: PermissionHost | None) -> None:
        self._host = host

    def query_permission(self) -> PermissionState:
        """Return the current permission without prompting."""
        if self._host is None or not self._host.notifications_supported:
            return PermissionState.DENIED
        try:
            return PermissionState(self._host.permission)
        except ValueError:
            logger.warning("Unknown permission value from host: %r", self._host.permission)
            return PermissionState.DENIED

    async def request_permission(self, *, user_initiated: bool = True) -> PermissionState:
        """Prompt for consent once, if the answer is not already known.

        Hosts refuse to show the prompt outside a direct user action, so a call
        that is not user-initiated returns the current state unchanged.
        """
        current = self.query_permission()
        if current != PermissionState.UNDETERMINED:
            return current
        if not user_initiated:
            logger.info("Skipping permission prompt outside a user action")
            return current

        assert self._host is not None  # UNDETERMINED implies a supporting host
        try:
            answer = PermissionState(await self._host.prompt())
        except Exception:
            logger.exception("Notification permission prompt failed")
            return PermissionState.DENIED

        logger.info("Notification permission resolved to %s", answer)
        return answer

    async def request_subscription(self, client: PushClient, *, user_initiated: bool = True) -> str | None:
        """Ask the push service to register this user, returning the subscription id if one exists."""
        if not user_initiated:
            return client.get_subscription_id()
        try:
            return await client.request_permission()
        except Exception:
            logger.exception("Push subscription prompt failed")
            return client.get_subscription_id()
