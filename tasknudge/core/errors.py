"""Error taxonomy and classification for reminder delivery."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel


class ErrorCategory(Enum):
    """Categories of errors that can occur while arming or delivering a reminder."""

    PERMISSION_DENIED = "permission_denied"
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    DELIVERY_REJECTED = "delivery_rejected"
    TRANSPORT_FAILURE = "transport_failure"
    PLAYBACK_BLOCKED = "playback_blocked"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_CHANNEL_UNAVAILABLE = "ERR_CHANNEL_UNAVAILABLE"
    ERR_DELIVERY_REJECTED = "ERR_DELIVERY_REJECTED"
    ERR_TRANSPORT_FAILURE = "ERR_TRANSPORT_FAILURE"
    ERR_PLAYBACK_BLOCKED = "ERR_PLAYBACK_BLOCKED"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class ReminderError(Exception):
    """Base class for reminder delivery errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail


class PermissionDenied(ReminderError):
    """The user has not allowed notifications."""

    category = ErrorCategory.PERMISSION_DENIED


class ChannelUnavailable(ReminderError):
    """A channel cannot accept requests yet (no controlling worker, no subscription)."""

    category = ErrorCategory.CHANNEL_UNAVAILABLE


class DeliveryRejected(ReminderError):
    """The remote push service returned a structured error."""

    category = ErrorCategory.DELIVERY_REJECTED


class TransportFailure(ReminderError):
    """A network or message-passing call raised."""

    category = ErrorCategory.TRANSPORT_FAILURE


class PlaybackBlocked(ReminderError):
    """The audio cue was suppressed by the host's autoplay policy."""

    category = ErrorCategory.PLAYBACK_BLOCKED


_ERROR_PATTERNS: dict[
    Literal["auth", "network"],
    dict[str, list[str] | set[str]],
] = {
    "auth": {
        "phrases": [
            "authentication failed",
            "invalid api key",
            "unauthorized",
            "invalid token",
            "401",
            "403",
        ],
        "exception_types": {"AuthenticationError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout", "ConnectTimeout"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["auth", "network"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_reminder_error(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised while arming or delivering a reminder

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, PermissionDenied):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="Notifications are blocked, so reminders will only appear while this page is open.",
            suggestion="Allow notifications for this site in your browser settings.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ChannelUnavailable):
        return ErrorResponse(
            code=ErrorCode.ERR_CHANNEL_UNAVAILABLE,
            message="Background reminders are not available yet.",
            suggestion="Reload the page or enable push notifications.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, PlaybackBlocked):
        return ErrorResponse(
            code=ErrorCode.ERR_PLAYBACK_BLOCKED,
            message="The reminder sound was blocked.",
            suggestion="Interact with the page once to allow sounds.",
            severity=ErrorSeverity.LOW,
        )

    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if isinstance(exception, DeliveryRejected) or _match_error_pattern(
        error_str=error_str, exception_type=exception_type, pattern_type="auth"
    ):
        detail = getattr(exception, "detail", "") or str(exception)
        return ErrorResponse(
            code=ErrorCode.ERR_DELIVERY_REJECTED,
            message=f"The push service rejected the reminder: {detail}",
            suggestion="Check your push subscription and try scheduling the reminder again.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, TransportFailure) or _match_error_pattern(
        error_str=error_str, exception_type=exception_type, pattern_type="network"
    ):
        return ErrorResponse(
            code=ErrorCode.ERR_TRANSPORT_FAILURE,
            message="Could not reach the push service.",
            suggestion="Please check your connection and try again.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred while scheduling the reminder.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.MEDIUM,
    )
