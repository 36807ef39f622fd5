"""Configuration management for tasknudge."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Push services reject send_after values that are already in the past by the time they arrive
MIN_SEND_AFTER_BUFFER_SECONDS = 5


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OneSignal Configuration
    onesignal_app_id: str | None = Field(default=None, description="OneSignal application ID")
    onesignal_api_key: str | None = Field(default=None, description="OneSignal REST API key")
    onesignal_api_url: str = Field(default="https://onesignal.com/api/v1", description="OneSignal REST API base URL")
    onesignal_auth_scheme: str = Field(default="Basic", description="Authorization scheme for the REST API key")
    onesignal_subscription_id: str | None = Field(
        default=None, description="Subscription ID issued for this user/device, if already registered"
    )
    enable_remote_push: bool = Field(default=True, description="Enable/disable the remote push channel")

    # Application / Notification Rendering
    app_origin: str = Field(default="http://localhost:3000", description="Origin opened when a notification is clicked")
    notification_title: str = Field(default="Task Reminder", description="Title for reminder notifications")
    notification_icon: str = Field(default="/logo192.png", description="Notification icon asset path")
    notification_badge: str = Field(default="/logo192.png", description="Notification badge asset path")
    push_language: str = Field(default="en", description="Language key for push contents/headings")

    # Escalation Configuration
    worker_ready_timeout_seconds: float = Field(
        default=3.0, description="Max seconds to wait for the background worker to control the page"
    )
    push_send_after_buffer_seconds: int = Field(
        default=MIN_SEND_AFTER_BUFFER_SECONDS,
        description="Seconds added to send_after to absorb clock skew",
    )
    subscription_prompt_retries: int = Field(
        default=1, description="Times to prompt for a push subscription before giving up on remote push"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    @field_validator("push_send_after_buffer_seconds")
    @classmethod
    def validate_send_after_buffer(cls, v: int) -> int:
        """Reject buffers too small to survive clock skew."""
        if v < MIN_SEND_AFTER_BUFFER_SECONDS:
            raise ValueError(f"push_send_after_buffer_seconds must be >= {MIN_SEND_AFTER_BUFFER_SECONDS}")
        return v

    @field_validator("subscription_prompt_retries")
    @classmethod
    def validate_prompt_retries(cls, v: int) -> int:
        """Retries cannot be negative."""
        if v < 0:
            raise ValueError("subscription_prompt_retries must be >= 0")
        return v

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_BAD_REQUEST: int = 400
    HTTP_SERVER_ERROR: int = 500

    # Notification Rendering
    VIBRATION_PATTERN: tuple[int, ...] = (200, 100, 200)
    DEDUP_TAG_PREFIX: str = "todo-"
    REMINDER_BODY_TEMPLATE: str = "Time to work on: {text}"

    # Reminder Tracking
    REMINDER_HISTORY_MAXLEN: int = 1000  # Max reminder results kept per index

    # Worker Message Types
    SCHEDULE_NOTIFICATION: str = "SCHEDULE_NOTIFICATION"

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent
    CLIENT_ROOT_PATH: str = "/"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
