"""Pytest configuration and shared fixtures."""

import logging

import pytest

from tasknudge.core.config import Settings


logger = logging.getLogger(__name__)


@pytest.fixture
def test_settings() -> Settings:
    """Settings that never pick up a developer's .env credentials."""
    return Settings(
        _env_file=None,
        onesignal_app_id="app-test",
        onesignal_api_key="key-test",
        onesignal_api_url="https://push.test/api/v1",
        app_origin="http://localhost:3000",
    )
