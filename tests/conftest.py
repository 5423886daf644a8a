"""Shared fixtures for retrymagic tests"""

import pytest

from retrymagic.application.defaults import reset_default_settings
from retrymagic.infrastructure.config.config_manager import ENV_OVERRIDES


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep RETRYMAGIC_* variables and process-wide defaults out of every test"""
    for name in list(ENV_OVERRIDES) + ["RETRYMAGIC_JITTER_PERCENTAGE", "RETRYMAGIC_LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)
    reset_default_settings()
    yield
    reset_default_settings()


@pytest.fixture
def no_jitter():
    """Jitter provider returning the base delay unchanged"""
    return lambda delay_ms, jitter_settings: delay_ms


@pytest.fixture
def sleep_calls():
    """List collecting every back-off passed to the recording sleep"""
    return []


@pytest.fixture
def recording_sleep(sleep_calls):
    """Sleep primitive that records the requested delay instead of waiting"""

    def _sleep(seconds):
        sleep_calls.append(seconds)

    return _sleep
