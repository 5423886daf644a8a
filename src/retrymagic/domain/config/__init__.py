"""Configuration models with Pydantic validation."""

from retrymagic.domain.config.app import AppConfig
from retrymagic.domain.config.jitter import JitterSettings
from retrymagic.domain.config.retry import RetrySettings

__all__ = [
    "AppConfig",
    "JitterSettings",
    "RetrySettings",
]
