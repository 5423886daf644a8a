"""Main application configuration model."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from retrymagic.domain.config.retry import RetrySettings


class AppConfig(BaseModel):
    """Root configuration loaded from .retrymagic.yml.

    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        retry: Retry settings used by the CLI and by ``ConfigManager`` consumers
        log_level: Default logging level for the CLI
    """

    retry: RetrySettings = Field(default_factory=RetrySettings)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "retry": {
                    "maximum_number_of_attempts": 5,
                    "milliseconds_per_slot": 32,
                    "truncate_number_of_slots": True,
                    "maximum_number_of_slots_when_truncated": 16,
                    "jitter_settings": {"percentage": 25},
                },
                "log_level": "INFO",
            }
        },
    )
