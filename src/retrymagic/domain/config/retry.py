"""Retry configuration model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from retrymagic.domain.config.jitter import JitterSettings
from retrymagic.domain.errors import ConfigurationError

DEFAULT_JITTER_SETTINGS = JitterSettings()


class RetrySettings(BaseModel):
    """Configuration for truncated binary exponential back-off.

    Instances are validated when they are built and cannot be changed
    afterwards; use ``with_changes`` to derive a new configuration.

    Attributes:
        maximum_number_of_attempts: Total number of invocations, including the first
        milliseconds_per_slot: Time per back-off slot in milliseconds
        truncate_number_of_slots: Whether the number of slots stops growing at a cap
        maximum_number_of_slots_when_truncated: Slot cap used when truncating
        jitter_settings: Jitter applied to every computed delay
    """

    maximum_number_of_attempts: int = Field(5, ge=1)
    milliseconds_per_slot: int = Field(32, ge=1)
    truncate_number_of_slots: bool = True
    maximum_number_of_slots_when_truncated: int = Field(16, ge=1)
    jitter_settings: JitterSettings = Field(default_factory=JitterSettings)

    model_config = ConfigDict(
        frozen=True,  # Reject attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "maximum_number_of_attempts": 5,
                "milliseconds_per_slot": 32,
                "truncate_number_of_slots": True,
                "maximum_number_of_slots_when_truncated": 16,
                "jitter_settings": {"percentage": 25},
            }
        },
    )

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigurationError.from_validation_error(e) from e

    @field_validator(
        "maximum_number_of_attempts",
        "milliseconds_per_slot",
        "maximum_number_of_slots_when_truncated",
        mode="before",
    )
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        # bool is an int subclass; numeric strings from the environment still coerce
        if isinstance(value, bool):
            raise ValueError("Input should be a valid integer, not a boolean")
        return value

    @classmethod
    def create(
        cls,
        maximum_number_of_attempts: int = 5,
        milliseconds_per_slot: int = 32,
        truncate_number_of_slots: bool = True,
        maximum_number_of_slots_when_truncated: int = 16,
        jitter_settings: JitterSettings = DEFAULT_JITTER_SETTINGS,
    ) -> "RetrySettings":
        """Create validated retry settings

        Args:
            maximum_number_of_attempts: Total number of invocations (>= 1)
            milliseconds_per_slot: Time per slot in milliseconds (>= 1)
            truncate_number_of_slots: Cap slot growth
            maximum_number_of_slots_when_truncated: Slot cap (>= 1)
            jitter_settings: Jitter configuration (25% when omitted, must not be None)

        Returns:
            RetrySettings instance

        Raises:
            ConfigurationError: If any value is out of range
        """
        return cls(
            maximum_number_of_attempts=maximum_number_of_attempts,
            milliseconds_per_slot=milliseconds_per_slot,
            truncate_number_of_slots=truncate_number_of_slots,
            maximum_number_of_slots_when_truncated=maximum_number_of_slots_when_truncated,
            jitter_settings=jitter_settings,
        )

    def with_changes(self, **changes: Any) -> "RetrySettings":
        """Return a new validated instance with the given fields replaced"""
        data = self.model_dump()
        data.update(changes)
        return type(self)(**data)

    def revalidate(self) -> "RetrySettings":
        """Validate this instance again and return it

        ``model_copy`` and ``model_construct`` skip validation, so instances
        built that way may hold out-of-range values.

        Raises:
            ConfigurationError: If any value is out of range
        """
        type(self)(**self.model_dump(warnings=False))
        return self


# Settings used by the process-wide defaults holder
DEFAULT_MAXIMUM_NUMBER_OF_ATTEMPTS = 8
