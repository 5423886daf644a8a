"""Jitter configuration model."""

from pydantic import BaseModel, ConfigDict, Field


class JitterSettings(BaseModel):
    """Configuration for randomizing back-off delays.

    Attributes:
        percentage: Maximum deviation from the computed delay, in percent (0-100)
    """

    percentage: int = Field(25, ge=0, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")
