"""Default jitter provider."""

from __future__ import annotations

import random

from retrymagic.domain.config.jitter import JitterSettings


def apply_jitter(delay_ms: int, jitter_settings: JitterSettings) -> int:
    """Randomize a delay by up to +/- ``jitter_settings.percentage`` percent.

    A zero delay or a zero percentage returns the delay unchanged. The result
    is never negative.
    """
    if delay_ms <= 0 or jitter_settings.percentage == 0:
        return max(0, delay_ms)
    spread = delay_ms * jitter_settings.percentage / 100
    # Non-crypto usage
    jittered = delay_ms + random.uniform(-spread, spread)  # noqa: S311
    return max(0, int(round(jittered)))
