"""Truncated binary exponential back-off.

The delay inserted after the n-th failed attempt (0-based) is
``(2**n - 1) * milliseconds_per_slot``, with the slot count capped either at
``maximum_number_of_slots_when_truncated`` or at ``MAXIMUM_NUMBER_OF_SLOTS``.
"""

from __future__ import annotations

from typing import Callable, List

from retrymagic.domain.config.jitter import JitterSettings
from retrymagic.domain.config.retry import RetrySettings

# Largest slot count used when truncation is disabled (signed 32-bit max)
MAXIMUM_NUMBER_OF_SLOTS = 2**31 - 1

JitterProvider = Callable[[int, JitterSettings], int]


def number_of_slots(attempt_index: int, settings: RetrySettings) -> int:
    """Return the number of back-off slots for a 0-based attempt index.

    Args:
        attempt_index: Index of the failed attempt (0 for the first failure)
        settings: Retry settings

    Returns:
        ``2**attempt_index - 1`` capped at the configured maximum

    Raises:
        ValueError: If attempt_index is negative
    """
    if attempt_index < 0:
        raise ValueError(f"attempt_index must be >= 0, got {attempt_index}")

    if settings.truncate_number_of_slots:
        cap = settings.maximum_number_of_slots_when_truncated
    else:
        cap = MAXIMUM_NUMBER_OF_SLOTS

    # 2**n - 1 > cap as soon as n exceeds the bit length of cap
    if attempt_index > cap.bit_length():
        return cap
    return min(2**attempt_index - 1, cap)


def base_delay_ms(attempt_index: int, settings: RetrySettings) -> int:
    """Return the un-jittered delay in milliseconds for an attempt index"""
    return number_of_slots(attempt_index, settings) * settings.milliseconds_per_slot


def delay_ms(attempt_index: int, settings: RetrySettings, jitter: JitterProvider) -> int:
    """Return the delay in milliseconds actually waited after an attempt.

    Args:
        attempt_index: Index of the failed attempt (0 for the first failure)
        settings: Retry settings
        jitter: Function randomizing a delay according to JitterSettings

    Returns:
        Jittered delay in milliseconds
    """
    return jitter(base_delay_ms(attempt_index, settings), settings.jitter_settings)


def schedule_ms(settings: RetrySettings) -> List[int]:
    """Return the un-jittered delay before every retry the settings allow"""
    return [base_delay_ms(i, settings) for i in range(settings.maximum_number_of_attempts - 1)]
