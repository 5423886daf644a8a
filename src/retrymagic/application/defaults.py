"""Process-wide default retry settings.

A single lock-guarded reference, set with ``set_default_settings`` at
application startup and restored with ``reset_default_settings``.
``retry_function`` and ``retry_action`` use it when no settings are given.
"""

import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from retrymagic.domain.config.retry import DEFAULT_MAXIMUM_NUMBER_OF_ATTEMPTS, RetrySettings
from retrymagic.domain.errors import ArgumentError
from retrymagic.infrastructure import retry as engine

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _initial_settings() -> RetrySettings:
    return RetrySettings(maximum_number_of_attempts=DEFAULT_MAXIMUM_NUMBER_OF_ATTEMPTS)


_lock = threading.Lock()
_default_settings: RetrySettings = _initial_settings()


def get_default_settings() -> RetrySettings:
    """Get the process-wide default settings"""
    with _lock:
        return _default_settings


def set_default_settings(settings: RetrySettings) -> None:
    """Replace the process-wide default settings

    Raises:
        ArgumentError: If settings is missing or not RetrySettings
        ConfigurationError: If settings hold out-of-range values
    """
    global _default_settings
    if not isinstance(settings, RetrySettings):
        raise ArgumentError(
            f"settings must be RetrySettings, got {type(settings).__name__}"
        )
    settings.revalidate()
    with _lock:
        _default_settings = settings
    logger.info(f"Default retry settings replaced: {settings!r}")


def reset_default_settings() -> None:
    """Restore the built-in default settings (8 attempts)"""
    global _default_settings
    with _lock:
        _default_settings = _initial_settings()


def _resolve(settings: Optional[RetrySettings]) -> RetrySettings:
    return settings if settings is not None else get_default_settings()


def retry_function(
    operation: Callable[[], T], settings: Optional[RetrySettings] = None, **kwargs: Any
) -> T:
    """Retry a function with the given settings, or the process-wide defaults"""
    return engine.execute_function(operation, _resolve(settings), **kwargs)


def retry_action(
    operation: Callable[[], Any], settings: Optional[RetrySettings] = None, **kwargs: Any
) -> None:
    """Retry an action with the given settings, or the process-wide defaults"""
    engine.execute_action(operation, _resolve(settings), **kwargs)
