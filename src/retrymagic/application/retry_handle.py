"""Retry handle - reuses one RetrySettings across many retry calls"""

import logging
import threading
from typing import Any, Awaitable, Callable, TypeVar

from retrymagic.domain.config.retry import RetrySettings
from retrymagic.domain.errors import ArgumentError, ConfigurationError
from retrymagic.domain.models.outcome import RetryOutcome
from retrymagic.infrastructure import retry as engine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryHandle:
    """Holds the current RetrySettings and delegates to the retry engine.

    Every call reads the settings once when it starts, so ``update_settings``
    only affects calls started after it returns.
    """

    def __init__(self, settings: RetrySettings, **engine_options: Any):
        """Initialize retry handle

        Args:
            settings: Initial retry settings
            **engine_options: Keyword arguments forwarded to the engine on every
                call (jitter, sleep)

        Raises:
            ConfigurationError: If settings is not a valid RetrySettings
        """
        if settings is None:
            raise ConfigurationError("settings must not be None", fields=("settings",))
        if not isinstance(settings, RetrySettings):
            raise ConfigurationError(
                f"settings must be RetrySettings, got {type(settings).__name__}",
                fields=("settings",),
            )
        settings.revalidate()
        self._settings = settings
        self._lock = threading.Lock()
        self._engine_options = engine_options

    @property
    def settings(self) -> RetrySettings:
        """Settings used by calls started now"""
        with self._lock:
            return self._settings

    def update_settings(self, settings: RetrySettings) -> None:
        """Replace the settings used by subsequent calls

        Args:
            settings: New retry settings

        Raises:
            ArgumentError: If settings is missing or not RetrySettings
            ConfigurationError: If settings hold out-of-range values
        """
        if settings is None:
            raise ArgumentError("settings must not be None")
        if not isinstance(settings, RetrySettings):
            raise ArgumentError(
                f"settings must be RetrySettings, got {type(settings).__name__}"
            )
        settings.revalidate()
        with self._lock:
            self._settings = settings
        logger.debug(f"Retry settings updated: {settings!r}")

    def attempt_function(self, operation: Callable[[], T], **kwargs: Any) -> RetryOutcome[T]:
        """Run operation with the current settings and return the outcome"""
        return engine.attempt_function(operation, self.settings, **self._options(kwargs))

    def execute_function(self, operation: Callable[[], T], **kwargs: Any) -> T:
        """Retry a function with the current settings and return its result"""
        return engine.execute_function(operation, self.settings, **self._options(kwargs))

    def execute_action(self, operation: Callable[[], Any], **kwargs: Any) -> None:
        """Retry an action with the current settings"""
        engine.execute_action(operation, self.settings, **self._options(kwargs))

    async def execute_function_async(
        self, operation: Callable[[], Awaitable[T]], **kwargs: Any
    ) -> T:
        return await engine.execute_function_async(
            operation, self.settings, **self._async_options(kwargs)
        )

    async def execute_action_async(
        self, operation: Callable[[], Awaitable[Any]], **kwargs: Any
    ) -> None:
        await engine.execute_action_async(
            operation, self.settings, **self._async_options(kwargs)
        )

    def _options(self, kwargs: dict) -> dict:
        options = dict(self._engine_options)
        options.update(kwargs)
        return options

    def _async_options(self, kwargs: dict) -> dict:
        # Blocking sleep primitives do not apply to the asyncio engine
        options = {k: v for k, v in self._engine_options.items() if k == "jitter"}
        options.update(kwargs)
        return options
