"""retrymagic - retry operations with truncated binary exponential back-off"""

from retrymagic.application.defaults import (
    get_default_settings,
    reset_default_settings,
    retry_action,
    retry_function,
    set_default_settings,
)
from retrymagic.application.retry_handle import RetryHandle
from retrymagic.domain.config import JitterSettings, RetrySettings
from retrymagic.domain.errors import (
    AggregateRetryError,
    ArgumentError,
    ConfigurationError,
    RetryCancelledError,
    RetryMagicError,
)
from retrymagic.domain.models.outcome import Exhausted, Success
from retrymagic.infrastructure.retry import (
    attempt_function,
    attempt_function_async,
    execute_action,
    execute_action_async,
    execute_function,
    execute_function_async,
)

__all__ = [
    "AggregateRetryError",
    "ArgumentError",
    "ConfigurationError",
    "Exhausted",
    "JitterSettings",
    "RetryCancelledError",
    "RetryHandle",
    "RetryMagicError",
    "RetrySettings",
    "Success",
    "attempt_function",
    "attempt_function_async",
    "execute_action",
    "execute_action_async",
    "execute_function",
    "execute_function_async",
    "get_default_settings",
    "reset_default_settings",
    "retry_action",
    "retry_function",
    "set_default_settings",
]
