"""Retry engine built on tenacity.

Every entry point takes its RetrySettings explicitly; ``RetryHandle`` and the
process-wide defaults are thin callers of ``attempt_function`` and
``attempt_function_async``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    nap,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from retrymagic.domain.backoff import JitterProvider, delay_ms
from retrymagic.domain.config.retry import RetrySettings
from retrymagic.domain.errors import AggregateRetryError, ArgumentError, RetryCancelledError
from retrymagic.domain.models.outcome import Exhausted, RetryOutcome, Success
from retrymagic.infrastructure.jitter import apply_jitter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returned by tenacity once the attempt budget is spent
_EXHAUSTED = object()


class wait_truncated_binary_exponential(wait_base):
    """Tenacity wait strategy for truncated binary exponential back-off."""

    def __init__(self, settings: RetrySettings, jitter: JitterProvider = apply_jitter):
        self.settings = settings
        self.jitter = jitter

    def __call__(self, retry_state: RetryCallState) -> float:
        # attempt_number is 1-based, back-off indices are 0-based
        return delay_ms(retry_state.attempt_number - 1, self.settings, self.jitter) / 1000.0


def _blocking_sleep(seconds: float) -> None:
    nap.sleep(seconds)


def _operation_name(operation: Any) -> str:
    name = getattr(operation, "__qualname__", None) or getattr(operation, "__name__", None)
    return name or repr(operation)


def _validate_arguments(operation: Any, settings: Any) -> None:
    """Check engine arguments before the first attempt

    Raises:
        ArgumentError: If settings is missing or operation is not callable
        ConfigurationError: If settings hold out-of-range values
    """
    if settings is None:
        raise ArgumentError("settings must not be None")
    if not isinstance(settings, RetrySettings):
        raise ArgumentError(
            f"settings must be RetrySettings, got {type(settings).__name__}"
        )
    if not callable(operation):
        raise ArgumentError(f"operation must be callable, got {type(operation).__name__}")
    settings.revalidate()


def _log_before_sleep(name: str, settings: RetrySettings) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        if retry_state.outcome is None:
            return
        exception = retry_state.outcome.exception()
        sleep = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{name} failed (attempt {retry_state.attempt_number}/"
            f"{settings.maximum_number_of_attempts}): {exception!r}. "
            f"Retrying in {sleep * 1000:.0f} ms..."
        )

    return _before_sleep


def _check_cancelled(
    name: str, failures: List[BaseException], cancel_event: Optional[threading.Event]
) -> Callable[[RetryCallState], None]:
    def _before(retry_state: RetryCallState) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"{name} cancelled before attempt {retry_state.attempt_number}")
            raise RetryCancelledError(name, failures)

    return _before


def _cancellable_sleep(
    name: str,
    failures: List[BaseException],
    sleep: Optional[Callable[[float], None]],
    cancel_event: Optional[threading.Event],
) -> Callable[[float], None]:
    if cancel_event is None:
        return sleep or _blocking_sleep

    def _sleep(seconds: float) -> None:
        if sleep is None:
            cancelled = cancel_event.wait(seconds)
        else:
            sleep(seconds)
            cancelled = cancel_event.is_set()
        if cancelled:
            logger.info(f"{name} cancelled during back-off")
            raise RetryCancelledError(name, failures)

    return _sleep


def _outcome(name: str, result: Any, failures: List[BaseException]) -> RetryOutcome:
    if result is _EXHAUSTED:
        logger.error(f"{name} failed after {len(failures)} attempts")
        return Exhausted(tuple(failures))
    if failures:
        logger.debug(f"{name} succeeded after {len(failures) + 1} attempts")
    return Success(value=result, attempts=len(failures) + 1, failures=tuple(failures))


def attempt_function(
    operation: Callable[[], T],
    settings: RetrySettings,
    *,
    jitter: JitterProvider = apply_jitter,
    sleep: Optional[Callable[[float], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RetryOutcome[T]:
    """Run an operation until it succeeds or the attempt budget is spent.

    Failures of the operation are recorded, not raised. No back-off is
    waited after the final attempt.

    Args:
        operation: Zero-argument callable; wrap parameterized calls in a lambda
        settings: Retry settings
        jitter: Function randomizing each back-off delay
        sleep: Blocking wait primitive taking seconds (defaults to tenacity's sleep)
        cancel_event: Optional event that aborts the loop when set

    Returns:
        Success with the operation's value, or Exhausted with every failure

    Raises:
        ArgumentError: If settings is missing or operation is not callable
        ConfigurationError: If settings hold out-of-range values
        RetryCancelledError: If cancel_event is set before the loop finishes
    """
    _validate_arguments(operation, settings)
    name = _operation_name(operation)
    failures: List[BaseException] = []

    def _attempt() -> T:
        try:
            return operation()
        except Exception as e:
            failures.append(e)
            raise

    retrying = Retrying(
        stop=stop_after_attempt(settings.maximum_number_of_attempts),
        wait=wait_truncated_binary_exponential(settings, jitter),
        retry=retry_if_exception_type(Exception),
        sleep=_cancellable_sleep(name, failures, sleep, cancel_event),
        before=_check_cancelled(name, failures, cancel_event),
        before_sleep=_log_before_sleep(name, settings),
        retry_error_callback=lambda retry_state: _EXHAUSTED,
    )
    return _outcome(name, retrying(_attempt), failures)


def execute_function(
    operation: Callable[[], T],
    settings: RetrySettings,
    **kwargs: Any,
) -> T:
    """Retry a function and return its result.

    Accepts the keyword arguments of ``attempt_function``.

    Raises:
        AggregateRetryError: If every attempt failed
        ArgumentError: If settings is missing or operation is not callable
    """
    outcome = attempt_function(operation, settings, **kwargs)
    if isinstance(outcome, Exhausted):
        raise AggregateRetryError(
            _operation_name(operation), outcome.attempts, outcome.failures
        ) from outcome.failures[-1]
    return outcome.value


def execute_action(
    operation: Callable[[], Any],
    settings: RetrySettings,
    **kwargs: Any,
) -> None:
    """Retry a side-effecting operation, discarding its return value."""
    outcome = attempt_function(operation, settings, **kwargs)
    if isinstance(outcome, Exhausted):
        raise AggregateRetryError(
            _operation_name(operation), outcome.attempts, outcome.failures, kind="action"
        ) from outcome.failures[-1]


async def attempt_function_async(
    operation: Callable[[], Awaitable[T]],
    settings: RetrySettings,
    *,
    jitter: JitterProvider = apply_jitter,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> RetryOutcome[T]:
    """Asyncio variant of ``attempt_function``.

    Back-off waits suspend the task instead of blocking the thread.
    Cancelling the task cancels the loop. An operation that does not return
    an awaitable raises ArgumentError on the first call, without retrying.
    """
    _validate_arguments(operation, settings)
    name = _operation_name(operation)
    failures: List[BaseException] = []

    async def _attempt() -> T:
        try:
            result = operation()
        except Exception as e:
            failures.append(e)
            raise
        if not inspect.isawaitable(result):
            raise ArgumentError(
                f"operation must return an awaitable, got {type(result).__name__}"
            )
        try:
            return await result
        except Exception as e:
            failures.append(e)
            raise

    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.maximum_number_of_attempts),
        wait=wait_truncated_binary_exponential(settings, jitter),
        retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(ArgumentError),
        sleep=sleep or asyncio.sleep,
        before_sleep=_log_before_sleep(name, settings),
        retry_error_callback=lambda retry_state: _EXHAUSTED,
    )
    return _outcome(name, await retrying(_attempt), failures)


async def execute_function_async(
    operation: Callable[[], Awaitable[T]],
    settings: RetrySettings,
    **kwargs: Any,
) -> T:
    """Asyncio variant of ``execute_function``."""
    outcome = await attempt_function_async(operation, settings, **kwargs)
    if isinstance(outcome, Exhausted):
        raise AggregateRetryError(
            _operation_name(operation), outcome.attempts, outcome.failures
        ) from outcome.failures[-1]
    return outcome.value


async def execute_action_async(
    operation: Callable[[], Awaitable[Any]],
    settings: RetrySettings,
    **kwargs: Any,
) -> None:
    """Asyncio variant of ``execute_action``."""
    outcome = await attempt_function_async(operation, settings, **kwargs)
    if isinstance(outcome, Exhausted):
        raise AggregateRetryError(
            _operation_name(operation), outcome.attempts, outcome.failures, kind="action"
        ) from outcome.failures[-1]
