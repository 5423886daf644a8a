"""Tests for the retry engine"""

from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from retrymagic.domain.config import JitterSettings, RetrySettings
from retrymagic.domain.errors import (
    AggregateRetryError,
    ArgumentError,
    ConfigurationError,
    RetryCancelledError,
)
from retrymagic.domain.models.outcome import Exhausted, Success
from retrymagic.infrastructure.retry import (
    attempt_function,
    execute_action,
    execute_action_async,
    execute_function,
    execute_function_async,
    wait_truncated_binary_exponential,
)


def _settings(**overrides) -> RetrySettings:
    values = {
        "maximum_number_of_attempts": 5,
        "milliseconds_per_slot": 32,
        "truncate_number_of_slots": True,
        "maximum_number_of_slots_when_truncated": 16,
        "jitter_settings": JitterSettings(percentage=0),
    }
    values.update(overrides)
    return RetrySettings(**values)


def _failing_until(success_on_call: int, value="value"):
    """Operation failing on every call before success_on_call"""
    calls = {"n": 0}

    def operation():
        calls["n"] += 1
        if calls["n"] < success_on_call:
            raise RuntimeError(f"failure {calls['n']}")
        return value

    return operation, calls


def _always_failing():
    calls = {"n": 0}

    def operation():
        calls["n"] += 1
        raise RuntimeError(f"failure {calls['n']}")

    return operation, calls


class TestExecuteFunction:
    """Tests for execute_function"""

    def test_success_first_attempt(self, recording_sleep, sleep_calls):
        """Test result is returned without any back-off"""
        operation, calls = _failing_until(1)
        assert execute_function(operation, _settings(), sleep=recording_sleep) == "value"
        assert calls["n"] == 1
        assert sleep_calls == []

    def test_success_on_last_attempt(self, recording_sleep, sleep_calls):
        """Test failing on calls 1-4 and succeeding on call 5"""
        operation, calls = _failing_until(5)
        assert execute_function(operation, _settings(), sleep=recording_sleep) == "value"
        assert calls["n"] == 5
        assert sleep_calls == pytest.approx([0.0, 0.032, 0.096, 0.224])

    def test_no_sleep_after_success(self, recording_sleep, sleep_calls):
        """Test success on attempt k waits exactly k-1 times"""
        operation, calls = _failing_until(3)
        execute_function(operation, _settings(), sleep=recording_sleep)
        assert calls["n"] == 3
        assert len(sleep_calls) == 2

    def test_exhaustion_raises_aggregate_error(self, recording_sleep):
        """Test an always-failing operation is invoked exactly N times"""
        operation, calls = _always_failing()
        with pytest.raises(AggregateRetryError) as exc_info:
            execute_function(operation, _settings(), sleep=recording_sleep)

        error = exc_info.value
        assert calls["n"] == 5
        assert error.attempts == 5
        assert len(error.failures) == 5
        assert [str(e) for e in error.failures] == [f"failure {i}" for i in range(1, 6)]
        assert error.__cause__ is error.failures[-1]
        assert "failed for 5 attempts" in str(error)
        assert "operation" in str(error)

    def test_no_sleep_after_final_attempt(self, recording_sleep, sleep_calls):
        """Test N failures wait N-1 times"""
        operation, _ = _always_failing()
        with pytest.raises(AggregateRetryError):
            execute_function(operation, _settings(), sleep=recording_sleep)
        assert sleep_calls == pytest.approx([0.0, 0.032, 0.096, 0.224])

    def test_single_attempt(self, recording_sleep, sleep_calls):
        """Test one attempt means one invocation and no back-off"""
        operation, calls = _always_failing()
        with pytest.raises(AggregateRetryError) as exc_info:
            execute_function(
                operation, _settings(maximum_number_of_attempts=1), sleep=recording_sleep
            )
        assert calls["n"] == 1
        assert len(exc_info.value.failures) == 1
        assert sleep_calls == []

    def test_every_exception_type_is_retried(self, recording_sleep):
        """Test no exception is treated as fatal"""
        errors = [ValueError("a"), KeyError("b"), OSError("c")]

        def operation():
            if errors:
                raise errors.pop(0)
            return 42

        assert execute_function(operation, _settings(), sleep=recording_sleep) == 42

    def test_base_exception_is_not_retried(self, recording_sleep):
        """Test KeyboardInterrupt propagates immediately"""
        calls = {"n": 0}

        def operation():
            calls["n"] += 1
            raise KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            execute_function(operation, _settings(), sleep=recording_sleep)
        assert calls["n"] == 1

    def test_jitter_provider_is_used(self, recording_sleep, sleep_calls):
        """Test each delay goes through the jitter provider"""
        operation, _ = _failing_until(3)
        execute_function(
            operation,
            _settings(),
            sleep=recording_sleep,
            jitter=lambda delay, jitter_settings: delay + 1000,
        )
        assert sleep_calls == pytest.approx([1.0, 1.032])

    def test_failing_sleep_propagates(self):
        """Test errors from the sleep primitive are not swallowed"""
        operation, calls = _always_failing()

        def broken_sleep(seconds):
            raise OSError("sleep failed")

        with pytest.raises(OSError, match="sleep failed"):
            execute_function(operation, _settings(), sleep=broken_sleep)
        assert calls["n"] == 1

    def test_default_sleep_uses_tenacity_nap(self, monkeypatch):
        """Test the default blocking wait goes through tenacity.nap.sleep"""
        sleep_calls = []
        monkeypatch.setattr("tenacity.nap.sleep", lambda seconds: sleep_calls.append(seconds))

        operation, _ = _failing_until(3)
        assert execute_function(operation, _settings()) == "value"
        assert sleep_calls == pytest.approx([0.0, 0.032])

    def test_logs_retries(self, recording_sleep, caplog):
        """Test a warning is logged before every back-off"""
        operation, _ = _failing_until(3)
        with caplog.at_level(logging.WARNING, logger="retrymagic.infrastructure.retry"):
            execute_function(operation, _settings(), sleep=recording_sleep)
        messages = [r.getMessage() for r in caplog.records]
        assert len(messages) == 2
        assert "attempt 1/5" in messages[0]
        assert "Retrying in 32 ms" in messages[1]


class TestArgumentValidation:
    """Tests for invalid engine arguments"""

    def test_none_settings(self):
        """Test missing settings"""
        operation, calls = _failing_until(1)
        with pytest.raises(ArgumentError, match="settings"):
            execute_function(operation, None)
        assert calls["n"] == 0

    def test_wrong_settings_type(self):
        """Test a plain dict is not accepted as settings"""
        with pytest.raises(ArgumentError, match="RetrySettings"):
            execute_function(lambda: 1, {"maximum_number_of_attempts": 3})

    def test_operation_not_callable(self):
        with pytest.raises(ArgumentError, match="callable"):
            execute_function("not callable", _settings())

    def test_unvalidated_zero_attempts(self, recording_sleep):
        """Test settings copied without validation are rejected before any attempt"""
        operation, calls = _always_failing()
        settings = _settings().model_copy(update={"maximum_number_of_attempts": 0})
        with pytest.raises(ConfigurationError, match="maximum_number_of_attempts"):
            execute_function(operation, settings, sleep=recording_sleep)
        assert calls["n"] == 0

    def test_constructed_settings_without_jitter(self):
        """Test model_construct settings are validated by attempt_function"""
        operation, calls = _failing_until(1)
        settings = RetrySettings.model_construct(
            maximum_number_of_attempts=-3, jitter_settings=None
        )
        with pytest.raises(ConfigurationError) as exc_info:
            attempt_function(operation, settings)
        assert set(exc_info.value.fields) == {"maximum_number_of_attempts", "jitter_settings"}
        assert calls["n"] == 0

    def test_async_unvalidated_settings(self):
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1

        settings = _settings().model_copy(update={"milliseconds_per_slot": 0})
        with pytest.raises(ConfigurationError, match="milliseconds_per_slot"):
            asyncio.run(execute_function_async(operation, settings))
        assert calls["n"] == 0


class TestExecuteAction:
    """Tests for execute_action"""

    def test_success_returns_none(self, recording_sleep):
        """Test the action's return value is discarded"""
        operation, calls = _failing_until(2)
        assert execute_action(operation, _settings(), sleep=recording_sleep) is None
        assert calls["n"] == 2

    def test_exhaustion(self, recording_sleep):
        """Test an always-failing action raises with every failure"""
        operation, calls = _always_failing()
        with pytest.raises(AggregateRetryError, match="Trying action") as exc_info:
            execute_action(operation, _settings(), sleep=recording_sleep)
        assert calls["n"] == 5
        assert len(exc_info.value) == 5


class TestAttemptFunction:
    """Tests for the tagged outcome"""

    def test_success_outcome(self, recording_sleep):
        operation, _ = _failing_until(2)
        outcome = attempt_function(operation, _settings(), sleep=recording_sleep)
        assert isinstance(outcome, Success)
        assert outcome.succeeded
        assert outcome.value == "value"
        assert outcome.attempts == 2
        assert [str(e) for e in outcome.failures] == ["failure 1"]

    def test_exhausted_outcome(self, recording_sleep):
        """Test exhaustion is returned, not raised"""
        operation, _ = _always_failing()
        outcome = attempt_function(
            operation, _settings(maximum_number_of_attempts=3), sleep=recording_sleep
        )
        assert isinstance(outcome, Exhausted)
        assert not outcome.succeeded
        assert outcome.attempts == 3

    def test_exhausted_requires_failures(self):
        with pytest.raises(ValueError):
            Exhausted(())


class TestCancellation:
    """Tests for cancel_event"""

    def test_cancelled_before_first_attempt(self, recording_sleep):
        """Test a set event prevents any invocation"""
        event = threading.Event()
        event.set()
        operation, calls = _always_failing()
        with pytest.raises(RetryCancelledError) as exc_info:
            execute_function(operation, _settings(), sleep=recording_sleep, cancel_event=event)
        assert calls["n"] == 0
        assert exc_info.value.failures == ()

    def test_cancelled_during_back_off(self):
        """Test setting the event during the wait aborts the loop"""
        event = threading.Event()
        operation, calls = _always_failing()
        with pytest.raises(RetryCancelledError) as exc_info:
            execute_function(
                operation, _settings(), sleep=lambda seconds: event.set(), cancel_event=event
            )
        assert calls["n"] == 1
        assert len(exc_info.value.failures) == 1

    def test_event_is_the_default_wait(self):
        """Test the event wait returns as soon as the event is set"""
        event = threading.Event()
        calls = {"n": 0}

        def operation():
            calls["n"] += 1
            if calls["n"] == 2:
                event.set()
            raise RuntimeError("boom")

        # One-hour slots: the test only finishes if the wait is interrupted
        settings = _settings(milliseconds_per_slot=3_600_000)
        with pytest.raises(RetryCancelledError):
            execute_function(operation, settings, cancel_event=event)
        assert calls["n"] == 2

    def test_unset_event_does_not_interfere(self, recording_sleep):
        event = threading.Event()
        operation, calls = _failing_until(3)
        assert execute_function(
            operation, _settings(), sleep=recording_sleep, cancel_event=event
        ) == "value"
        assert calls["n"] == 3


class TestWaitStrategy:
    """Tests for the tenacity wait strategy"""

    def test_converts_attempt_number_to_index(self):
        """Test attempt_number 1 maps to back-off index 0"""

        class _State:
            attempt_number = 4

        wait = wait_truncated_binary_exponential(
            _settings(), jitter=lambda delay, jitter_settings: delay
        )
        assert wait(_State()) == pytest.approx(0.224)


class TestAsyncEngine:
    """Tests for the asyncio variants"""

    @staticmethod
    def _async_operation(success_on_call: int):
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1
            if calls["n"] < success_on_call:
                raise RuntimeError(f"failure {calls['n']}")
            return "value"

        return operation, calls

    def test_success_after_failures(self):
        sleep_calls = []

        async def fake_sleep(seconds):
            sleep_calls.append(seconds)

        operation, calls = self._async_operation(5)
        result = asyncio.run(execute_function_async(operation, _settings(), sleep=fake_sleep))
        assert result == "value"
        assert calls["n"] == 5
        assert sleep_calls == pytest.approx([0.0, 0.032, 0.096, 0.224])

    def test_exhaustion(self):
        async def fake_sleep(seconds):
            pass

        operation, calls = self._async_operation(100)
        with pytest.raises(AggregateRetryError) as exc_info:
            asyncio.run(execute_action_async(operation, _settings(), sleep=fake_sleep))
        assert calls["n"] == 5
        assert len(exc_info.value.failures) == 5

    def test_task_cancellation_during_back_off(self):
        """Test cancelling the task stops the loop"""
        operation, calls = self._async_operation(100)
        settings = _settings(milliseconds_per_slot=3_600_000)

        async def scenario():
            task = asyncio.create_task(execute_function_async(operation, settings))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert calls["n"] == 2

    def test_none_settings(self):
        async def operation():
            return 1

        with pytest.raises(ArgumentError):
            asyncio.run(execute_function_async(operation, None))

    def test_sync_operation_is_not_retried(self):
        """Test a plain function is rejected on its first call"""
        calls = {"n": 0}
        sleep_calls = []

        async def fake_sleep(seconds):
            sleep_calls.append(seconds)

        def operation():
            calls["n"] += 1
            return "value"

        with pytest.raises(ArgumentError, match="awaitable"):
            asyncio.run(execute_function_async(operation, _settings(), sleep=fake_sleep))
        assert calls["n"] == 1
        assert sleep_calls == []
