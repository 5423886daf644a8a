"""Error types raised by the retry engine."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

from pydantic import ValidationError


class RetryMagicError(Exception):
    """Base class for all retrymagic errors."""

    pass


class ConfigurationError(RetryMagicError, ValueError):
    """Invalid retry configuration.

    Attributes:
        fields: Names of the offending settings fields
        errors: (field, message) pairs, one per problem
    """

    def __init__(
        self,
        message: str,
        fields: Iterable[str] = (),
        errors: Iterable[Tuple[str, str]] = (),
    ):
        super().__init__(message)
        self.fields = tuple(fields)
        self.errors = tuple(errors)

    @classmethod
    def from_errors(
        cls, errors: Iterable[Tuple[str, str]], title: str = "Retry settings validation failed"
    ) -> "ConfigurationError":
        """Build a ConfigurationError listing each (field, message) pair"""
        errors = list(errors)
        lines = [f"  - {field}: {msg}" for field, msg in errors]
        return cls(
            f"{title}:\n" + "\n".join(lines),
            fields=[field for field, _ in errors],
            errors=errors,
        )

    @classmethod
    def from_validation_error(
        cls, error: ValidationError, title: str = "Retry settings validation failed"
    ) -> "ConfigurationError":
        """Build a ConfigurationError from a pydantic ValidationError

        Args:
            error: Pydantic validation error
            title: First line of the resulting message

        Returns:
            ConfigurationError naming every offending field
        """
        errors = [
            (".".join(str(x) for x in item["loc"]), item["msg"]) for item in error.errors()
        ]
        return cls.from_errors(errors, title=title)


class ArgumentError(RetryMagicError, TypeError):
    """Missing or invalid argument passed to an engine entry point."""

    pass


class AggregateRetryError(RetryMagicError):
    """Raised when every attempt of an operation failed.

    Attributes:
        operation: Display name of the operation that was retried
        attempts: Number of attempts made
        failures: Exceptions raised by each attempt, in attempt order
    """

    def __init__(
        self,
        operation: str,
        attempts: int,
        failures: Sequence[BaseException],
        kind: str = "function",
    ):
        self.operation = operation
        self.attempts = attempts
        self.failures = tuple(failures)
        super().__init__(f"Trying {kind} {operation} failed for {attempts} attempts.")

    @property
    def last_failure(self) -> Optional[BaseException]:
        """Exception raised by the final attempt"""
        return self.failures[-1] if self.failures else None

    def __len__(self) -> int:
        return len(self.failures)


class RetryCancelledError(RetryMagicError):
    """Raised when a retry loop is cancelled before it succeeds or is exhausted.

    Attributes:
        failures: Exceptions recorded before cancellation, in attempt order
    """

    def __init__(self, operation: str, failures: Sequence[BaseException] = ()):
        self.operation = operation
        self.failures = tuple(failures)
        super().__init__(
            f"Retrying {operation} was cancelled after {len(self.failures)} failed attempts."
        )
