"""Outcome of a retried operation"""

from dataclasses import dataclass
from typing import Generic, Tuple, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """The operation succeeded"""

    value: T  # Value returned by the successful attempt (None for actions)
    attempts: int  # Attempts made, including the successful one
    failures: Tuple[BaseException, ...] = ()  # Failures of earlier attempts

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class Exhausted:
    """Every attempt failed"""

    failures: Tuple[BaseException, ...]  # One entry per attempt, in attempt order

    def __post_init__(self):
        """Validate outcome data"""
        if not self.failures:
            raise ValueError("Exhausted outcome needs at least one failure")

    @property
    def succeeded(self) -> bool:
        return False

    @property
    def attempts(self) -> int:
        return len(self.failures)


RetryOutcome = Union[Success[T], Exhausted]
