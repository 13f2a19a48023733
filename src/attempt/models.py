"""Domain models shared by the timeout strategies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Generic, TypeVar, Union

from attempt.errors import DeadlineExceeded, expired_message

T = TypeVar("T")

Deadline = Union[float, int, timedelta, None]


class StrategyId(str, Enum):
    THREAD = "thread"
    PROCESS = "process"
    COOPERATIVE = "cooperative"
    HYBRID = "hybrid"
    PASSTHROUGH = "passthrough"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: str | StrategyId) -> StrategyId:
        if isinstance(value, StrategyId):
            return value
        normalized = value.strip().lower()
        normalized = _STRATEGY_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            accepted = ", ".join(sorted([item.value for item in cls] + list(_STRATEGY_ALIASES)))
            raise ValueError(f"Unknown timeout strategy: {value!r} (expected one of: {accepted})") from None


_STRATEGY_ALIASES = {
    "fiber": "cooperative",
    "custom": "thread",
}


class Classification(str, Enum):
    IO_BOUND = "io_bound"
    SLEEP_BLOCKING = "sleep_blocking"
    EVENT_DRIVEN_COOPERATIVE = "event_driven_cooperative"
    CPU_BOUND = "cpu_bound"
    UNKNOWN = "unknown"


def normalize_deadline(deadline: Deadline) -> float | None:
    """Return positive deadline seconds, or None when nothing is enforced."""
    if deadline is None:
        return None
    if isinstance(deadline, timedelta):
        seconds: float = deadline.total_seconds()
    else:
        seconds = deadline
    if seconds <= 0:
        return None
    return seconds


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    strategy: StrategyId | None = None

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: BaseException
    strategy: StrategyId | None = None

    def unwrap(self):
        raise self.error


@dataclass(frozen=True)
class Expired:
    deadline: float
    strategy: StrategyId | None = None

    @property
    def message(self) -> str:
        return expired_message(self.deadline)

    def unwrap(self):
        raise DeadlineExceeded(self.deadline)


Outcome = Union[Success, Failure, Expired]
