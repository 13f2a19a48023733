"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    COMMAND_FAILED = 5
    UNSUPPORTED_PLATFORM = 8
    DEADLINE_EXCEEDED = 124


@dataclass
class AttemptError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class StrategyUnavailableError(AttemptError):
    """The strategy's execution machinery cannot run in this environment."""

    code: ExitCode = ExitCode.UNSUPPORTED_PLATFORM


def expired_message(deadline: float) -> str:
    return f"execution expired after {deadline} seconds"


class DeadlineExceeded(TimeoutError):
    """Raised when an attempt outlives its deadline."""

    def __init__(self, deadline: float) -> None:
        super().__init__(expired_message(deadline))
        self.deadline = deadline

    def __reduce__(self) -> tuple[object, ...]:
        return (type(self), (self.deadline,))


class RemoteWorkError(RuntimeError):
    """Work error that could not be rebuilt on this side of a process boundary."""

    def __init__(self, kind: str, message: str, remote_traceback: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.remote_traceback = remote_traceback

    def __reduce__(self) -> tuple[object, ...]:
        return (type(self), (self.kind, self.message, self.remote_traceback))


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
