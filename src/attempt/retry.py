"""Retry loop with linear backoff around single deadline-bound attempts."""

from __future__ import annotations

import logging as py_logging
import time
import warnings
from collections.abc import Callable
from typing import Any, TypeVar

from attempt.config import AttemptConfig
from attempt.errors import DeadlineExceeded
from attempt.executor import run_attempt
from attempt.tasks import Work

T = TypeVar("T")

logger = py_logging.getLogger(__name__)

ErrorTypes = type[BaseException] | tuple[type[BaseException], ...]


class AttemptWarning(UserWarning):
    """Emitted when an attempt fails but tries remain."""


class Attempt:
    """Runs an operation up to ``tries`` times, sleeping between tries.

    Options passed as keywords override the matching ``AttemptConfig`` fields
    and are validated; an invalid value raises ``ValueError``.

    ``level`` selects which errors are retried (``Exception`` by default).
    DeadlineExceeded is always retried. ``log`` receives every retry message:
    objects with a ``warning`` method are treated as loggers, anything else as
    a writable stream.
    """

    def __init__(
        self,
        config: AttemptConfig | None = None,
        *,
        level: ErrorTypes = Exception,
        log: Any = None,
        sleep: Callable[[float], None] = time.sleep,
        **options: Any,
    ) -> None:
        self.config = (config or AttemptConfig()).with_options(**options)
        self.level = level
        self.log = log
        self._sleep = sleep

    @property
    def effective_timeout(self) -> float | None:
        timeout = self.config.timeout
        if timeout is None or timeout <= 0:
            return None
        return timeout

    @property
    def timeout_enabled(self) -> bool:
        return self.effective_timeout is not None

    @property
    def configuration(self) -> dict[str, object]:
        return {
            "tries": self.config.tries,
            "interval": self.config.interval,
            "increment": self.config.increment,
            "timeout": self.config.timeout,
            "timeout_strategy": self.config.timeout_strategy.value,
            "warnings": self.config.warnings,
            "level": self.level,
        }

    def _is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, (DeadlineExceeded, self.level))

    def _report(self, message: str) -> None:
        logger.warning(message)
        if self.config.warnings:
            warnings.warn(message, AttemptWarning, stacklevel=3)
        if self.log is None:
            return
        if hasattr(self.log, "warning"):
            self.log.warning(message)
        else:
            self.log.write(f"{message}\n")

    def run(self, operation: Work) -> Any:
        interval = self.config.interval
        count = 0

        while True:
            count += 1
            outcome = run_attempt(
                self.effective_timeout,
                self.config.timeout_strategy,
                operation,
                settings=self.config.timeouts,
            )
            try:
                return outcome.unwrap()
            except BaseException as exc:
                if not self._is_retryable(exc) or count >= self.config.tries:
                    raise
                self._report(f"Error on attempt # {count}: {exc}; retrying")
            interval += self.config.increment
            self._sleep(interval)


def attempt(operation: Callable[[], T], **options: Any) -> T:
    """Attempt ``operation`` with ``Attempt(**options)`` and return its result."""
    return Attempt(**options).run(operation)
