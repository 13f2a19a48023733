"""Shared strategy contract."""

from __future__ import annotations

from typing import ClassVar

from attempt.config import TimeoutSettings
from attempt.models import Deadline, Failure, Outcome, StrategyId, Success
from attempt.tasks import Work, complete


class TimeoutStrategy:
    """Runs a unit of work under a deadline and reports one outcome."""

    name: ClassVar[StrategyId]

    def __init__(self, settings: TimeoutSettings | None = None) -> None:
        self.settings = settings or TimeoutSettings()

    @classmethod
    def is_available(cls) -> bool:
        return True

    def run(self, deadline: Deadline, work: Work) -> Outcome:
        raise NotImplementedError

    def run_inline(self, work: Work) -> Outcome:
        try:
            value = complete(work)
        except Exception as exc:
            return Failure(exc, strategy=self.name)
        return Success(value, strategy=self.name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name.value!r})"
