"""Single-attempt entry points used by the retry loop."""

from __future__ import annotations

from typing import Any

from attempt.config import TimeoutSettings
from attempt.models import Deadline, Outcome, StrategyId
from attempt.selection import AutoSelector
from attempt.strategies import STRATEGY_CLASSES, TimeoutStrategy
from attempt.tasks import Work


def build_strategy(
    strategy: StrategyId | str, settings: TimeoutSettings | None = None
) -> TimeoutStrategy:
    strategy_id = StrategyId.parse(strategy)
    if strategy_id is StrategyId.AUTO:
        return AutoSelector(settings)
    return STRATEGY_CLASSES[strategy_id.value](settings)


def run_attempt(
    deadline: Deadline,
    strategy: StrategyId | str,
    work: Work,
    *,
    settings: TimeoutSettings | None = None,
) -> Outcome:
    """Run ``work`` once under ``deadline`` and report its outcome."""
    return build_strategy(strategy, settings).run(deadline, work)


def execute_with_deadline(
    deadline: Deadline,
    strategy: StrategyId | str,
    work: Work,
    *,
    settings: TimeoutSettings | None = None,
) -> Any:
    """Run ``work`` once under ``deadline``.

    Returns the work's value, re-raises the work's own error, or raises
    DeadlineExceeded ("execution expired after <deadline> seconds").
    """
    return run_attempt(deadline, strategy, work, settings=settings).unwrap()
