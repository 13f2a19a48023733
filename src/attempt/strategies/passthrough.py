"""Unenforced inline baseline."""

from __future__ import annotations

from attempt.models import Deadline, Outcome, StrategyId
from attempt.strategies.base import TimeoutStrategy
from attempt.tasks import Work


class PassthroughStrategy(TimeoutStrategy):
    """Runs the work inline and ignores the deadline.

    Kept for comparisons against the enforcing strategies and as the
    auto selector's last resort.
    """

    name = StrategyId.PASSTHROUGH

    def run(self, deadline: Deadline, work: Work) -> Outcome:
        return self.run_inline(work)
