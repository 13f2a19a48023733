"""Automatic strategy selection with an environment fallback chain."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Mapping

from attempt.config import TimeoutSettings
from attempt.detection import Detector, recommend_strategy
from attempt.errors import StrategyUnavailableError
from attempt.models import Classification, Deadline, Failure, Outcome, StrategyId, normalize_deadline
from attempt.strategies import (
    CooperativeStrategy,
    PassthroughStrategy,
    ProcessStrategy,
    ThreadStrategy,
    TimeoutStrategy,
)
from attempt.tasks import Work

logger = py_logging.getLogger(__name__)

FALLBACK_ORDER = (
    StrategyId.PROCESS,
    StrategyId.COOPERATIVE,
    StrategyId.THREAD,
    StrategyId.PASSTHROUGH,
)


class AutoSelector(TimeoutStrategy):
    """Classifies each unit of work and runs it with the preferred strategy.

    A strategy whose own guard reports it unavailable, or which raises
    StrategyUnavailableError, hands over to the next entry of FALLBACK_ORDER.
    The outcome of the first strategy that runs is returned unmodified; the
    selector never retries. Any other error from a strategy becomes a
    Failure, since the work may already have run.
    """

    name = StrategyId.AUTO

    def __init__(
        self,
        settings: TimeoutSettings | None = None,
        *,
        detector: Detector | None = None,
        strategies: Mapping[StrategyId, TimeoutStrategy] | None = None,
    ) -> None:
        super().__init__(settings)
        self.detector = detector or Detector(self.settings)
        thread = ThreadStrategy(self.settings)
        defaults: dict[StrategyId, TimeoutStrategy] = {
            StrategyId.PROCESS: ProcessStrategy(self.settings, fallback=thread),
            StrategyId.COOPERATIVE: CooperativeStrategy(self.settings, detector=self.detector),
            StrategyId.THREAD: thread,
            StrategyId.PASSTHROUGH: PassthroughStrategy(self.settings),
        }
        defaults.update(strategies or {})
        self._strategies = defaults

    def preferred_strategy(self, work: Work) -> StrategyId:
        return recommend_strategy(self.detector.classify(work))

    def plan(self, work: Work, *, classification: Classification | None = None) -> list[StrategyId]:
        if classification is None:
            preferred = self.preferred_strategy(work)
        else:
            preferred = recommend_strategy(classification)
        if preferred in FALLBACK_ORDER:
            rest = FALLBACK_ORDER[FALLBACK_ORDER.index(preferred) + 1 :]
        else:
            rest = FALLBACK_ORDER
        return [preferred, *rest]

    def run(self, deadline: Deadline, work: Work) -> Outcome:
        return self.select_and_run(deadline, work)

    def select_and_run(self, deadline: Deadline, work: Work) -> Outcome:
        seconds = normalize_deadline(deadline)
        if seconds is None:
            return self.run_inline(work)

        classification = self.detector.classify(work)
        plan = self.plan(work, classification=classification)
        logger.debug(
            "Auto selection classification=%s plan=%s",
            classification.value,
            ",".join(item.value for item in plan),
        )
        for strategy_id in plan:
            strategy = self._strategies.get(strategy_id)
            if strategy is None:
                continue
            if not strategy.is_available():
                logger.info("Strategy %s unavailable, falling back", strategy_id.value)
                continue
            try:
                return strategy.run(seconds, work)
            except StrategyUnavailableError as exc:
                logger.info("Strategy %s unavailable (%s), falling back", strategy_id.value, exc.message)
            except Exception as exc:
                # The work may already have run; another strategy would run it again.
                logger.exception("Strategy %s failed internally", strategy_id.value)
                return Failure(exc, strategy=strategy_id)

        logger.warning("No enforcing strategy could run, executing inline without a deadline")
        return PassthroughStrategy(self.settings).run(seconds, work)
