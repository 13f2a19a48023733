from __future__ import annotations

import time

import pytest

from attempt.config import TimeoutSettings
from attempt.detection import Detector
from attempt.errors import StrategyUnavailableError
from attempt.models import Classification, Expired, Failure, Outcome, StrategyId, Success
from attempt.selection import FALLBACK_ORDER, AutoSelector
from attempt.strategies import TimeoutStrategy


class FakeDetector(Detector):
    def __init__(self, classification: Classification) -> None:
        super().__init__(TimeoutSettings(execution_probes=False))
        self.classification = classification
        self.calls = 0

    def classify(self, work: object) -> Classification:
        self.calls += 1
        return self.classification


class FakeStrategy(TimeoutStrategy):
    def __init__(
        self,
        name: StrategyId,
        *,
        available: bool = True,
        error: Exception | None = None,
        outcome: Outcome | None = None,
    ) -> None:
        super().__init__()
        self.name = name
        self.available = available
        self.error = error
        self.outcome = outcome
        self.calls: list[float | None] = []

    def is_available(self) -> bool:
        return self.available

    def run(self, deadline, work) -> Outcome:
        self.calls.append(deadline)
        if self.error is not None:
            raise self.error
        if self.outcome is not None:
            return self.outcome
        return Success(work(), strategy=self.name)


def _fakes(**overrides: FakeStrategy) -> dict[StrategyId, FakeStrategy]:
    strategies = {strategy_id: FakeStrategy(strategy_id) for strategy_id in FALLBACK_ORDER}
    for key, strategy in overrides.items():
        strategies[StrategyId(key)] = strategy
    return strategies


def _selector(classification: Classification, strategies: dict) -> AutoSelector:
    return AutoSelector(detector=FakeDetector(classification), strategies=strategies)


@pytest.mark.parametrize(
    ("classification", "expected"),
    [
        (Classification.IO_BOUND, ["process", "cooperative", "thread", "passthrough"]),
        (Classification.EVENT_DRIVEN_COOPERATIVE, ["cooperative", "thread", "passthrough"]),
        (Classification.SLEEP_BLOCKING, ["thread", "passthrough"]),
        (Classification.CPU_BOUND, ["thread", "passthrough"]),
        (Classification.UNKNOWN, ["thread", "passthrough"]),
    ],
)
def test_plan_starts_with_preferred_strategy(
    classification: Classification, expected: list[str]
) -> None:
    selector = _selector(classification, _fakes())

    plan = selector.plan(lambda: None)

    assert [item.value for item in plan] == expected


def test_plan_uses_explicit_classification_without_detecting() -> None:
    detector = FakeDetector(Classification.UNKNOWN)
    selector = AutoSelector(detector=detector, strategies=_fakes())

    plan = selector.plan(lambda: None, classification=Classification.IO_BOUND)

    assert plan[0] is StrategyId.PROCESS
    assert detector.calls == 0


def test_selector_runs_preferred_strategy_once() -> None:
    strategies = _fakes()
    selector = _selector(Classification.IO_BOUND, strategies)

    outcome = selector.run(1, lambda: "contents")

    assert outcome == Success("contents", strategy=StrategyId.PROCESS)
    assert strategies[StrategyId.PROCESS].calls == [1]
    assert strategies[StrategyId.THREAD].calls == []
    assert selector.detector.calls == 1


def test_selector_skips_strategy_whose_guard_reports_unavailable() -> None:
    strategies = _fakes(process=FakeStrategy(StrategyId.PROCESS, available=False))
    selector = _selector(Classification.IO_BOUND, strategies)

    outcome = selector.run(1, lambda: "ok")

    assert outcome.strategy is StrategyId.COOPERATIVE
    assert strategies[StrategyId.PROCESS].calls == []


def test_selector_falls_back_when_strategy_raises_unavailable() -> None:
    strategies = _fakes(
        thread=FakeStrategy(StrategyId.THREAD, error=StrategyUnavailableError("no threads")),
    )
    selector = _selector(Classification.SLEEP_BLOCKING, strategies)

    outcome = selector.run(1, lambda: "ok")

    assert outcome == Success("ok", strategy=StrategyId.PASSTHROUGH)


def test_selector_reports_internal_strategy_error_without_rerunning_work() -> None:
    error = RuntimeError("loop broke")
    strategies = _fakes(cooperative=FakeStrategy(StrategyId.COOPERATIVE, error=error))
    selector = _selector(Classification.EVENT_DRIVEN_COOPERATIVE, strategies)

    outcome = selector.run(1, lambda: "ok")

    assert outcome == Failure(error, strategy=StrategyId.COOPERATIVE)
    assert strategies[StrategyId.THREAD].calls == []
    assert strategies[StrategyId.PASSTHROUGH].calls == []


def test_selector_runs_inline_when_nothing_is_available() -> None:
    strategies = {
        strategy_id: FakeStrategy(strategy_id, available=False) for strategy_id in FALLBACK_ORDER
    }
    selector = _selector(Classification.IO_BOUND, strategies)

    outcome = selector.run(1, lambda: "inline")

    assert outcome == Success("inline", strategy=StrategyId.PASSTHROUGH)
    assert all(not strategy.calls for strategy in strategies.values())


def test_selector_returns_work_failure_without_trying_other_strategies() -> None:
    error = ValueError("bad")
    strategies = _fakes(
        process=FakeStrategy(StrategyId.PROCESS, outcome=Failure(error, strategy=StrategyId.PROCESS)),
    )
    selector = _selector(Classification.IO_BOUND, strategies)

    outcome = selector.run(1, lambda: None)

    assert outcome == Failure(error, strategy=StrategyId.PROCESS)
    assert strategies[StrategyId.COOPERATIVE].calls == []
    assert strategies[StrategyId.THREAD].calls == []


def test_selector_returns_expiry_unchanged() -> None:
    expired = Expired(0.5, strategy=StrategyId.THREAD)
    strategies = _fakes(thread=FakeStrategy(StrategyId.THREAD, outcome=expired))
    selector = _selector(Classification.CPU_BOUND, strategies)

    assert selector.run(0.5, lambda: None) is expired
    assert strategies[StrategyId.PASSTHROUGH].calls == []


@pytest.mark.parametrize("deadline", [None, 0, -3])
def test_selector_runs_inline_without_deadline(deadline: float | None) -> None:
    strategies = _fakes()
    selector = _selector(Classification.IO_BOUND, strategies)

    outcome = selector.run(deadline, lambda: 4)

    assert outcome == Success(4, strategy=StrategyId.AUTO)
    assert selector.detector.calls == 0
    assert all(not strategy.calls for strategy in strategies.values())


def test_selector_with_real_strategies_prefers_thread_for_sleepy_work() -> None:
    def nap() -> str:
        time.sleep(0.01)
        return "rested"

    outcome = AutoSelector().run(1, nap)

    assert outcome == Success("rested", strategy=StrategyId.THREAD)
