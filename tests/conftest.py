from __future__ import annotations

from pathlib import Path

import pytest

from attempt.config import TIMEOUT_STRATEGY_ENV

_TIMING_TEST_FILES = {
    "test_thread_strategy.py",
    "test_process_strategy.py",
    "test_cooperative_strategy.py",
}


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))
        name = path.name

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)

        if name in _TIMING_TEST_FILES:
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def _isolate_strategy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(TIMEOUT_STRATEGY_ENV, raising=False)
