from __future__ import annotations

import asyncio
import os
import subprocess
import sys
import time
from pathlib import Path

import pytest

from attempt import Attempt, DeadlineExceeded, TimeoutSettings, attempt, execute_with_deadline
from attempt.strategies import ProcessStrategy


def _env_with_pythonpath() -> dict[str, str]:
    env = dict(os.environ)
    existing = env.get("PYTHONPATH", "")
    src_path = str(Path("src").resolve())
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    env.pop("ATTEMPT_TIMEOUT_STRATEGY", None)
    return env


def _run_cli(*args: str, tmp_path: Path) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "attempt", "--config", str(tmp_path / "missing.toml"), *args],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(),
        timeout=60,
    )


def test_cli_module_runs_successful_command(tmp_path: Path) -> None:
    completed = _run_cli("--tries", "1", "--", sys.executable, "-c", "print('hi')", tmp_path=tmp_path)

    assert completed.returncode == 0
    assert completed.stdout.strip() == "hi"


def test_cli_module_reports_last_exit_code(tmp_path: Path) -> None:
    completed = _run_cli(
        "--tries",
        "2",
        "--interval",
        "0",
        "--",
        sys.executable,
        "-c",
        "raise SystemExit(3)",
        tmp_path=tmp_path,
    )

    assert completed.returncode == 3
    assert "Error on attempt # 1" in completed.stderr


def test_cli_module_enforces_timeout(tmp_path: Path) -> None:
    completed = _run_cli(
        "--tries",
        "1",
        "--timeout",
        "0.5",
        "--",
        sys.executable,
        "-c",
        "import time; time.sleep(3)",
        tmp_path=tmp_path,
    )

    assert completed.returncode == 124
    assert "execution expired after 0.5 seconds" in completed.stderr


def test_cli_module_reports_invalid_args(tmp_path: Path) -> None:
    completed = _run_cli("--tries", "0", "--", "true", tmp_path=tmp_path)

    assert completed.returncode == 2
    assert "--tries must be at least 1" in completed.stderr


@pytest.mark.parametrize("strategy", ["thread", "process", "cooperative", "auto"])
def test_every_strategy_expires_blocking_work(strategy: str) -> None:
    if strategy == "process" and not ProcessStrategy.is_available():
        pytest.skip("needs fork")

    started = time.monotonic()
    with pytest.raises(DeadlineExceeded, match=r"after 0\.2 seconds"):
        execute_with_deadline(0.2, strategy, lambda: time.sleep(3))

    assert time.monotonic() - started < 2.5


def test_retry_loop_recovers_from_expired_attempt() -> None:
    calls = {"count": 0}

    def operation() -> str:
        calls["count"] += 1
        if calls["count"] == 1:
            time.sleep(2)
        return "recovered"

    result = attempt(
        operation,
        tries=2,
        interval=0,
        timeout=0.2,
        timeout_strategy="thread",
        warnings=False,
    )

    assert result == "recovered"
    assert calls["count"] == 2


def test_retry_loop_with_cooperative_strategy_and_coroutines() -> None:
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] == 1:
            await asyncio.sleep(2)
        await asyncio.sleep(0)
        return "async result"

    runner = Attempt(
        tries=2,
        interval=0,
        timeout=0.2,
        timeout_strategy="cooperative",
        warnings=False,
        timeouts=TimeoutSettings(execution_probes=False),
    )

    assert runner.run(operation) == "async result"
    assert calls["count"] == 2
