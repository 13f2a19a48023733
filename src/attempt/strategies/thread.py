"""Worker-thread deadline enforcement."""

from __future__ import annotations

import logging as py_logging
import sys
import threading
from collections.abc import Callable
from typing import Any

from attempt.config import TimeoutSettings
from attempt.errors import StrategyUnavailableError
from attempt.models import Deadline, Expired, Failure, Outcome, StrategyId, Success, normalize_deadline
from attempt.strategies.base import TimeoutStrategy
from attempt.tasks import Work, complete
from attempt.workers import interrupt_thread

logger = py_logging.getLogger(__name__)

_THREADLESS_PLATFORMS = {"emscripten", "wasi"}


class ThreadStrategy(TimeoutStrategy):
    name = StrategyId.THREAD

    def __init__(
        self,
        settings: TimeoutSettings | None = None,
        *,
        invoke: Callable[[Work], Any] = complete,
    ) -> None:
        super().__init__(settings)
        self._invoke = invoke

    @classmethod
    def is_available(cls) -> bool:
        return sys.platform not in _THREADLESS_PLATFORMS

    def run(self, deadline: Deadline, work: Work) -> Outcome:
        seconds = normalize_deadline(deadline)
        if seconds is None:
            return self.run_inline(work)
        if not self.is_available():
            raise StrategyUnavailableError(
                f"Threads are not supported on {sys.platform}.",
                hint="Use the passthrough strategy or drop the timeout.",
            )

        holder: dict[str, Any] = {}
        error: dict[str, BaseException] = {}
        done = threading.Event()

        def _worker() -> None:
            try:
                holder["result"] = self._invoke(work)
            except BaseException as exc:
                error["exc"] = exc
            finally:
                done.set()

        thread = threading.Thread(target=_worker, name=f"attempt-{self.name.value}", daemon=True)
        try:
            thread.start()
        except RuntimeError as exc:
            raise StrategyUnavailableError(
                f"Unable to start worker thread: {exc}",
                hint="Reduce concurrent attempts or use the process strategy.",
            ) from exc

        if not done.wait(timeout=seconds):
            interrupted = interrupt_thread(thread)
            thread.join(self.settings.grace_seconds)
            logger.warning(
                "Deadline exceeded strategy=%s deadline=%s interrupted=%s worker_alive=%s",
                self.name.value,
                seconds,
                interrupted,
                thread.is_alive(),
            )
            return Expired(seconds, strategy=self.name)

        if "exc" in error:
            return Failure(error["exc"], strategy=self.name)
        return Success(holder.get("result"), strategy=self.name)
