"""Cooperative (task-level) deadline enforcement.

The pure form only works for tasks that suspend often: a generator is
resumed step by step with the deadline checked before each resume, and a
coroutine runs on a private event loop that cancels it at the deadline.
Blocking calls inside either form starve the supervisor, which is why the
strategy checks compatibility at invocation time and otherwise falls back to
the hybrid form: the same task driven inside a worker thread under
ThreadStrategy's enforcement.
"""

from __future__ import annotations

import asyncio
import logging as py_logging
import time
from typing import Any

from attempt.config import TimeoutSettings
from attempt.detection import Detector
from attempt.models import Deadline, Expired, Failure, Outcome, StrategyId, Success, normalize_deadline
from attempt.strategies.base import TimeoutStrategy
from attempt.strategies.thread import ThreadStrategy
from attempt.tasks import (
    Work,
    complete_with_handoff,
    event_loop_running,
    is_coroutine_work,
    is_generator_work,
    is_task_function,
)

logger = py_logging.getLogger(__name__)

_EXPIRED = object()


def _abandon(task: Any) -> None:
    try:
        task.close()
    except Exception:
        logger.debug("Abandoned cooperative task raised while closing", exc_info=True)


class HybridStrategy(ThreadStrategy):
    """Cooperative task driven inside a worker thread."""

    name = StrategyId.HYBRID

    def __init__(self, settings: TimeoutSettings | None = None) -> None:
        super().__init__(settings, invoke=complete_with_handoff)


class CooperativeStrategy(TimeoutStrategy):
    name = StrategyId.COOPERATIVE

    def __init__(
        self,
        settings: TimeoutSettings | None = None,
        *,
        detector: Detector | None = None,
        hybrid: TimeoutStrategy | None = None,
    ) -> None:
        super().__init__(settings)
        self._detector = detector or Detector(self.settings)
        self._hybrid = hybrid or HybridStrategy(self.settings)

    def run(self, deadline: Deadline, work: Work) -> Outcome:
        seconds = normalize_deadline(deadline)
        if seconds is None:
            return self.run_inline(work)
        if self.supports_pure_form(work):
            logger.debug("Running cooperative task in pure form deadline=%s", seconds)
            if is_generator_work(work):
                return self._run_generator(seconds, work)
            return self._run_coroutine(seconds, work)
        logger.debug("Running cooperative task in hybrid form deadline=%s", seconds)
        return self._hybrid.run(seconds, work)

    def supports_pure_form(self, work: Work) -> bool:
        if not is_task_function(work):
            return False
        if is_coroutine_work(work) and event_loop_running():
            return False
        return self._detector.is_cooperative(work)

    def _run_generator(self, seconds: float, work: Work) -> Outcome:
        pause = self.settings.cooperative_poll_seconds
        started = time.monotonic()
        try:
            task = work()
            while True:
                if time.monotonic() - started > seconds:
                    _abandon(task)
                    logger.warning(
                        "Deadline exceeded strategy=%s deadline=%s", self.name.value, seconds
                    )
                    return Expired(seconds, strategy=self.name)
                try:
                    next(task)
                except StopIteration as stop:
                    return Success(stop.value, strategy=self.name)
                if pause:
                    time.sleep(pause)
        except Exception as exc:
            return Failure(exc, strategy=self.name)

    def _run_coroutine(self, seconds: float, work: Work) -> Outcome:
        # asyncio.run would wait forever for a task that ignores cancellation.
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            value = loop.run_until_complete(self._supervise(seconds, work))
        except Exception as exc:
            return Failure(exc, strategy=self.name)
        finally:
            self._shutdown_loop(loop)
        if value is _EXPIRED:
            logger.warning("Deadline exceeded strategy=%s deadline=%s", self.name.value, seconds)
            return Expired(seconds, strategy=self.name)
        return Success(value, strategy=self.name)

    async def _supervise(self, seconds: float, work: Work) -> Any:
        task = asyncio.ensure_future(work())
        done, _ = await asyncio.wait({task}, timeout=seconds)
        if task in done:
            return task.result()
        task.cancel()
        await asyncio.wait({task}, timeout=self.settings.grace_seconds)
        return _EXPIRED

    def _shutdown_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Cancel leftover tasks, wait at most one grace period, then close the loop.

        Tasks still pending after the grace period are abandoned with the loop.
        """
        try:
            pending = {task for task in asyncio.all_tasks(loop) if not task.done()}
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(
                    asyncio.wait(pending, timeout=self.settings.grace_seconds)
                )
            stubborn = [task for task in pending if not task.done()]
            if stubborn:
                logger.warning(
                    "Abandoning %d cooperative task(s) that ignored cancellation", len(stubborn)
                )
            else:
                loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            asyncio.set_event_loop(None)
            loop.close()
