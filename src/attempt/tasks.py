"""Cooperative task helpers.

A unit of work is any zero-argument callable. Generator functions and
``async def`` functions are additionally treated as cooperative tasks: their
suspension points (``yield`` and ``await``) are where a supervisor may regain
control and check a deadline.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable, Generator
from typing import Any

Work = Callable[[], Any]


def is_generator_work(work: object) -> bool:
    return inspect.isgeneratorfunction(work) or inspect.isgeneratorfunction(
        getattr(work, "__call__", None)
    )


def is_coroutine_work(work: object) -> bool:
    return inspect.iscoroutinefunction(work) or inspect.iscoroutinefunction(
        getattr(work, "__call__", None)
    )


def is_task_function(work: object) -> bool:
    return is_generator_work(work) or is_coroutine_work(work)


def event_loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def drive_generator(generator: Generator[Any, Any, Any], *, pause: float | None = None) -> Any:
    """Resume ``generator`` until it finishes and return its return value."""
    try:
        while True:
            next(generator)
            if pause is not None:
                time.sleep(pause)
    except StopIteration as stop:
        return stop.value


def complete(work: Work) -> Any:
    """Run a unit of work to completion in the calling thread."""
    if is_coroutine_work(work):
        return asyncio.run(work())
    if is_generator_work(work):
        return drive_generator(work())
    return work()


def complete_with_handoff(work: Work) -> Any:
    """Like :func:`complete`, but hands the GIL to other threads between resumes."""
    if is_generator_work(work):
        return drive_generator(work(), pause=0.0)
    return complete(work)
