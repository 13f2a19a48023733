"""Heuristic detection of how a unit of work behaves.

Three independent probes feed the "looks cooperative" verdict: resuming a
disposable cooperative task, scanning the work's source text, and timing a
disposable run. Every probe fails closed. The textual scan also maps the
work onto a coarse classification that the auto selector turns into a
preferred strategy.

The probes are best-effort heuristics. The execution and timing probes run
(part of) the unit of work, so work with side effects may observe extra
calls; disable them with ``TimeoutSettings(execution_probes=False)``.
"""

from __future__ import annotations

import inspect
import logging as py_logging
import re
import threading
import time
from collections.abc import Iterable

from attempt.config import TimeoutSettings
from attempt.models import Classification, StrategyId
from attempt.tasks import Work, complete, is_coroutine_work, is_generator_work
from attempt.workers import interrupt_thread

logger = py_logging.getLogger(__name__)

IO_PATTERNS = (
    re.compile(r"(?<![\w.])open\("),
    re.compile(r"\.(read_text|read_bytes|write_text|write_bytes)\("),
    re.compile(r"\b(requests|httpx|urllib|urllib3|socket|ftplib|smtplib|subprocess)\b"),
    re.compile(r"\bhttp\.client\b"),
    re.compile(r"\burlopen\("),
    re.compile(r"\bos\.(system|popen)\("),
    re.compile(r"\bshutil\."),
)
SLEEP_PATTERNS = (
    re.compile(r"\btime\.sleep\("),
    re.compile(r"(?<![\w.])sleep\("),
)
COOPERATIVE_PATTERNS = (
    re.compile(r"\bawait\b"),
    re.compile(r"\basync\s+(def|with|for)\b"),
    re.compile(r"\basyncio\."),
    re.compile(r"\byield\b"),
    re.compile(r"\b(trio|anyio|gevent)\b"),
)
CPU_PATTERNS = (
    re.compile(r"\bwhile\s+(True|1)\b"),
    re.compile(r"\brange\(\s*\d[\d_]{3,}"),
    re.compile(r"\bitertools\.count\("),
    re.compile(r"\]\s*\*\s*\d[\d_]{3,}"),
)

YIELDING_PATTERNS = COOPERATIVE_PATTERNS + (
    re.compile(r"\bselect\.(select|poll|epoll)\("),
    re.compile(r"\bselectors\b"),
)
BLOCKING_PATTERNS = SLEEP_PATTERNS + CPU_PATTERNS + (
    re.compile(r"\brequests\."),
    re.compile(r"\burlopen\("),
    re.compile(r"\bhttp\.client\b"),
)

_RECOMMENDATIONS = {
    Classification.IO_BOUND: StrategyId.PROCESS,
    Classification.SLEEP_BLOCKING: StrategyId.THREAD,
    Classification.EVENT_DRIVEN_COOPERATIVE: StrategyId.COOPERATIVE,
    Classification.CPU_BOUND: StrategyId.THREAD,
    Classification.UNKNOWN: StrategyId.THREAD,
}


def _matches(patterns: Iterable[re.Pattern[str]], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def extract_source(work: object, window: int = 8) -> str | None:
    """Return up to ``window`` lines of the work's declaration, if recoverable."""
    try:
        lines, _ = inspect.getsourcelines(work)  # type: ignore[arg-type]
    except (OSError, TypeError):
        return None
    except Exception:
        logger.debug("Source lookup failed for %r", work, exc_info=True)
        return None
    if not lines:
        return None
    return "".join(lines[:window])


def classify_source(source: str) -> Classification:
    if _matches(IO_PATTERNS, source):
        return Classification.IO_BOUND
    if _matches(SLEEP_PATTERNS, source):
        return Classification.SLEEP_BLOCKING
    if _matches(COOPERATIVE_PATTERNS, source):
        return Classification.EVENT_DRIVEN_COOPERATIVE
    if _matches(CPU_PATTERNS, source):
        return Classification.CPU_BOUND
    return Classification.UNKNOWN


def recommend_strategy(classification: Classification) -> StrategyId:
    return _RECOMMENDATIONS.get(classification, StrategyId.THREAD)


class Detector:
    def __init__(self, settings: TimeoutSettings | None = None) -> None:
        self.settings = settings or TimeoutSettings()

    def detect_by_execution_pattern(self, work: Work) -> bool:
        """Resume a disposable task a few times and count quick resumptions."""
        if not self.settings.execution_probes:
            return False
        if is_generator_work(work):
            task = work()
            resume = task.__next__
        elif is_coroutine_work(work):
            task = work()

            def resume() -> object:
                return task.send(None)

        else:
            return False

        quick = 0
        started = time.monotonic()
        try:
            for _ in range(self.settings.probe_resumes):
                try:
                    resume()
                except StopIteration:
                    break
                if time.monotonic() - started >= self.settings.probe_resume_budget_seconds:
                    break
                quick += 1
        except Exception:
            logger.debug("Execution probe failed for %r", work, exc_info=True)
            return False
        finally:
            try:
                task.close()
            except Exception:
                logger.debug("Closing probe task failed for %r", work, exc_info=True)
        return quick > 1

    def detect_by_source_analysis(self, work: Work) -> bool:
        source = extract_source(work, self.settings.source_window_lines)
        if source is None:
            return False
        return _matches(YIELDING_PATTERNS, source) and not _matches(BLOCKING_PATTERNS, source)

    def detect_by_timing_analysis(self, work: Work) -> bool:
        """Run the work briefly in a disposable thread; very fast completion is weak evidence."""
        if not self.settings.execution_probes:
            return False
        state = {"completed": False}

        def _probe() -> None:
            try:
                complete(work)
            except BaseException:
                return
            state["completed"] = True

        window = self.settings.timing_probe_timeout_seconds
        started = time.monotonic()
        thread = threading.Thread(target=_probe, name="attempt-timing-probe", daemon=True)
        try:
            thread.start()
        except RuntimeError:
            return False
        thread.join(window)
        elapsed = time.monotonic() - started
        if thread.is_alive():
            interrupt_thread(thread)
            thread.join(window)
        return state["completed"] and elapsed < self.settings.timing_probe_budget_seconds

    def is_cooperative(self, work: Work) -> bool:
        probes = (
            self.detect_by_execution_pattern,
            self.detect_by_source_analysis,
            self.detect_by_timing_analysis,
        )
        for probe in probes:
            try:
                if probe(work):
                    logger.debug("Probe %s reports cooperative work", probe.__name__)
                    return True
            except Exception:
                logger.debug("Probe %s failed", probe.__name__, exc_info=True)
        return False

    def classify(self, work: Work) -> Classification:
        try:
            source = extract_source(work, self.settings.source_window_lines)
            if source is not None:
                category = classify_source(source)
                if category is not Classification.UNKNOWN:
                    return category
            if self.is_cooperative(work):
                return Classification.EVENT_DRIVEN_COOPERATIVE
        except Exception:
            logger.debug("Classification failed for %r", work, exc_info=True)
        return Classification.UNKNOWN
