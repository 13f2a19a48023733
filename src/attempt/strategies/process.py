"""Isolated-process deadline enforcement.

The child runs the unit of work and writes exactly one pickled payload to a
one-way pipe. The parent polls the pipe for at most the deadline; when the
deadline passes first the child is terminated (SIGTERM, then SIGKILL) and
reaped. Because the child is forked, the unit of work itself never crosses
the process boundary; only its result or error does.
"""

from __future__ import annotations

import importlib
import logging as py_logging
import multiprocessing
import pickle
import traceback
from dataclasses import dataclass
from multiprocessing.connection import Connection
from typing import Any

from attempt.config import TimeoutSettings
from attempt.errors import RemoteWorkError
from attempt.models import Deadline, Expired, Failure, Outcome, StrategyId, Success, normalize_deadline
from attempt.strategies.base import TimeoutStrategy
from attempt.strategies.thread import ThreadStrategy
from attempt.tasks import Work, complete

logger = py_logging.getLogger(__name__)

_START_METHOD = "fork"
_OK = "ok"
_ERROR = "error"


@dataclass(frozen=True)
class ErrorEnvelope:
    """Transportable stand-in for an exception that does not survive pickling."""

    kind: str
    message: str
    traceback: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorEnvelope:
        error_type = type(exc)
        return cls(
            kind=f"{error_type.__module__}.{error_type.__qualname__}",
            message=str(exc),
            traceback="".join(traceback.format_exception(error_type, exc, exc.__traceback__)),
        )

    def rebuild(self) -> BaseException:
        module_name, _, qualname = self.kind.rpartition(".")
        try:
            target: Any = importlib.import_module(module_name)
            for part in qualname.split("."):
                target = getattr(target, part)
            if isinstance(target, type) and issubclass(target, BaseException):
                rebuilt = target(self.message)
                if str(rebuilt) == self.message:
                    return rebuilt
        except Exception:
            logger.debug("Unable to rebuild remote error kind=%s", self.kind, exc_info=True)
        return RemoteWorkError(self.kind, self.message, self.traceback)


def _encode_error(exc: BaseException) -> bytes:
    try:
        payload = pickle.dumps((_ERROR, exc))
        pickle.loads(payload)
    except Exception:
        return pickle.dumps((_ERROR, ErrorEnvelope.from_exception(exc)))
    return payload


def _encode_result(value: Any) -> bytes:
    try:
        payload = pickle.dumps((_OK, value))
        pickle.loads(payload)
    except Exception as exc:
        error = RemoteWorkError(
            f"{type(exc).__module__}.{type(exc).__qualname__}",
            f"result of type {type(value).__qualname__} cannot be sent to the parent process: {exc}",
        )
        return _encode_error(error)
    return payload


def decode_payload(payload: bytes, strategy: StrategyId) -> Outcome:
    tag, body = pickle.loads(payload)
    if tag == _OK:
        return Success(body, strategy=strategy)
    if isinstance(body, ErrorEnvelope):
        body = body.rebuild()
    return Failure(body, strategy=strategy)


def _child_main(work: Work, writer: Connection) -> None:
    try:
        payload = _encode_result(complete(work))
    except BaseException as exc:
        payload = _encode_error(exc)
    try:
        writer.send_bytes(payload)
    finally:
        writer.close()


class ProcessStrategy(TimeoutStrategy):
    name = StrategyId.PROCESS

    def __init__(
        self,
        settings: TimeoutSettings | None = None,
        *,
        fallback: TimeoutStrategy | None = None,
    ) -> None:
        super().__init__(settings)
        self._fallback = fallback or ThreadStrategy(self.settings)

    @classmethod
    def is_available(cls) -> bool:
        return _START_METHOD in multiprocessing.get_all_start_methods()

    def run(self, deadline: Deadline, work: Work) -> Outcome:
        seconds = normalize_deadline(deadline)
        if seconds is None:
            return self.run_inline(work)
        if not self.is_available():
            logger.info("Process isolation unavailable, using %s strategy", self._fallback.name.value)
            return self._fallback.run(seconds, work)
        try:
            process, reader = self._spawn(work)
        except (OSError, ChildProcessError, ValueError) as exc:
            logger.info(
                "Process isolation failed (%s), using %s strategy", exc, self._fallback.name.value
            )
            return self._fallback.run(seconds, work)
        return self._collect(process, reader, seconds)

    def _spawn(self, work: Work) -> tuple[multiprocessing.process.BaseProcess, Connection]:
        context = multiprocessing.get_context(_START_METHOD)
        reader, writer = context.Pipe(duplex=False)
        process = context.Process(
            target=_child_main, args=(work, writer), name=f"attempt-{self.name.value}"
        )
        try:
            process.start()
        except BaseException:
            reader.close()
            raise
        finally:
            writer.close()
        return process, reader

    def _collect(
        self, process: multiprocessing.process.BaseProcess, reader: Connection, seconds: float
    ) -> Outcome:
        try:
            if not reader.poll(seconds):
                self._terminate(process)
                logger.warning(
                    "Deadline exceeded strategy=%s deadline=%s pid=%s exitcode=%s",
                    self.name.value,
                    seconds,
                    process.pid,
                    process.exitcode,
                )
                return Expired(seconds, strategy=self.name)
            try:
                payload = reader.recv_bytes()
            except EOFError:
                process.join(self.settings.termination_grace_seconds)
                exitcode = process.exitcode
                self._terminate(process)
                return Failure(
                    RemoteWorkError(
                        "ChildProcessExit",
                        f"worker process exited with code {exitcode} before reporting a result",
                    ),
                    strategy=self.name,
                )
        finally:
            reader.close()

        process.join(self.settings.termination_grace_seconds)
        self._terminate(process)
        try:
            return decode_payload(payload, self.name)
        except Exception as exc:
            logger.warning("Undecodable payload from worker pid=%s: %s", process.pid, exc)
            return Failure(
                RemoteWorkError(
                    f"{type(exc).__module__}.{type(exc).__qualname__}",
                    f"worker result could not be decoded: {exc}",
                ),
                strategy=self.name,
            )

    def _terminate(self, process: multiprocessing.process.BaseProcess) -> None:
        if not process.is_alive():
            process.join(0)
            return
        grace = self.settings.termination_grace_seconds
        process.terminate()
        process.join(grace)
        if process.is_alive():
            logger.debug("Worker process pid=%s ignored SIGTERM, killing", process.pid)
            process.kill()
            process.join(grace)
