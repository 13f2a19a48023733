"""Command line entrypoint: run a command with retries and a per-try deadline."""

from __future__ import annotations

import argparse
import logging as py_logging
import subprocess
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import ValidationError

from .config import AttemptConfig, load_config
from .errors import AttemptError, DeadlineExceeded, ExitCode, user_facing_error
from .logging import LOG_LEVELS, configure_logging
from .models import StrategyId
from .retry import Attempt

_VALID_LOG_LEVELS = tuple(LOG_LEVELS)
_STRATEGY_CHOICES = tuple(item.value for item in StrategyId) + ("fiber", "custom")

logger = py_logging.getLogger(__name__)

CommandRunner = Callable[..., subprocess.CompletedProcess]


def _non_negative_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("value must not be negative")
    return number


def _tries_type(value: str) -> int:
    try:
        tries = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--tries must be an integer") from exc
    if tries < 1:
        raise argparse.ArgumentTypeError("--tries must be at least 1")
    return tries


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="attempt",
        description="Run a command, retrying failures with an optional deadline per try.",
    )
    parser.add_argument("--tries", type=_tries_type, default=None)
    parser.add_argument("--interval", type=_non_negative_float, default=None)
    parser.add_argument("--increment", type=_non_negative_float, default=None)
    parser.add_argument("--timeout", type=_non_negative_float, default=None)
    parser.add_argument("--strategy", choices=_STRATEGY_CHOICES, default=None)
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--quiet", action="store_true", help="Do not emit retry warnings")
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("command", nargs=argparse.REMAINDER)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_command(namespace: argparse.Namespace) -> list[str]:
    command = list(namespace.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        raise AttemptError(
            "No command given.",
            code=ExitCode.INVALID_ARGS,
            hint="Pass the command after '--', e.g. attempt --tries 3 -- curl -f URL",
        )
    return command


def resolve_config(namespace: argparse.Namespace) -> AttemptConfig:
    base = load_config(namespace.config)
    overrides: dict[str, object] = {}
    for key in ("tries", "interval", "increment", "timeout"):
        value = getattr(namespace, key)
        if value is not None:
            overrides[key] = value
    if namespace.strategy is not None:
        overrides["timeout_strategy"] = namespace.strategy
    if namespace.quiet:
        overrides["warnings"] = False
    try:
        return base.with_options(**overrides)
    except ValidationError as exc:
        raise AttemptError(
            f"Invalid configuration: {exc.errors()[0].get('msg', exc)}",
            code=ExitCode.CONFIG_ERROR,
            hint="Check the option values and the config file.",
        ) from exc


def run_command(
    command: list[str],
    config: AttemptConfig,
    *,
    runner: CommandRunner = subprocess.run,
    sleep: Callable[[float], None] | None = None,
) -> int:
    timeout = config.timeout if config.timeout else None

    def operation() -> int:
        try:
            completed = runner(command, shell=False, check=True, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise DeadlineExceeded(exc.timeout) from None
        return int(completed.returncode)

    # Probes would launch the command an extra time.
    config = config.with_options(
        timeouts=config.timeouts.model_copy(update={"execution_probes": False})
    )

    kwargs: dict[str, object] = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    logger.debug("Running command=%s config=%s", command, config.model_dump())
    return Attempt(config, level=(subprocess.CalledProcessError, OSError), **kwargs).run(operation)


def main(
    argv: Sequence[str] | None = None,
    *,
    runner: CommandRunner = subprocess.run,
    sleep: Callable[[float], None] | None = None,
) -> int:
    root_logger = configure_logging("WARN")
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            root_logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    try:
        root_logger = configure_logging(namespace.log_level, log_file=namespace.log_file)
        command = resolve_command(namespace)
        config = resolve_config(namespace)
        return run_command(command, config, runner=runner, sleep=sleep)
    except AttemptError as exc:
        root_logger.error(
            "Handled AttemptError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=root_logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except DeadlineExceeded as exc:
        print(user_facing_error(str(exc)), file=sys.stderr)
        return int(ExitCode.DEADLINE_EXCEEDED)
    except subprocess.CalledProcessError as exc:
        print(user_facing_error(f"Command failed with exit code {exc.returncode}"), file=sys.stderr)
        return int(exc.returncode) or int(ExitCode.COMMAND_FAILED)
    except OSError as exc:
        print(
            user_facing_error(f"Unable to run command: {exc}", hint="Check the command path."),
            file=sys.stderr,
        )
        return int(ExitCode.COMMAND_FAILED)
    except Exception:
        root_logger.exception("Unhandled exception in CLI entrypoint")
        print(user_facing_error("Unexpected runtime failure"), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
