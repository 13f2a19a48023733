"""Explicit configuration values and XDG config loading."""

from __future__ import annotations

import logging as py_logging
import os
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from attempt.models import StrategyId

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/attempt/config.toml").expanduser()
TIMEOUT_STRATEGY_ENV = "ATTEMPT_TIMEOUT_STRATEGY"


class TimeoutSettings(BaseModel):
    """Tunable constants of the timeout core.

    Probe counts and time budgets are heuristics, not contracts; they are
    exposed here so callers on loaded machines can widen them.
    """

    model_config = ConfigDict(frozen=True)

    grace_seconds: float = Field(default=0.1, ge=0)
    termination_grace_seconds: float = Field(default=0.5, ge=0)
    cooperative_poll_seconds: float = Field(default=0.001, ge=0)
    probe_resumes: int = Field(default=3, ge=1)
    probe_resume_budget_seconds: float = Field(default=0.01, gt=0)
    timing_probe_timeout_seconds: float = Field(default=0.01, gt=0)
    timing_probe_budget_seconds: float = Field(default=0.005, gt=0)
    source_window_lines: int = Field(default=8, ge=1)
    execution_probes: bool = True


class AttemptConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    tries: int = Field(default=3, ge=1)
    interval: float = Field(default=60.0, ge=0)
    increment: float = Field(default=0.0, ge=0)
    timeout: float | None = None
    timeout_strategy: StrategyId = StrategyId.AUTO
    warnings: bool = True
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)

    @field_validator("timeout_strategy", mode="before")
    @classmethod
    def _parse_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return StrategyId.parse(value)
        return value

    @field_validator("timeout")
    @classmethod
    def _validate_timeout(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError(f"Invalid timeout: {value}")
        return value

    def with_options(self, **options: Any) -> AttemptConfig:
        """Return a validated copy with ``options`` applied."""
        if not options:
            return self
        payload = self.model_dump()
        payload.update(options)
        return AttemptConfig.model_validate(payload)


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _sanitize_fields(model: type[BaseModel], raw: dict[str, object]) -> dict[str, object]:
    accepted: dict[str, object] = {}
    for key, value in raw.items():
        if key not in model.model_fields:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        try:
            model.model_validate({key: value})
        except ValidationError:
            logger.warning("Ignoring invalid config value %s=%r", key, value)
            continue
        accepted[key] = value
    return accepted


def _sanitize(raw: dict[str, object]) -> AttemptConfig:
    timeouts_raw = raw.get("timeouts", {})
    top_level = {key: value for key, value in raw.items() if key != "timeouts"}

    payload = _sanitize_fields(AttemptConfig, top_level)
    if isinstance(timeouts_raw, dict):
        payload["timeouts"] = TimeoutSettings.model_validate(
            _sanitize_fields(TimeoutSettings, timeouts_raw)
        )

    env_strategy = os.getenv(TIMEOUT_STRATEGY_ENV, "").strip()
    if env_strategy:
        try:
            payload["timeout_strategy"] = StrategyId.parse(env_strategy)
        except ValueError:
            logger.warning("Ignoring invalid %s=%s", TIMEOUT_STRATEGY_ENV, env_strategy)

    return AttemptConfig.model_validate(payload)


def load_config(path: str | Path | None = None) -> AttemptConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        logger.warning("Unreadable config file %s, using defaults", resolved)
        return _sanitize({})
    return _sanitize(raw)
