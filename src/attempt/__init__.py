"""Bounded retries with enforced per-attempt deadlines."""

from .config import AttemptConfig, TimeoutSettings, load_config
from .detection import Detector, classify_source, recommend_strategy
from .errors import AttemptError, DeadlineExceeded, RemoteWorkError, StrategyUnavailableError
from .executor import build_strategy, execute_with_deadline, run_attempt
from .models import Classification, Expired, Failure, Outcome, StrategyId, Success
from .retry import Attempt, AttemptWarning, attempt
from .selection import AutoSelector

__version__ = "0.6.1"

__all__ = [
    "Attempt",
    "AttemptConfig",
    "AttemptError",
    "AttemptWarning",
    "AutoSelector",
    "Classification",
    "DeadlineExceeded",
    "Detector",
    "Expired",
    "Failure",
    "Outcome",
    "RemoteWorkError",
    "StrategyId",
    "StrategyUnavailableError",
    "Success",
    "TimeoutSettings",
    "attempt",
    "build_strategy",
    "classify_source",
    "execute_with_deadline",
    "load_config",
    "recommend_strategy",
    "run_attempt",
]
