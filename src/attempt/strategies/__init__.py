"""Interchangeable deadline enforcement strategies."""

from .base import TimeoutStrategy
from .cooperative import CooperativeStrategy, HybridStrategy
from .passthrough import PassthroughStrategy
from .process import ErrorEnvelope, ProcessStrategy
from .thread import ThreadStrategy

STRATEGY_CLASSES: dict[str, type[TimeoutStrategy]] = {
    cls.name.value: cls
    for cls in (ThreadStrategy, ProcessStrategy, CooperativeStrategy, HybridStrategy, PassthroughStrategy)
}

__all__ = [
    "CooperativeStrategy",
    "ErrorEnvelope",
    "HybridStrategy",
    "PassthroughStrategy",
    "ProcessStrategy",
    "STRATEGY_CLASSES",
    "ThreadStrategy",
    "TimeoutStrategy",
]
