"""In-process metrics for autosave and ticket history."""

from __future__ import annotations

from .definitions import COUNTER_LABELS, TIMERS
from .instruments import Counter, Timer
from .registry import MetricsRegistry

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    """Create every known instrument up front so snapshots list them at zero."""

    target = registry if registry is not None else metrics_registry
    for name in COUNTER_LABELS:
        target.counter(name)
    for name in TIMERS:
        target.timer(name)
    return target


register_default_metrics()

__all__ = [
    "Counter",
    "MetricsRegistry",
    "Timer",
    "metrics_registry",
    "register_default_metrics",
]
