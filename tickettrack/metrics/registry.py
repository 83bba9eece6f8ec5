"""Name-keyed store for the counters and timers of one process."""

from __future__ import annotations

from .definitions import COUNTER_LABELS
from .instruments import Counter, Timer


class MetricsRegistry:
    """Create instruments on first use; label names come from the definitions table.

    Instruments are touched from a single event loop, so no locking is done.
    """

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._timers: dict[str, Timer] = {}

    def counter(self, name: str) -> Counter:
        if name in self._timers:
            raise TypeError(f"{name} is registered as a timer")
        if name not in self._counters:
            self._counters[name] = Counter(name, COUNTER_LABELS.get(name, ()))
        return self._counters[name]

    def timer(self, name: str) -> Timer:
        if name in self._counters:
            raise TypeError(f"{name} is registered as a counter")
        if name not in self._timers:
            self._timers[name] = Timer(name)
        return self._timers[name]

    def names(self) -> set[str]:
        return set(self._counters) | set(self._timers)

    def snapshot(self) -> dict[str, dict[str, float]]:
        values = {name: counter.as_dict() for name, counter in self._counters.items()}
        values.update({name: timer.as_dict() for name, timer in self._timers.items()})
        return values
