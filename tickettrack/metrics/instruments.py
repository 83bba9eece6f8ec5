"""Counters and timers recorded by the ticket core."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Iterator, Sequence


class Counter:
    """Monotonic count split by a fixed set of label names."""

    __slots__ = ("name", "label_names", "_counts")

    def __init__(self, name: str, label_names: Sequence[str] = ()) -> None:
        self.name = name
        self.label_names = tuple(label_names)
        self._counts: dict[tuple[str, ...], float] = {}

    def _key(self, labels: dict[str, str]) -> tuple[str, ...]:
        if set(labels) != set(self.label_names):
            raise ValueError(f"{self.name} takes labels {self.label_names}, got {tuple(sorted(labels))}")
        return tuple(str(labels[label]) for label in self.label_names)

    def inc(self, amount: float = 1, **labels: str) -> None:
        if amount < 0:
            raise ValueError(f"{self.name} cannot be decremented")
        key = self._key(labels)
        self._counts[key] = self._counts.get(key, 0) + amount

    def value(self, **labels: str) -> float:
        return self._counts.get(self._key(labels), 0)

    def as_dict(self) -> dict[str, float]:
        return {"/".join(key): count for key, count in self._counts.items()}


@dataclass(slots=True)
class Timer:
    """Call count plus total and worst wall-clock duration."""

    name: str
    count: int = 0
    total_seconds: float = 0.0
    max_seconds: float = 0.0

    @property
    def mean_seconds(self) -> float:
        return self.total_seconds / self.count if self.count else 0.0

    def record(self, seconds: float) -> None:
        self.count += 1
        self.total_seconds += seconds
        self.max_seconds = max(self.max_seconds, seconds)

    @contextmanager
    def time(self) -> Iterator[None]:
        started = perf_counter()
        try:
            yield
        finally:
            self.record(perf_counter() - started)

    def as_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "total_seconds": self.total_seconds,
            "mean_seconds": self.mean_seconds,
            "max_seconds": self.max_seconds,
        }
