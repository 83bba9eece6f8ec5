"""Debounced persistence of in-progress edits.

The coordinator is a small state machine::

    IDLE --update(changed)--> PENDING --delay elapsed--> SAVING --> IDLE

Further updates while PENDING or SAVING re-arm the timer, so only the most
recent state of a quiet period is saved. At most one save runs at a time.
A failed save leaves the coordinator IDLE with ``error`` populated and is
never retried automatically; ``save_now`` is the caller's retry handle.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from tickettrack.core.errors import ValidationError
from tickettrack.metrics import MetricsRegistry, metrics_registry as default_metrics_registry
from tickettrack.metrics.definitions import (
    AUTOSAVE_FAILURES_TOTAL,
    AUTOSAVE_SAVE_DURATION_SECONDS,
    AUTOSAVE_SAVES_TOTAL,
)
from tickettrack.tickets.models import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET: Any = object()


class SaveStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"


class AutoSaveCoordinator(Generic[T]):
    """Persist edited state through ``on_save`` after ``delay`` seconds of quiet.

    The first snapshot (``initial`` or the first ``update``) is the baseline
    and is never saved. ``update`` must be called from a running event loop.
    """

    def __init__(
        self,
        on_save: Callable[[T], Awaitable[Any]],
        *,
        initial: T = _UNSET,
        delay: float = 2.0,
        enabled: bool = True,
        metrics: MetricsRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if delay < 0:
            raise ValidationError(f"delay must be >= 0, got {delay}")
        self._on_save = on_save
        self._delay = delay
        self._enabled = enabled
        self._metrics = metrics or default_metrics_registry
        self._clock = clock

        self._has_baseline = initial is not _UNSET
        self._current: T | None = initial if self._has_baseline else None
        self._saved_state: T | None = copy.deepcopy(initial) if self._has_baseline else None

        self._timer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._save_lock = asyncio.Lock()
        self._in_flight = False
        self._last_saved: datetime | None = None
        self._error: Exception | None = None

    @property
    def status(self) -> SaveStatus:
        if self._in_flight:
            return SaveStatus.SAVING
        if self._timer is not None and not self._timer.done():
            return SaveStatus.PENDING
        return SaveStatus.IDLE

    @property
    def is_saving(self) -> bool:
        return self._in_flight

    @property
    def last_saved(self) -> datetime | None:
        return self._last_saved

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def state(self) -> T | None:
        return self._current

    @property
    def has_unsaved_changes(self) -> bool:
        return self._has_baseline and self._current != self._saved_state

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self._cancel_timer()

    def update(self, state: T) -> SaveStatus:
        """Record the latest edited state and (re-)arm the debounce timer when it changed."""

        if not self._has_baseline:
            self._has_baseline = True
            self._current = state
            self._saved_state = copy.deepcopy(state)
            return self.status

        self._current = state
        self._cancel_timer()
        # while saving, _saved_state still predates the in-flight snapshot
        if self._enabled and (self._in_flight or state != self._saved_state):
            self._arm_timer()
        return self.status

    async def save_now(self) -> bool:
        """Save the latest state immediately; returns whether the save succeeded."""

        if not self._enabled or not self._has_baseline:
            return False
        self._cancel_timer()
        return await self._save(trigger="manual")

    async def flush(self) -> bool:
        """Save immediately if a debounced save is pending."""

        if self.status is not SaveStatus.PENDING:
            return self._error is None
        return await self.save_now()

    async def aclose(self) -> None:
        """Drop any pending timer and wait for an in-flight save to finish."""

        while self._tasks:
            self._cancel_timer()
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._cancel_timer()
        async with self._save_lock:
            pass

    def _arm_timer(self) -> None:
        task = asyncio.get_running_loop().create_task(self._fire_after_delay())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._timer = task

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self._delay)
        # detach before saving so later updates cannot cancel an in-flight save
        if self._timer is asyncio.current_task():
            self._timer = None
        await self._save(trigger="debounce")

    async def _save(self, *, trigger: str) -> bool:
        queued_behind_save = self._save_lock.locked()
        async with self._save_lock:
            # this save covers the latest state, so a timer armed meanwhile is redundant
            self._cancel_timer()
            state = self._current
            if state == self._saved_state and (trigger == "debounce" or queued_behind_save):
                logger.debug("Skipping %s save: state already persisted", trigger)
                return self._error is None

            self._in_flight = True
            self._error = None
            try:
                with self._metrics.timer(AUTOSAVE_SAVE_DURATION_SECONDS).time():
                    await self._on_save(state)
            except Exception as exc:
                self._error = exc
                self._metrics.counter(AUTOSAVE_FAILURES_TOTAL).inc(trigger=trigger)
                logger.exception("Autosave (%s) failed", trigger)
                return False
            else:
                self._saved_state = copy.deepcopy(state)
                self._last_saved = self._clock()
                self._metrics.counter(AUTOSAVE_SAVES_TOTAL).inc(trigger=trigger)
                logger.debug("Autosave (%s) completed at %s", trigger, self._last_saved.isoformat())
                return True
            finally:
                self._in_flight = False
                if self._enabled and self._timer is None and self._error is None and self._current != self._saved_state:
                    self._arm_timer()
