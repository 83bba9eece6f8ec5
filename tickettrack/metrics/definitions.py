"""Names of the metrics the ticket core records."""

from __future__ import annotations

AUTOSAVE_SAVES_TOTAL = "autosave_saves_total"
AUTOSAVE_FAILURES_TOTAL = "autosave_failures_total"
AUTOSAVE_SAVE_DURATION_SECONDS = "autosave_save_duration_seconds"
TICKET_CHANGES_RECORDED_TOTAL = "ticket_changes_recorded_total"
TICKET_STATUS_UPDATES_TOTAL = "ticket_status_updates_total"

# label names per counter; "trigger" is "debounce" or "manual"
COUNTER_LABELS: dict[str, tuple[str, ...]] = {
    AUTOSAVE_SAVES_TOTAL: ("trigger",),
    AUTOSAVE_FAILURES_TOTAL: ("trigger",),
    TICKET_CHANGES_RECORDED_TOTAL: ("change_type",),
    TICKET_STATUS_UPDATES_TOTAL: ("status",),
}

TIMERS: tuple[str, ...] = (AUTOSAVE_SAVE_DURATION_SECONDS,)
