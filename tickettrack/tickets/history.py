from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from tickettrack.core.errors import ValidationError

from .models import Ticket, TicketStatus, ensure_aware, new_id, utcnow


class ChangeType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    COMPLETED = "completed"
    ARCHIVED = "archived"


@dataclass(frozen=True, slots=True)
class TicketChange:
    """Immutable history entry describing one change to a ticket."""

    id: str
    ticket_id: str
    change_type: ChangeType
    timestamp: datetime
    description: str
    field: str | None = None
    old_value: Any = None
    new_value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "change_type", ChangeType(self.change_type))
        object.__setattr__(self, "timestamp", ensure_aware(self.timestamp))


class TicketHistory:
    """Append-only ledger of changes for a single ticket."""

    def __init__(self, ticket_id: str, changes: Iterable[TicketChange] = ()) -> None:
        self.ticket_id = ticket_id
        self._changes: list[TicketChange] = []
        for change in changes:
            self.add_change(change)

    @property
    def changes(self) -> tuple[TicketChange, ...]:
        return tuple(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def add_change(self, change: TicketChange) -> None:
        if change.ticket_id != self.ticket_id:
            raise ValidationError(
                f"Change {change.id} belongs to ticket {change.ticket_id}, not {self.ticket_id}"
            )
        self._changes.append(change)

    def get_changes_by_type(self, change_type: ChangeType) -> list[TicketChange]:
        return [change for change in self._changes if change.change_type == change_type]

    def get_latest_changes(self, limit: int = 10) -> list[TicketChange]:
        """Most recent ``limit`` changes, newest first; same-timestamp entries newest-appended first."""

        if limit <= 0:
            return []
        indexed = sorted(
            enumerate(self._changes),
            key=lambda item: (item[1].timestamp, item[0]),
            reverse=True,
        )
        return [change for _, change in indexed[:limit]]

    def get_changes_in_range(self, start: datetime, end: datetime) -> list[TicketChange]:
        start = ensure_aware(start)
        end = ensure_aware(end)
        return [change for change in self._changes if start <= change.timestamp <= end]


# fields compared when a saved ticket replaces its previous version
TRACKED_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "template_id",
    "template_version",
    "data",
    "metadata",
    "tags",
)


def created_change(ticket: Ticket, *, now: datetime | None = None) -> TicketChange:
    return TicketChange(
        id=new_id(),
        ticket_id=ticket.id,
        change_type=ChangeType.CREATED,
        timestamp=now or ticket.created_at,
        description=f"Ticket '{ticket.title}' created",
        new_value=ticket.status.value,
    )


def _status_change_type(target: TicketStatus) -> ChangeType:
    if target is TicketStatus.COMPLETED:
        return ChangeType.COMPLETED
    if target is TicketStatus.ARCHIVED:
        return ChangeType.ARCHIVED
    return ChangeType.STATUS_CHANGED


def diff_tickets(before: Ticket, after: Ticket, *, now: datetime | None = None) -> list[TicketChange]:
    """Build the history entries describing how ``before`` became ``after``."""

    moment = ensure_aware(now) if now else utcnow()
    changes: list[TicketChange] = []
    if before.status is not after.status:
        changes.append(
            TicketChange(
                id=new_id(),
                ticket_id=after.id,
                change_type=_status_change_type(after.status),
                timestamp=moment,
                description=f"Status changed from {before.status.value} to {after.status.value}",
                field="status",
                old_value=before.status.value,
                new_value=after.status.value,
            )
        )
    for name in TRACKED_FIELDS:
        old_value = getattr(before, name)
        new_value = getattr(after, name)
        if old_value == new_value:
            continue
        changes.append(
            TicketChange(
                id=new_id(),
                ticket_id=after.id,
                change_type=ChangeType.UPDATED,
                timestamp=moment,
                description=f"Updated {name.replace('_', ' ')}",
                field=name,
                old_value=copy.deepcopy(old_value),
                new_value=copy.deepcopy(new_value),
            )
        )
    return changes
