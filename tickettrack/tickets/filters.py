"""Declarative ticket queries and the matching, sorting and paging rules every backend shares."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Iterable, Sequence, TypeVar

from tickettrack.core.errors import ValidationError

from .models import Ticket, TicketStatus, ensure_aware

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
DEFAULT_SORT_FIELD = "created_at"
SORTABLE_FIELDS = frozenset({"created_at", "updated_at", "completed_at", "title", "status", "id"})


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class TicketFilter:
    """Immutable query descriptor for tickets.

    Every populated criterion narrows the result (logical AND); ``tags`` is an
    any-of match. ``page`` left as ``None`` disables pagination. Values are
    validated on construction so malformed queries never reach a backend.
    """

    status: TicketStatus | None = None
    template_id: str | None = None
    tags: tuple[str, ...] = ()
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None
    page: int | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    sort_by: str | None = None
    sort_order: SortOrder = SortOrder.DESC

    def __post_init__(self) -> None:
        if self.status is not None:
            try:
                object.__setattr__(self, "status", TicketStatus(self.status))
            except ValueError as exc:
                raise ValidationError(f"Unknown ticket status: {self.status!r}") from exc
        try:
            object.__setattr__(self, "sort_order", SortOrder(self.sort_order))
        except ValueError as exc:
            raise ValidationError(f"Unknown sort order: {self.sort_order!r}") from exc

        if isinstance(self.tags, str):
            raise ValidationError("tags must be a sequence of strings, not a single string")
        cleaned_tags = tuple(dict.fromkeys(tag.strip().lower() for tag in self.tags if tag and tag.strip()))
        object.__setattr__(self, "tags", cleaned_tags)

        if self.page is not None and self.page < 1:
            raise ValidationError(f"page must be >= 1, got {self.page}")
        if self.page_size < 1:
            raise ValidationError(f"page_size must be >= 1, got {self.page_size}")
        if self.sort_by is not None and self.sort_by not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{self.sort_by}'; expected one of {sorted(SORTABLE_FIELDS)}"
            )

        if self.date_from is not None:
            object.__setattr__(self, "date_from", ensure_aware(self.date_from))
        if self.date_to is not None:
            object.__setattr__(self, "date_to", ensure_aware(self.date_to))
        if self.date_from is not None and self.date_to is not None and self.date_from > self.date_to:
            raise ValidationError("date_from must not be later than date_to")

    @property
    def has_search(self) -> bool:
        return bool(self.search and self.search.strip())

    @property
    def has_date_range(self) -> bool:
        return self.date_from is not None or self.date_to is not None

    @property
    def has_pagination(self) -> bool:
        return self.page is not None

    @property
    def offset(self) -> int:
        return ((self.page or 1) - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def has_any_filter(self) -> bool:
        """True when a narrowing criterion (not paging or sorting) is set."""

        return (
            self.status is not None
            or bool(self.template_id)
            or bool(self.tags)
            or self.has_date_range
            or self.has_search
        )

    def without_pagination(self) -> TicketFilter:
        return replace(self, page=None)

    def with_page(self, page: int, page_size: int | None = None) -> TicketFilter:
        return replace(self, page=page, page_size=page_size or self.page_size)

    def next_page(self) -> TicketFilter:
        return replace(self, page=(self.page or 1) + 1)


@dataclass(slots=True)
class Page(Generic[T]):
    """One slice of a paginated result with the metadata needed to navigate."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.total_pages = total_pages(self.total, self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def total_pages(total: int, page_size: int) -> int:
    if page_size < 1:
        raise ValidationError(f"page_size must be >= 1, got {page_size}")
    return math.ceil(total / page_size) if total > 0 else 0


def _date_field_value(ticket: Ticket, criteria: TicketFilter) -> datetime | None:
    if criteria.status is TicketStatus.COMPLETED:
        return ticket.completed_at
    return ticket.created_at


def _search_haystack(ticket: Ticket) -> Iterable[str]:
    yield ticket.title
    if ticket.description:
        yield ticket.description
    for value in ticket.data.values():
        if isinstance(value, str):
            yield value


def matches(ticket: Ticket, criteria: TicketFilter) -> bool:
    """Return whether ``ticket`` satisfies every populated criterion."""

    if criteria.status is not None and ticket.status is not criteria.status:
        return False
    if criteria.template_id and ticket.template_id != criteria.template_id:
        return False
    if criteria.tags and not any(tag in ticket.tags for tag in criteria.tags):
        return False
    if criteria.has_date_range:
        moment = _date_field_value(ticket, criteria)
        if moment is None:
            return False
        if criteria.date_from is not None and moment < criteria.date_from:
            return False
        if criteria.date_to is not None and moment > criteria.date_to:
            return False
    if criteria.has_search:
        needle = criteria.search.strip().casefold()
        if not any(needle in text.casefold() for text in _search_haystack(ticket)):
            return False
    return True


def filter_tickets(tickets: Iterable[Ticket], criteria: TicketFilter | None) -> list[Ticket]:
    """Narrow ``tickets`` keeping their input order; paging and sorting are ignored."""

    if criteria is None:
        return list(tickets)
    return [ticket for ticket in tickets if matches(ticket, criteria)]


def _sort_value(ticket: Ticket, sort_by: str) -> Any:
    value = getattr(ticket, sort_by)
    if isinstance(value, TicketStatus):
        return value.value
    if isinstance(value, str) and sort_by == "title":
        return value.casefold()
    return value


def sort_tickets(
    tickets: Iterable[Ticket],
    sort_by: str = DEFAULT_SORT_FIELD,
    order: SortOrder = SortOrder.DESC,
) -> list[Ticket]:
    """Stable sort with ties broken by id ascending; ``None`` values go last."""

    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by '{sort_by}'")
    by_id = sorted(tickets, key=lambda ticket: ticket.id)
    present = [ticket for ticket in by_id if getattr(ticket, sort_by) is not None]
    absent = [ticket for ticket in by_id if getattr(ticket, sort_by) is None]
    # list.sort keeps equal keys in their prior (id ascending) order, also when reversed
    present.sort(key=lambda ticket: _sort_value(ticket, sort_by), reverse=SortOrder(order) is SortOrder.DESC)
    return present + absent


def paginate(items: Sequence[T], page: int, page_size: int) -> list[T]:
    if page < 1 or page_size < 1:
        raise ValidationError("page and page_size must be >= 1")
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


def apply_filter(tickets: Iterable[Ticket], criteria: TicketFilter | None = None) -> list[Ticket]:
    """Filter, sort and paginate ``tickets`` exactly as a repository's ``find_all`` must."""

    criteria = criteria or TicketFilter()
    matched = filter_tickets(tickets, criteria)
    ordered = sort_tickets(matched, criteria.sort_by or DEFAULT_SORT_FIELD, criteria.sort_order)
    if criteria.has_pagination:
        return paginate(ordered, criteria.page, criteria.page_size)
    return ordered


def count_matching(tickets: Iterable[Ticket], criteria: TicketFilter | None = None) -> int:
    return len(filter_tickets(tickets, criteria))
