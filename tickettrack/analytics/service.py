"""Dashboard statistics derived from ticket collections.

All functions are pure: they read the tickets they are given, keep no state
between calls and return empty or zero-filled results for empty input.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping, Sequence

from tickettrack.core.errors import ValidationError
from tickettrack.tickets.filters import TicketFilter
from tickettrack.tickets.models import Ticket, TicketStatus, ensure_aware, parse_time_to_minutes, utcnow
from tickettrack.tickets.repository import TicketRepository

DEFAULT_TYPE = "Other"


@dataclass(frozen=True, slots=True)
class ProductivityData:
    date: date
    created: int
    completed: int


@dataclass(frozen=True, slots=True)
class TypeDistribution:
    type: str
    count: int
    percentage: int


@dataclass(frozen=True, slots=True)
class StatusDistribution:
    status: TicketStatus
    count: int
    percentage: int


@dataclass(frozen=True, slots=True)
class TimeComparison:
    """Estimated versus actual minutes for one ticket; variance is a percentage."""

    ticket_id: str
    title: str
    estimated: int
    actual: int
    variance: int


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total: int
    draft: int
    in_progress: int
    completed_this_week: int


@dataclass(slots=True)
class AnalyticsSnapshot:
    productivity: list[ProductivityData]
    type_distribution: list[TypeDistribution]
    status_distribution: list[StatusDistribution]
    time_comparison: list[TimeComparison]
    average_time_by_status: dict[TicketStatus, float]
    summary: DashboardSummary
    generated_at: datetime = field(default_factory=utcnow)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _percentage(count: int, total: int) -> int:
    return _round_half_up(count / total * 100) if total else 0


def _local_day(moment: datetime, reference: datetime) -> date:
    return ensure_aware(moment).astimezone(reference.tzinfo).date()


def format_minutes(minutes: int) -> str:
    """Inverse of :func:`parse_time_to_minutes`: ``150`` -> ``"2h 30min"``."""

    if minutes <= 0:
        return "0min"
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h {mins}min"
    if hours:
        return f"{hours}h"
    return f"{mins}min"


def get_productivity_data(
    tickets: Iterable[Ticket], days: int = 7, *, now: datetime | None = None
) -> list[ProductivityData]:
    """Created/completed counts for each of the last ``days`` calendar days, oldest first.

    Days are taken in the timezone of ``now`` and today is included. Days
    without activity are still emitted with zero counts.
    """

    if days < 1:
        raise ValidationError(f"days must be >= 1, got {days}")
    reference = ensure_aware(now) if now else utcnow()
    today = reference.date()

    created: Counter[date] = Counter()
    completed: Counter[date] = Counter()
    for ticket in tickets:
        created[_local_day(ticket.created_at, reference)] += 1
        if ticket.completed_at is not None:
            completed[_local_day(ticket.completed_at, reference)] += 1

    series: list[ProductivityData] = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        series.append(ProductivityData(date=day, created=created[day], completed=completed[day]))
    return series


def get_type_distribution(tickets: Sequence[Ticket]) -> list[TypeDistribution]:
    """Ticket counts per ``data["type"]`` in order of first appearance."""

    counts: Counter[str] = Counter()
    for ticket in tickets:
        counts[str(ticket.data.get("type") or DEFAULT_TYPE)] += 1
    total = len(tickets)
    return [
        TypeDistribution(type=name, count=count, percentage=_percentage(count, total))
        for name, count in counts.items()
    ]


def get_status_distribution(tickets: Sequence[Ticket]) -> list[StatusDistribution]:
    counts = Counter(ticket.status for ticket in tickets)
    total = len(tickets)
    return [
        StatusDistribution(status=status, count=counts[status], percentage=_percentage(counts[status], total))
        for status in TicketStatus
        if counts[status]
    ]


def get_time_comparison(tickets: Iterable[Ticket]) -> list[TimeComparison]:
    comparisons: list[TimeComparison] = []
    for ticket in tickets:
        if not ticket.metadata.estimate or not ticket.metadata.actual_time:
            continue
        estimated = parse_time_to_minutes(ticket.metadata.estimate)
        actual = parse_time_to_minutes(ticket.metadata.actual_time)
        variance = _round_half_up((actual - estimated) / estimated * 100) if estimated > 0 else 0
        comparisons.append(
            TimeComparison(
                ticket_id=ticket.id,
                title=ticket.title or "Untitled",
                estimated=estimated,
                actual=actual,
                variance=variance,
            )
        )
    return comparisons


def get_average_time_by_status(tickets: Iterable[Ticket]) -> dict[TicketStatus, float]:
    """Mean actual minutes per status; tickets without recorded time are not counted."""

    samples: Mapping[TicketStatus, list[int]] = defaultdict(list)
    for ticket in tickets:
        if ticket.metadata.actual_time:
            samples[ticket.status].append(parse_time_to_minutes(ticket.metadata.actual_time))
    return {
        status: (sum(samples[status]) / len(samples[status]) if samples[status] else 0.0)
        for status in TicketStatus
    }


def get_dashboard_summary(
    tickets: Sequence[Ticket], *, now: datetime | None = None, lookback_days: int = 7
) -> DashboardSummary:
    reference = ensure_aware(now) if now else utcnow()
    window_start = datetime.combine(reference.date() - timedelta(days=lookback_days), time.min, reference.tzinfo)
    statuses = Counter(ticket.status for ticket in tickets)
    completed_recently = sum(
        1
        for ticket in tickets
        if ticket.status is TicketStatus.COMPLETED
        and ticket.completed_at is not None
        and window_start <= ticket.completed_at <= reference
    )
    return DashboardSummary(
        total=len(tickets),
        draft=statuses[TicketStatus.DRAFT],
        in_progress=statuses[TicketStatus.IN_PROGRESS],
        completed_this_week=completed_recently,
    )


class AnalyticsService:
    """Fetch tickets through the repository contract and derive every dashboard series."""

    def __init__(
        self,
        repository: TicketRepository,
        *,
        productivity_days: int = 7,
        lookback_days: int = 7,
    ) -> None:
        if productivity_days < 1:
            raise ValidationError("productivity_days must be >= 1")
        self._repository = repository
        self._productivity_days = productivity_days
        self._lookback_days = lookback_days

    async def snapshot(
        self, criteria: TicketFilter | None = None, *, now: datetime | None = None
    ) -> AnalyticsSnapshot:
        query = criteria.without_pagination() if criteria is not None else None
        tickets = await self._repository.find_all(query)
        return self.compute(tickets, now=now)

    def compute(self, tickets: Sequence[Ticket], *, now: datetime | None = None) -> AnalyticsSnapshot:
        reference = ensure_aware(now) if now else utcnow()
        return AnalyticsSnapshot(
            productivity=get_productivity_data(tickets, self._productivity_days, now=reference),
            type_distribution=get_type_distribution(tickets),
            status_distribution=get_status_distribution(tickets),
            time_comparison=get_time_comparison(tickets),
            average_time_by_status=get_average_time_by_status(tickets),
            summary=get_dashboard_summary(tickets, now=reference, lookback_days=self._lookback_days),
            generated_at=reference,
        )
