"""Analytics derived from ticket collections."""

from tickettrack.tickets.models import parse_time_to_minutes

from .service import (
    AnalyticsService,
    AnalyticsSnapshot,
    DashboardSummary,
    ProductivityData,
    StatusDistribution,
    TimeComparison,
    TypeDistribution,
    format_minutes,
    get_average_time_by_status,
    get_dashboard_summary,
    get_productivity_data,
    get_status_distribution,
    get_time_comparison,
    get_type_distribution,
)

__all__ = [
    "AnalyticsService",
    "AnalyticsSnapshot",
    "DashboardSummary",
    "ProductivityData",
    "StatusDistribution",
    "TimeComparison",
    "TypeDistribution",
    "format_minutes",
    "get_average_time_by_status",
    "get_dashboard_summary",
    "get_productivity_data",
    "get_status_distribution",
    "get_time_comparison",
    "get_type_distribution",
    "parse_time_to_minutes",
]
