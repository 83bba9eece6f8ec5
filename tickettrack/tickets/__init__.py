"""Ticket domain models, queries, history and services."""

from .filters import Page, SortOrder, TicketFilter
from .history import ChangeType, TicketChange, TicketHistory
from .models import (
    FieldOption,
    FieldType,
    Section,
    Template,
    TemplateField,
    Ticket,
    TicketMetadata,
    TicketStatus,
)
from .repository import (
    InMemoryTemplateRepository,
    InMemoryTicketHistoryRepository,
    InMemoryTicketRepository,
    TemplateRepository,
    TicketHistoryRepository,
    TicketRepository,
)
from .service import (
    BulkUpdateFailure,
    BulkUpdateResult,
    DailyStandup,
    TemplateService,
    TicketService,
    TicketSnapshot,
)
from .state import TicketStateMachine

__all__ = [
    "BulkUpdateFailure",
    "BulkUpdateResult",
    "ChangeType",
    "DailyStandup",
    "FieldOption",
    "FieldType",
    "InMemoryTemplateRepository",
    "InMemoryTicketHistoryRepository",
    "InMemoryTicketRepository",
    "Page",
    "Section",
    "SortOrder",
    "Template",
    "TemplateField",
    "TemplateRepository",
    "TemplateService",
    "Ticket",
    "TicketChange",
    "TicketFilter",
    "TicketHistory",
    "TicketHistoryRepository",
    "TicketMetadata",
    "TicketRepository",
    "TicketService",
    "TicketSnapshot",
    "TicketStateMachine",
    "TicketStatus",
]
