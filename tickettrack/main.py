"""Composition root wiring repositories, services and editing sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from opentelemetry.sdk.trace import TracerProvider

from tickettrack.analytics import AnalyticsService
from tickettrack.core.config import Settings, get_settings
from tickettrack.core.logging import configure_logging, init_tracer, shutdown_tracer
from tickettrack.editing import AutoSaveCoordinator, UndoRedoBuffer
from tickettrack.metrics import MetricsRegistry, metrics_registry, register_default_metrics
from tickettrack.tickets import (
    InMemoryTemplateRepository,
    InMemoryTicketHistoryRepository,
    InMemoryTicketRepository,
    TemplateRepository,
    TemplateService,
    Ticket,
    TicketHistoryRepository,
    TicketRepository,
    TicketService,
)

T = TypeVar("T")


@dataclass(slots=True)
class Application:
    settings: Settings
    logger: logging.Logger
    metrics: MetricsRegistry
    tickets: TicketRepository
    templates: TemplateRepository
    history: TicketHistoryRepository
    ticket_service: TicketService
    template_service: TemplateService
    analytics: AnalyticsService
    tracer_provider: TracerProvider | None = field(default=None)

    def new_undo_buffer(self, initial: T) -> UndoRedoBuffer[T]:
        return UndoRedoBuffer(initial, max_history_size=self.settings.undo_max_history_size)

    def new_autosave(self, on_save: Callable[[T], Awaitable[Any]], initial: T) -> AutoSaveCoordinator[T]:
        return AutoSaveCoordinator(
            on_save,
            initial=initial,
            delay=self.settings.autosave_delay_seconds,
            enabled=self.settings.autosave_enabled,
            metrics=self.metrics,
        )

    def edit_ticket(self, ticket: Ticket) -> AutoSaveCoordinator[Ticket]:
        """Autosave session whose saves go through ``TicketService.save_ticket``."""

        return self.new_autosave(self.ticket_service.save_ticket, ticket)

    def shutdown(self) -> None:
        shutdown_tracer(self.tracer_provider)
        self.tracer_provider = None


def build_application(settings: Settings | None = None) -> Application:
    settings = settings or get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    metrics = register_default_metrics(metrics_registry)

    tickets = InMemoryTicketRepository()
    templates = InMemoryTemplateRepository(tickets)
    history = InMemoryTicketHistoryRepository()

    ticket_service = TicketService(
        tickets,
        history,
        templates=templates,
        metrics=metrics,
        default_page_size=settings.default_page_size,
        standup_lookback_days=settings.standup_lookback_days,
    )
    template_service = TemplateService(templates, tickets)
    analytics = AnalyticsService(
        tickets,
        productivity_days=settings.productivity_window_days,
        lookback_days=settings.standup_lookback_days,
    )

    logger.info("Initialised %s (%s)", settings.app_name, settings.environment)
    return Application(
        settings=settings,
        logger=logger,
        metrics=metrics,
        tickets=tickets,
        templates=templates,
        history=history,
        ticket_service=ticket_service,
        template_service=template_service,
        analytics=analytics,
        tracer_provider=tracer_provider,
    )
