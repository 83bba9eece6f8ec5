from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta
from typing import Callable, Sequence

from opentelemetry import trace

from tickettrack.core.errors import (
    DomainError,
    DuplicateError,
    InvalidOperationError,
    TemplateNotFoundError,
    TicketNotFoundError,
)
from tickettrack.metrics import MetricsRegistry, metrics_registry as default_metrics_registry
from tickettrack.metrics.definitions import TICKET_CHANGES_RECORDED_TOTAL, TICKET_STATUS_UPDATES_TOTAL

from .filters import DEFAULT_PAGE_SIZE, Page, TicketFilter
from .history import TicketChange, TicketHistory, created_change, diff_tickets
from .models import Template, Ticket, TicketStatus, ensure_aware, new_id, utcnow
from .repository import TemplateRepository, TicketHistoryRepository, TicketRepository
from .state import TicketStateMachine

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True)
class BulkUpdateFailure:
    id: str
    error: str
    ticket: Ticket | None = None


@dataclass(slots=True)
class BulkUpdateResult:
    successful: list[Ticket] = field(default_factory=list)
    failed: list[BulkUpdateFailure] = field(default_factory=list)


@dataclass(slots=True)
class DailyStandup:
    """Recently completed work ("yesterday") and work in progress ("today")."""

    yesterday: list[Ticket]
    today: list[Ticket]


@dataclass(slots=True)
class TicketSnapshot:
    """Raw values handed to export collaborators."""

    ticket: Ticket
    template: Template | None
    history: TicketHistory


class TicketService:
    """High level orchestration for ticket persistence, lifecycle and history."""

    def __init__(
        self,
        repository: TicketRepository,
        history: TicketHistoryRepository,
        *,
        templates: TemplateRepository | None = None,
        state_machine: TicketStateMachine | None = None,
        metrics: MetricsRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        standup_lookback_days: int = 7,
    ) -> None:
        self._repository = repository
        self._history = history
        self._templates = templates
        self._state_machine = state_machine or TicketStateMachine()
        self._metrics = metrics or default_metrics_registry
        self._clock = clock
        self._default_page_size = default_page_size
        self._standup_lookback_days = standup_lookback_days

    async def list_tickets(self, criteria: TicketFilter | None = None) -> list[Ticket]:
        return await self._repository.find_all(criteria)

    async def count_tickets(self, criteria: TicketFilter | None = None) -> int:
        return await self._repository.count(criteria)

    async def list_page(self, criteria: TicketFilter | None = None) -> Page[Ticket]:
        criteria = criteria or TicketFilter(page_size=self._default_page_size)
        query = criteria.with_page(criteria.page or 1)
        items = await self._repository.find_all(query)
        total = await self._repository.count(query)
        return Page(items=items, total=total, page=query.page, page_size=query.page_size)

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.find_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def get_tickets_by_status(self, status: TicketStatus) -> list[Ticket]:
        return await self._repository.find_by_status(status)

    async def create_ticket(self, ticket: Ticket) -> Ticket:
        with tracer.start_as_current_span("tickets.create"):
            if not ticket.id:
                ticket = replace(ticket, id=new_id())
            ticket.validate()
            if await self._repository.exists(ticket.id):
                raise DuplicateError("Ticket", "id", ticket.id)
            template = await self._resolve_template(ticket)
            if template is not None and ticket.template_version is None:
                ticket = replace(ticket, template_version=template.version)
            if ticket.status is TicketStatus.COMPLETED:
                await self._ensure_completable(ticket)

            saved = await self._repository.save(ticket)
            await self._record([created_change(saved, now=saved.created_at)])
            logger.info("Created ticket %s (%s)", saved.id, saved.status.value)
            return saved

    async def save_ticket(self, ticket: Ticket) -> Ticket:
        """Upsert ``ticket`` and append the resulting changes to its history.

        This is the save callback used by autosave sessions: saving an
        unchanged ticket is a no-op.
        """

        existing = await self._repository.find_by_id(ticket.id) if ticket.id else None
        if existing is None:
            return await self.create_ticket(ticket)

        with tracer.start_as_current_span("tickets.save") as span:
            span.set_attribute("ticket.id", ticket.id)
            if not existing.is_editable():
                raise InvalidOperationError("update ticket", "archived tickets are read-only")

            now = self._clock()
            candidate = replace(ticket, created_at=existing.created_at)
            if candidate.status is not existing.status:
                self._state_machine.assert_transition(existing.status, candidate.status)
                if candidate.status is TicketStatus.COMPLETED:
                    await self._ensure_completable(candidate)
                    if candidate.completed_at is None:
                        candidate.completed_at = now
                elif existing.status is TicketStatus.COMPLETED and candidate.status is not TicketStatus.ARCHIVED:
                    # reopened tickets no longer count as completed
                    candidate.completed_at = None
            candidate.validate()

            if not diff_tickets(existing, candidate, now=now):
                return existing

            candidate.updated_at = now
            saved = await self._repository.save(candidate)
            await self._record(diff_tickets(existing, saved, now=now))
            if saved.status is not existing.status:
                self._metrics.counter(TICKET_STATUS_UPDATES_TOTAL).inc(status=saved.status.value)
            return saved

    async def update_ticket(self, ticket_id: str, ticket: Ticket) -> Ticket:
        if not await self._repository.exists(ticket_id):
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return await self.save_ticket(replace(ticket, id=ticket_id))

    async def delete_ticket(self, ticket_id: str) -> bool:
        if not await self._repository.exists(ticket_id):
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        deleted = await self._repository.delete(ticket_id)
        logger.info("Deleted ticket %s", ticket_id)
        return deleted

    async def update_status(self, ticket_id: str, status: TicketStatus) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        status = TicketStatus(status)
        if ticket.status is status:
            return ticket
        return await self.save_ticket(replace(ticket, status=status))

    async def mark_as_completed(self, ticket_id: str) -> Ticket:
        return await self.update_status(ticket_id, TicketStatus.COMPLETED)

    async def mark_as_in_progress(self, ticket_id: str) -> Ticket:
        """Start work on a draft; use ``update_status`` to reopen a completed ticket."""

        ticket = await self.get_ticket(ticket_id)
        ticket.mark_as_in_progress()
        return await self.save_ticket(ticket)

    async def archive_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        if not ticket.can_be_archived():
            raise InvalidOperationError("archive ticket", "only completed tickets can be archived")
        return await self.update_status(ticket_id, TicketStatus.ARCHIVED)

    async def bulk_update_status(self, ticket_ids: Sequence[str], status: TicketStatus) -> BulkUpdateResult:
        """Apply ``status`` to each ticket independently, collecting per-ticket failures."""

        result = BulkUpdateResult()
        for ticket_id in ticket_ids:
            try:
                result.successful.append(await self.update_status(ticket_id, status))
            except DomainError as exc:
                current = await self._repository.find_by_id(ticket_id)
                result.failed.append(BulkUpdateFailure(id=ticket_id, error=str(exc), ticket=current))
        logger.info(
            "Bulk status update to %s: %d succeeded, %d failed",
            TicketStatus(status).value,
            len(result.successful),
            len(result.failed),
        )
        return result

    async def get_daily_standup(self, *, now: datetime | None = None) -> DailyStandup:
        reference = ensure_aware(now) if now else self._clock()
        since = datetime.combine(
            reference.date() - timedelta(days=self._standup_lookback_days), time.min, reference.tzinfo
        )
        completed = TicketFilter(status=TicketStatus.COMPLETED, date_from=since, date_to=reference)
        in_progress = TicketFilter(status=TicketStatus.IN_PROGRESS)
        return DailyStandup(
            yesterday=await self._repository.find_all(completed),
            today=await self._repository.find_all(in_progress),
        )

    async def get_history(self, ticket_id: str) -> TicketHistory:
        return await self._history.get_history(ticket_id)

    async def export_snapshot(self, ticket_id: str) -> TicketSnapshot:
        ticket = await self.get_ticket(ticket_id)
        template = None
        if ticket.template_id and self._templates is not None:
            template = await self._templates.find_by_id(ticket.template_id)
        history = await self._history.get_history(ticket_id)
        return TicketSnapshot(ticket=ticket, template=template, history=history)

    async def _resolve_template(self, ticket: Ticket) -> Template | None:
        if not ticket.template_id or self._templates is None:
            return None
        template = await self._templates.find_by_id(ticket.template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template {ticket.template_id} not found")
        return template

    async def _ensure_completable(self, ticket: Ticket) -> None:
        template = await self._resolve_template(ticket)
        if template is None:
            return
        missing = template.missing_required_fields(ticket.data)
        if missing:
            labels = ", ".join(item.label for item in missing)
            raise InvalidOperationError(
                "mark ticket as completed", f"the following required fields are missing: {labels}"
            )

    async def _record(self, changes: Sequence[TicketChange]) -> None:
        if not changes:
            return
        await self._history.append_many(changes)
        counter = self._metrics.counter(TICKET_CHANGES_RECORDED_TOTAL)
        for change in changes:
            counter.inc(change_type=change.change_type.value)


class TemplateService:
    """Template lifecycle: validation, versioning and the default-template rule."""

    def __init__(self, repository: TemplateRepository, tickets: TicketRepository) -> None:
        self._repository = repository
        self._tickets = tickets

    async def list_templates(self) -> list[Template]:
        return await self._repository.find_all()

    async def get_template(self, template_id: str) -> Template:
        template = await self._repository.find_by_id(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template {template_id} not found")
        return template

    async def get_default_template(self) -> Template:
        template = await self._repository.find_default()
        if template is None:
            raise TemplateNotFoundError("No default template configured")
        return template

    async def get_template_versions(self, name: str) -> list[Template]:
        return await self._repository.find_versions_by_name(name)

    async def create_template(self, template: Template) -> Template:
        template.validate()
        await self._ensure_unique(template)
        saved = await self._repository.save(template)
        logger.info("Created template %s v%s", saved.name, saved.version)
        return saved

    async def update_template(self, template_id: str, template: Template) -> Template:
        existing = await self.get_template(template_id)
        if await self._repository.has_associated_tickets(template_id):
            raise InvalidOperationError(
                "update template",
                "template has associated tickets and cannot be edited; create a new version instead",
            )
        template.validate()
        candidate = replace(template, id=template_id, created_at=existing.created_at, updated_at=utcnow())
        await self._ensure_unique(candidate)
        if existing.is_default and not candidate.is_default:
            raise DomainError(
                "Cannot unset the default template; make another template the default instead",
                code="DEFAULT_TEMPLATE_REQUIRED",
            )
        return await self._repository.save(candidate)

    async def delete_template(self, template_id: str) -> bool:
        await self.get_template(template_id)
        in_use = await self._tickets.count(TicketFilter(template_id=template_id))
        if in_use:
            raise InvalidOperationError("delete template", f"template is used by {in_use} ticket(s)")
        return await self._repository.delete(template_id)

    async def duplicate_template(self, template_id: str, new_name: str) -> Template:
        original = await self.get_template(template_id)
        duplicated = original.duplicate(new_name)
        await self._ensure_unique(duplicated)
        return await self._repository.save(duplicated)

    async def create_new_version(self, template_id: str) -> Template:
        original = await self.get_template(template_id)
        new_version = original.create_new_version()
        new_version.validate()
        await self._ensure_unique(new_version)
        saved = await self._repository.save(new_version)
        logger.info("Created version %s of template %s", saved.version, saved.name)
        return saved

    async def set_as_default(self, template_id: str) -> Template:
        template = await self._repository.set_as_default(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template {template_id} not found")
        return template

    async def can_edit_template(self, template_id: str) -> bool:
        await self.get_template(template_id)
        return not await self._repository.has_associated_tickets(template_id)

    async def _ensure_unique(self, template: Template) -> None:
        existing = await self._repository.find_by_name_and_version(template.name, template.version)
        if existing is not None and existing.id != template.id:
            raise DuplicateError("Template", "name and version", f"{template.name} (v{template.version})")
