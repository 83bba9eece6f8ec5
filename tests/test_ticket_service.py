from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tickettrack.core.errors import (
    DuplicateError,
    InvalidOperationError,
    InvalidStatusTransitionError,
    TemplateNotFoundError,
    TicketNotFoundError,
)
from tickettrack.metrics.definitions import TICKET_CHANGES_RECORDED_TOTAL, TICKET_STATUS_UPDATES_TOTAL
from tickettrack.tickets import (
    ChangeType,
    InMemoryTemplateRepository,
    InMemoryTicketHistoryRepository,
    InMemoryTicketRepository,
    TicketFilter,
    TicketService,
    TicketStatus,
)


@pytest.fixture
def tickets() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest.fixture
def history() -> InMemoryTicketHistoryRepository:
    return InMemoryTicketHistoryRepository()


@pytest.fixture
def templates(tickets, make_template) -> InMemoryTemplateRepository:
    return InMemoryTemplateRepository(tickets, [make_template(is_default=True)])


@pytest.fixture
def service(tickets, history, templates, metrics) -> TicketService:
    return TicketService(tickets, history, templates=templates, metrics=metrics)


@pytest.mark.asyncio
async def test_create_ticket_records_history_and_template_version(service, history, make_ticket, metrics):
    created = await service.create_ticket(make_ticket(template_id="tpl-1"))

    assert created.template_version == "1.0.0"
    ledger = await history.get_history(created.id)
    assert [change.change_type for change in ledger.changes] == [ChangeType.CREATED]
    assert metrics.counter(TICKET_CHANGES_RECORDED_TOTAL).value(change_type="created") == 1


@pytest.mark.asyncio
async def test_create_ticket_rejects_duplicates_and_unknown_templates(service, make_ticket):
    await service.create_ticket(make_ticket(id="t-1"))

    with pytest.raises(DuplicateError):
        await service.create_ticket(make_ticket(id="t-1"))
    with pytest.raises(TemplateNotFoundError):
        await service.create_ticket(make_ticket(template_id="missing"))


@pytest.mark.asyncio
async def test_save_ticket_upserts_and_diffs(service, make_ticket):
    ticket = await service.save_ticket(make_ticket(id=""))
    assert ticket.id

    ticket.title = "Renamed"
    ticket.tags = ["ui"]
    updated = await service.save_ticket(ticket)

    ledger = await service.get_history(ticket.id)
    assert updated.title == "Renamed"
    assert [change.field for change in ledger.get_changes_by_type(ChangeType.UPDATED)] == ["title", "tags"]


@pytest.mark.asyncio
async def test_saving_an_unchanged_ticket_is_a_no_op(service, make_ticket):
    created = await service.create_ticket(make_ticket())

    again = await service.save_ticket(created)

    assert again.updated_at == created.updated_at
    assert len(await service.get_history(created.id)) == 1


@pytest.mark.asyncio
async def test_update_and_delete_require_existing_ticket(service, make_ticket):
    with pytest.raises(TicketNotFoundError):
        await service.update_ticket("missing", make_ticket())
    with pytest.raises(TicketNotFoundError):
        await service.delete_ticket("missing")
    with pytest.raises(TicketNotFoundError):
        await service.get_ticket("missing")

    created = await service.create_ticket(make_ticket())
    assert await service.delete_ticket(created.id) is True


@pytest.mark.asyncio
async def test_completion_requires_template_fields(service, make_ticket, metrics):
    created = await service.create_ticket(make_ticket(template_id="tpl-1", data={"summary": ""}))

    with pytest.raises(InvalidOperationError) as excinfo:
        await service.mark_as_completed(created.id)
    assert "Summary" in str(excinfo.value)

    created.data = {"summary": "Crash on save"}
    await service.save_ticket(created)
    completed = await service.mark_as_completed(created.id)

    assert completed.status is TicketStatus.COMPLETED
    assert completed.completed_at is not None
    ledger = await service.get_history(created.id)
    assert ledger.get_changes_by_type(ChangeType.COMPLETED)
    assert metrics.counter(TICKET_STATUS_UPDATES_TOTAL).value(status="completed") == 1


@pytest.mark.asyncio
async def test_lifecycle_rules(service, make_ticket):
    created = await service.create_ticket(make_ticket())

    with pytest.raises(InvalidOperationError):
        await service.archive_ticket(created.id)

    await service.mark_as_in_progress(created.id)
    await service.mark_as_completed(created.id)
    with pytest.raises(InvalidOperationError):
        await service.mark_as_in_progress(created.id)

    archived = await service.archive_ticket(created.id)
    assert archived.status is TicketStatus.ARCHIVED

    archived.title = "Edited after archive"
    with pytest.raises(InvalidOperationError):
        await service.save_ticket(archived)
    with pytest.raises(InvalidOperationError):
        await service.update_status(created.id, TicketStatus.DRAFT)

    draft = await service.create_ticket(make_ticket())
    with pytest.raises(InvalidStatusTransitionError):
        await service.update_status(draft.id, TicketStatus.ARCHIVED)


@pytest.mark.asyncio
async def test_update_status_reopens_completed_ticket(service, make_ticket):
    created = await service.create_ticket(make_ticket(status=TicketStatus.COMPLETED))

    reopened = await service.update_status(created.id, TicketStatus.IN_PROGRESS)

    assert reopened.status is TicketStatus.IN_PROGRESS
    assert reopened.completed_at is None
    ledger = await service.get_history(created.id)
    assert ledger.get_changes_by_type(ChangeType.STATUS_CHANGED)[-1].old_value == "completed"
    assert await service.get_tickets_by_status(TicketStatus.COMPLETED) == []

    result = await service.bulk_update_status([created.id], TicketStatus.DRAFT)
    assert [ticket.status for ticket in result.successful] == [TicketStatus.DRAFT]


@pytest.mark.asyncio
async def test_bulk_update_reports_each_ticket(service, make_ticket):
    draft = await service.create_ticket(make_ticket())
    archived = await service.create_ticket(make_ticket(status=TicketStatus.COMPLETED))
    await service.archive_ticket(archived.id)

    result = await service.bulk_update_status([draft.id, archived.id, "missing"], TicketStatus.IN_PROGRESS)

    assert [ticket.id for ticket in result.successful] == [draft.id]
    assert [failure.id for failure in result.failed] == [archived.id, "missing"]
    assert result.failed[0].ticket.status is TicketStatus.ARCHIVED
    assert result.failed[1].ticket is None


@pytest.mark.asyncio
async def test_list_page_and_counts(service, make_ticket):
    for _ in range(5):
        await service.create_ticket(make_ticket())

    page = await service.list_page(TicketFilter(page_size=2))

    assert len(page.items) == 2
    assert page.total == 5
    assert page.total_pages == 3
    assert page.has_next
    assert await service.count_tickets() == 5
    assert len(await service.get_tickets_by_status(TicketStatus.DRAFT)) == 5


@pytest.mark.asyncio
async def test_daily_standup(service, make_ticket):
    now = datetime.now(timezone.utc)
    for ticket_id, age in (("recent", 1), ("old", 30)):
        await service.create_ticket(
            make_ticket(
                id=ticket_id,
                status=TicketStatus.COMPLETED,
                created_at=now - timedelta(days=age + 2),
                completed_at=now - timedelta(days=age),
            )
        )
    await service.create_ticket(make_ticket(id="doing", status=TicketStatus.IN_PROGRESS))

    standup = await service.get_daily_standup(now=now)

    assert [ticket.id for ticket in standup.yesterday] == ["recent"]
    assert [ticket.id for ticket in standup.today] == ["doing"]


@pytest.mark.asyncio
async def test_export_snapshot_bundles_ticket_template_and_history(service, make_ticket):
    created = await service.create_ticket(make_ticket(template_id="tpl-1"))

    snapshot = await service.export_snapshot(created.id)

    assert snapshot.ticket.id == created.id
    assert snapshot.template.id == "tpl-1"
    assert len(snapshot.history) == 1
