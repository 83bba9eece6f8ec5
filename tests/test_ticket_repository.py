from __future__ import annotations

import threading

import pytest

from tickettrack.core.errors import RepositoryError
from tickettrack.tickets import InMemoryTicketRepository, SortOrder, TicketFilter, TicketStatus


@pytest.fixture
def repository(make_ticket) -> InMemoryTicketRepository:
    tickets = [
        make_ticket(status=TicketStatus.DRAFT, tags=["backend"]),
        make_ticket(status=TicketStatus.IN_PROGRESS, template_id="tpl-1"),
        make_ticket(status=TicketStatus.IN_PROGRESS, tags=["frontend", "backend"]),
        make_ticket(status=TicketStatus.COMPLETED, template_id="tpl-1"),
        make_ticket(status=TicketStatus.DRAFT, title="Search me"),
    ]
    return InMemoryTicketRepository(tickets)


@pytest.mark.asyncio
async def test_count_matches_unpaginated_find_all(repository: InMemoryTicketRepository):
    for criteria in (
        None,
        TicketFilter(),
        TicketFilter(status=TicketStatus.IN_PROGRESS),
        TicketFilter(tags=("backend",)),
        TicketFilter(search="search", page=1, page_size=1),
    ):
        unpaged = criteria.without_pagination() if criteria else None
        assert await repository.count(criteria) == len(await repository.find_all(unpaged))


@pytest.mark.asyncio
async def test_pages_concatenate_to_full_result(repository: InMemoryTicketRepository):
    criteria = TicketFilter(sort_by="title", sort_order=SortOrder.ASC, page_size=2)
    full = await repository.find_all(criteria)

    pages = []
    for page in range(1, 4):
        pages.extend(await repository.find_all(criteria.with_page(page)))

    assert [ticket.id for ticket in pages] == [ticket.id for ticket in full]
    assert len({ticket.id for ticket in pages}) == 5


@pytest.mark.asyncio
async def test_lookup_helpers(repository: InMemoryTicketRepository):
    assert {ticket.id for ticket in await repository.find_by_status(TicketStatus.IN_PROGRESS)} == {"t-002", "t-003"}
    assert {ticket.id for ticket in await repository.find_by_template_id("tpl-1")} == {"t-002", "t-004"}
    assert {ticket.id for ticket in await repository.find_by_tag("Backend")} == {"t-001", "t-003"}
    assert await repository.find_by_id("missing") is None
    assert await repository.exists("t-001")


@pytest.mark.asyncio
async def test_save_inserts_and_replaces(repository: InMemoryTicketRepository, make_ticket):
    ticket = make_ticket(id="")

    saved = await repository.save(ticket)
    assert saved.id
    assert await repository.count() == 6

    saved.title = "Renamed"
    await repository.save(saved)
    assert (await repository.find_by_id(saved.id)).title == "Renamed"
    assert await repository.count() == 6


@pytest.mark.asyncio
async def test_returned_tickets_are_detached(repository: InMemoryTicketRepository):
    ticket = await repository.find_by_id("t-001")
    ticket.title = "Mutated outside"

    assert (await repository.find_by_id("t-001")).title != "Mutated outside"


@pytest.mark.asyncio
async def test_delete_reports_missing_rows(repository: InMemoryTicketRepository):
    assert await repository.delete("t-001") is True
    assert await repository.delete("t-001") is False
    assert await repository.find_by_id("t-001") is None


@pytest.mark.asyncio
async def test_backend_failures_are_wrapped(make_ticket):
    repository = InMemoryTicketRepository()
    ticket = make_ticket(data={"lock": threading.Lock()})

    with pytest.raises(RepositoryError) as excinfo:
        await repository.save(ticket)

    assert excinfo.value.operation == "save"
    assert isinstance(excinfo.value.__cause__, TypeError)
