from __future__ import annotations

import pytest

from tickettrack.core.errors import (
    DomainError,
    DuplicateError,
    InvalidOperationError,
    TemplateNotFoundError,
    ValidationError,
)
from tickettrack.tickets import InMemoryTemplateRepository, InMemoryTicketRepository, TemplateService


@pytest.fixture
def tickets() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest.fixture
def service(tickets, make_template) -> TemplateService:
    repository = InMemoryTemplateRepository(tickets, [make_template(is_default=True)])
    return TemplateService(repository, tickets)


@pytest.mark.asyncio
async def test_create_template_validates_and_enforces_uniqueness(service, make_template):
    with pytest.raises(ValidationError):
        await service.create_template(make_template(id="tpl-2", name="ab"))
    with pytest.raises(ValidationError):
        await service.create_template(make_template(id="tpl-2", sections=[]))
    with pytest.raises(DuplicateError):
        await service.create_template(make_template(id="tpl-2"))

    created = await service.create_template(make_template(id="tpl-2", name="Incident"))
    assert created.name == "Incident"
    assert len(await service.list_templates()) == 2


@pytest.mark.asyncio
async def test_templates_in_use_cannot_be_edited_or_deleted(service, tickets, make_template, make_ticket):
    await tickets.save(make_ticket(template_id="tpl-1"))

    assert not await service.can_edit_template("tpl-1")
    with pytest.raises(InvalidOperationError):
        await service.update_template("tpl-1", make_template(description="changed", is_default=True))
    with pytest.raises(InvalidOperationError):
        await service.delete_template("tpl-1")


@pytest.mark.asyncio
async def test_update_template_keeps_default_rule(service, make_template):
    updated = await service.update_template("tpl-1", make_template(description="changed", is_default=True))
    assert updated.description == "changed"

    with pytest.raises(DomainError) as excinfo:
        await service.update_template("tpl-1", make_template(is_default=False))
    assert excinfo.value.code == "DEFAULT_TEMPLATE_REQUIRED"


@pytest.mark.asyncio
async def test_new_version_and_duplicate(service):
    version = await service.create_new_version("tpl-1")
    copy = await service.duplicate_template("tpl-1", "Bug report (copy)")

    assert version.version == "2.0.0"
    assert not version.is_default
    assert copy.version == "1.0.0"
    assert [template.version for template in await service.get_template_versions("Bug report")] == [
        "2.0.0",
        "1.0.0",
    ]
    with pytest.raises(DuplicateError):
        await service.duplicate_template("tpl-1", "Bug report (copy)")


@pytest.mark.asyncio
async def test_set_as_default(service, make_template):
    other = await service.create_template(make_template(id="tpl-2", name="Incident"))

    await service.set_as_default(other.id)

    assert (await service.get_default_template()).id == "tpl-2"
    assert not (await service.get_template("tpl-1")).is_default
    with pytest.raises(TemplateNotFoundError):
        await service.set_as_default("missing")


@pytest.mark.asyncio
async def test_unused_template_can_be_deleted(service, make_template):
    other = await service.create_template(make_template(id="tpl-2", name="Incident"))

    assert await service.can_edit_template(other.id)
    assert await service.delete_template(other.id) is True
    with pytest.raises(TemplateNotFoundError):
        await service.get_template(other.id)


@pytest.mark.asyncio
async def test_missing_default_template(tickets):
    service = TemplateService(InMemoryTemplateRepository(tickets), tickets)

    with pytest.raises(TemplateNotFoundError):
        await service.get_default_template()
