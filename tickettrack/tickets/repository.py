"""Persistence ports for tickets, templates and history, plus in-process backends.

Every backend must honour the filtering, sorting and paging rules defined in
:mod:`tickettrack.tickets.filters`. Absence is reported with ``None`` or
``False``; infrastructure failures surface as :class:`RepositoryError`.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Sequence

from tickettrack.core.errors import DomainError, DuplicateError, RepositoryError

from .filters import TicketFilter, apply_filter, count_matching
from .history import TicketChange, TicketHistory
from .models import Template, Ticket, TicketStatus, new_id, parse_version, utcnow

logger = logging.getLogger(__name__)


class TicketRepository(ABC):
    @abstractmethod
    async def find_all(self, criteria: TicketFilter | None = None) -> list[Ticket]:
        """Tickets matching ``criteria``, sorted and paginated."""

    @abstractmethod
    async def find_by_id(self, ticket_id: str) -> Ticket | None:
        ...

    @abstractmethod
    async def find_by_status(self, status: TicketStatus) -> list[Ticket]:
        ...

    @abstractmethod
    async def find_by_template_id(self, template_id: str) -> list[Ticket]:
        ...

    @abstractmethod
    async def find_by_tag(self, tag: str) -> list[Ticket]:
        ...

    @abstractmethod
    async def save(self, ticket: Ticket) -> Ticket:
        """Insert or replace ``ticket`` and return the persisted copy."""

    @abstractmethod
    async def delete(self, ticket_id: str) -> bool:
        """Remove the ticket; ``False`` when it did not exist."""

    @abstractmethod
    async def count(self, criteria: TicketFilter | None = None) -> int:
        """Number of matching tickets, ignoring pagination and sorting."""

    @abstractmethod
    async def exists(self, ticket_id: str) -> bool:
        ...


class TemplateRepository(ABC):
    @abstractmethod
    async def find_all(self) -> list[Template]:
        ...

    @abstractmethod
    async def find_by_id(self, template_id: str) -> Template | None:
        ...

    @abstractmethod
    async def find_by_name(self, name: str) -> Template | None:
        """Latest version of the template called ``name``."""

    @abstractmethod
    async def find_default(self) -> Template | None:
        ...

    @abstractmethod
    async def save(self, template: Template) -> Template:
        ...

    @abstractmethod
    async def delete(self, template_id: str) -> bool:
        ...

    @abstractmethod
    async def set_as_default(self, template_id: str) -> Template | None:
        """Atomically make ``template_id`` the only default template.

        Returns ``None`` and changes nothing when the template does not exist.
        """

    @abstractmethod
    async def exists(self, template_id: str) -> bool:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def find_by_name_and_version(self, name: str, version: str) -> Template | None:
        ...

    @abstractmethod
    async def find_versions_by_name(self, name: str) -> list[Template]:
        """All versions sharing ``name``, newest version first."""

    @abstractmethod
    async def has_associated_tickets(self, template_id: str) -> bool:
        ...


class TicketHistoryRepository(ABC):
    @abstractmethod
    async def append(self, change: TicketChange) -> None:
        ...

    @abstractmethod
    async def get_history(self, ticket_id: str) -> TicketHistory:
        """Ledger for ``ticket_id``; empty when nothing was recorded."""

    async def append_many(self, changes: Sequence[TicketChange]) -> None:
        for change in changes:
            await self.append(change)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (DomainError, RepositoryError):
        raise
    except Exception as exc:
        logger.exception("Repository operation '%s' failed", operation)
        raise RepositoryError(operation) from exc


class InMemoryTicketRepository(TicketRepository):
    """Reference backend keeping detached copies of tickets in a dict."""

    def __init__(self, tickets: Sequence[Ticket] = ()) -> None:
        self._rows: dict[str, Ticket] = {ticket.id: copy.deepcopy(ticket) for ticket in tickets}
        self._lock = asyncio.Lock()

    def _snapshot(self) -> list[Ticket]:
        return [copy.deepcopy(ticket) for ticket in self._rows.values()]

    async def find_all(self, criteria: TicketFilter | None = None) -> list[Ticket]:
        with _translate_errors("find_all"):
            return apply_filter(self._snapshot(), criteria)

    async def find_by_id(self, ticket_id: str) -> Ticket | None:
        with _translate_errors("find_by_id"):
            row = self._rows.get(ticket_id)
            return copy.deepcopy(row) if row is not None else None

    async def find_by_status(self, status: TicketStatus) -> list[Ticket]:
        return await self.find_all(TicketFilter(status=status))

    async def find_by_template_id(self, template_id: str) -> list[Ticket]:
        return await self.find_all(TicketFilter(template_id=template_id))

    async def find_by_tag(self, tag: str) -> list[Ticket]:
        return await self.find_all(TicketFilter(tags=(tag,)))

    async def save(self, ticket: Ticket) -> Ticket:
        async with self._lock:
            with _translate_errors("save"):
                stored = copy.deepcopy(ticket)
                if not stored.id:
                    stored.id = new_id()
                created = stored.id not in self._rows
                self._rows[stored.id] = stored
                logger.debug("%s ticket %s", "Inserted" if created else "Replaced", stored.id)
                return copy.deepcopy(stored)

    async def delete(self, ticket_id: str) -> bool:
        async with self._lock:
            return self._rows.pop(ticket_id, None) is not None

    async def count(self, criteria: TicketFilter | None = None) -> int:
        with _translate_errors("count"):
            return count_matching(self._rows.values(), criteria)

    async def exists(self, ticket_id: str) -> bool:
        return ticket_id in self._rows


class InMemoryTemplateRepository(TemplateRepository):
    """Reference template backend; ``tickets`` answers the in-use question."""

    def __init__(self, tickets: TicketRepository | None = None, templates: Sequence[Template] = ()) -> None:
        self._rows: dict[str, Template] = {}
        self._tickets = tickets
        self._lock = asyncio.Lock()
        try:
            for template in templates:
                self._store(copy.deepcopy(template))
        except DuplicateError as exc:
            raise RepositoryError("seed") from exc

    @staticmethod
    def _ordered(templates: list[Template]) -> list[Template]:
        return sorted(templates, key=lambda item: (item.name.casefold(), item.version_key, item.id))

    def _store(self, template: Template) -> None:
        parse_version(template.version)
        for other in self._rows.values():
            if other.id != template.id and other.name == template.name and other.version == template.version:
                raise DuplicateError("Template", "name and version", f"{template.name} (v{template.version})")
        self._rows[template.id] = template
        if template.is_default:
            self._make_default(template.id)

    def _make_default(self, template_id: str) -> None:
        for other in self._rows.values():
            other.is_default = other.id == template_id

    async def find_all(self) -> list[Template]:
        with _translate_errors("find_all"):
            return self._ordered([copy.deepcopy(row) for row in self._rows.values()])

    async def find_by_id(self, template_id: str) -> Template | None:
        with _translate_errors("find_by_id"):
            row = self._rows.get(template_id)
            return copy.deepcopy(row) if row is not None else None

    async def find_by_name(self, name: str) -> Template | None:
        versions = await self.find_versions_by_name(name)
        return versions[0] if versions else None

    async def find_default(self) -> Template | None:
        with _translate_errors("find_default"):
            for row in self._rows.values():
                if row.is_default:
                    return copy.deepcopy(row)
            return None

    async def save(self, template: Template) -> Template:
        async with self._lock:
            try:
                with _translate_errors("save"):
                    stored = copy.deepcopy(template)
                    if not stored.id:
                        stored.id = new_id()
                    self._store(stored)
                    return copy.deepcopy(stored)
            except DuplicateError as exc:
                raise RepositoryError("save") from exc

    async def delete(self, template_id: str) -> bool:
        async with self._lock:
            return self._rows.pop(template_id, None) is not None

    async def set_as_default(self, template_id: str) -> Template | None:
        async with self._lock:
            target = self._rows.get(template_id)
            if target is None:
                return None
            # no await between unsetting and setting: observers never see two or zero defaults
            self._make_default(template_id)
            target.updated_at = utcnow()
            logger.info("Template %s is now the default", template_id)
            return copy.deepcopy(target)

    async def exists(self, template_id: str) -> bool:
        return template_id in self._rows

    async def count(self) -> int:
        return len(self._rows)

    async def find_by_name_and_version(self, name: str, version: str) -> Template | None:
        with _translate_errors("find_by_name_and_version"):
            for row in self._rows.values():
                if row.name == name and row.version == version:
                    return copy.deepcopy(row)
            return None

    async def find_versions_by_name(self, name: str) -> list[Template]:
        with _translate_errors("find_versions_by_name"):
            matches = [copy.deepcopy(row) for row in self._rows.values() if row.name == name]
            return sorted(matches, key=lambda item: (item.version_key, item.id), reverse=True)

    async def has_associated_tickets(self, template_id: str) -> bool:
        if self._tickets is None:
            return False
        return await self._tickets.count(TicketFilter(template_id=template_id)) > 0


class InMemoryTicketHistoryRepository(TicketHistoryRepository):
    def __init__(self) -> None:
        self._ledgers: dict[str, TicketHistory] = {}

    async def append(self, change: TicketChange) -> None:
        ledger = self._ledgers.setdefault(change.ticket_id, TicketHistory(change.ticket_id))
        ledger.add_change(change)

    async def get_history(self, ticket_id: str) -> TicketHistory:
        ledger = self._ledgers.get(ticket_id)
        if ledger is None:
            return TicketHistory(ticket_id)
        return TicketHistory(ticket_id, ledger.changes)
