from __future__ import annotations

from typing import Mapping

from tickettrack.core.errors import InvalidStatusTransitionError

from .models import TicketStatus


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    Completed tickets may be reopened; archived tickets are final.
    """

    _DEFAULT_TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = {
        TicketStatus.DRAFT: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED}),
        TicketStatus.IN_PROGRESS: frozenset({TicketStatus.DRAFT, TicketStatus.COMPLETED}),
        TicketStatus.COMPLETED: frozenset({TicketStatus.ARCHIVED, TicketStatus.IN_PROGRESS, TicketStatus.DRAFT}),
        TicketStatus.ARCHIVED: frozenset(),
    }

    def __init__(self, transitions: Mapping[TicketStatus, frozenset[TicketStatus]] | None = None) -> None:
        self._transitions = transitions or self._DEFAULT_TRANSITIONS

    @staticmethod
    def initial_state() -> TicketStatus:
        return TicketStatus.DRAFT

    def can_transition(self, current: TicketStatus, target: TicketStatus) -> bool:
        if current == target:
            return True
        return target in self._transitions.get(current, frozenset())

    def assert_transition(self, current: TicketStatus, target: TicketStatus) -> None:
        if not self.can_transition(current, target):
            raise InvalidStatusTransitionError(current.value, target.value)
