import pytest

from tickettrack.core.errors import InvalidStatusTransitionError
from tickettrack.tickets import TicketStateMachine, TicketStatus


def test_ticket_state_machine_allows_expected_transitions():
    machine = TicketStateMachine()
    assert machine.can_transition(TicketStatus.DRAFT, TicketStatus.IN_PROGRESS)
    assert machine.can_transition(TicketStatus.IN_PROGRESS, TicketStatus.DRAFT)
    assert machine.can_transition(TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED)
    assert machine.can_transition(TicketStatus.COMPLETED, TicketStatus.ARCHIVED)
    assert machine.can_transition(TicketStatus.COMPLETED, TicketStatus.IN_PROGRESS)
    assert machine.can_transition(TicketStatus.COMPLETED, TicketStatus.DRAFT)
    assert machine.can_transition(TicketStatus.ARCHIVED, TicketStatus.ARCHIVED)
    assert TicketStateMachine.initial_state() is TicketStatus.DRAFT


def test_ticket_state_machine_blocks_invalid_transitions():
    machine = TicketStateMachine()
    assert not machine.can_transition(TicketStatus.ARCHIVED, TicketStatus.DRAFT)
    assert not machine.can_transition(TicketStatus.DRAFT, TicketStatus.ARCHIVED)
    with pytest.raises(InvalidStatusTransitionError):
        machine.assert_transition(TicketStatus.ARCHIVED, TicketStatus.COMPLETED)


def test_ticket_state_machine_accepts_custom_transitions():
    machine = TicketStateMachine({TicketStatus.DRAFT: frozenset({TicketStatus.ARCHIVED})})
    assert machine.can_transition(TicketStatus.DRAFT, TicketStatus.ARCHIVED)
    assert not machine.can_transition(TicketStatus.DRAFT, TicketStatus.IN_PROGRESS)
