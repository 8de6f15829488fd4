"""Tests for the ticket dispenser and participant registry."""

from __future__ import annotations

import pytest

from ticket_lock import (
    Phase,
    ProtocolContractViolation,
    Ticket,
    TicketDispenser,
    TicketDomain,
    TicketDomainExhausted,
)
from ticket_lock.registry import ParticipantRegistry


class TestTicketDispenser:
    """Tests for TicketDispenser."""

    def test_initial_state(self, domain):
        """Both counters start at zero."""
        dispenser = TicketDispenser(domain)
        assert dispenser.next_ticket == Ticket(0)
        assert dispenser.serving == Ticket(0)
        assert dispenser.outstanding == 0

    def test_issue_returns_then_advances(self, domain):
        """issue hands out the current next ticket and advances it."""
        dispenser = TicketDispenser(domain)
        assert dispenser.issue() == Ticket(0)
        assert dispenser.issue() == Ticket(1)
        assert dispenser.next_ticket == Ticket(2)
        assert dispenser.outstanding == 2

    def test_advance_serving(self, domain):
        """advance_serving moves serving to its successor."""
        dispenser = TicketDispenser(domain)
        dispenser.issue()
        assert dispenser.is_current(Ticket(0))
        dispenser.advance_serving()
        assert dispenser.serving == Ticket(1)
        assert not dispenser.is_current(Ticket(0))
        assert dispenser.outstanding == 0

    def test_issue_exhaustion_leaves_counter(self):
        """An exhausted issue raises without moving next_ticket."""
        dispenser = TicketDispenser(TicketDomain(capacity=1))
        dispenser.issue()
        with pytest.raises(TicketDomainExhausted):
            dispenser.issue()
        assert dispenser.next_ticket == Ticket(1)

    def test_capacity_is_never_issued(self):
        """Tickets below capacity are issued; capacity itself is where next_ticket stops."""
        domain = TicketDomain(capacity=2)
        dispenser = TicketDispenser(domain)
        issued = [dispenser.issue(), dispenser.issue()]
        assert issued == [Ticket(0), Ticket(1)]
        assert dispenser.next_ticket == Ticket(2)
        assert domain.contains(dispenser.next_ticket)
        with pytest.raises(TicketDomainExhausted):
            dispenser.issue()

    def test_restore(self, domain):
        """restore positions the counters; serving may not exceed next."""
        dispenser = TicketDispenser(domain)
        dispenser.restore(next_ticket=Ticket(5), serving=Ticket(3))
        assert dispenser.outstanding == 2
        with pytest.raises(ValueError):
            dispenser.restore(next_ticket=Ticket(1), serving=Ticket(2))


class TestParticipantRegistry:
    """Tests for ParticipantRegistry."""

    def test_enrolled_idle_holding_zero(self):
        """Participants start IDLE with the zero ticket."""
        registry = ParticipantRegistry(Ticket(0), ["A", "B"])
        assert len(registry) == 2
        assert registry.phase_of("A") == Phase.IDLE
        assert registry.ticket_of("B") == Ticket(0)
        assert registry.in_phase(Phase.IDLE) == ["A", "B"]

    def test_duplicate_enrolment_rejected(self):
        """Enrolling twice is an error."""
        registry = ParticipantRegistry(Ticket(0), ["A"])
        with pytest.raises(ValueError, match="already registered"):
            registry.add("A")

    def test_unknown_participant(self):
        """Looking up an unknown participant is a contract violation."""
        registry = ParticipantRegistry(Ticket(0))
        with pytest.raises(ProtocolContractViolation) as exc_info:
            registry.get("ghost")
        assert exc_info.value.participant == "ghost"

    def test_assign_and_release(self):
        """A participant holds one ticket; release reverts it to zero."""
        registry = ParticipantRegistry(Ticket(0), ["A"])
        registry.assign("A", Ticket(4))
        assert registry.ticket_of("A") == Ticket(4)
        registry.assign("A", Ticket(5))
        assert registry.ticket_of("A") == Ticket(5)
        registry.release("A")
        assert registry.ticket_of("A") == Ticket(0)

    def test_set_phase(self):
        """set_phase replaces the participant's phase."""
        registry = ParticipantRegistry(Ticket(0), ["A", "B"])
        registry.set_phase("B", Phase.AWAITING)
        assert registry.in_phase(Phase.AWAITING) == ["B"]
        assert "B" in registry
        assert "C" not in registry
