"""End-to-end two-participant scenarios.

A and B share one lock; tickets are shown as integers.
"""

from __future__ import annotations

import pytest

from ticket_lock import Phase, ProtocolContractViolation, Ticket
from ticket_lock.verification import ProtocolVerifier


class TestTwoParticipantScenario:
    """Scenarios 1-4 and 6, run in sequence."""

    def test_first_request_and_entry(self, protocol):
        """A draws 0 from an empty dispenser and enters immediately."""
        snapshot = protocol.snapshot()
        assert snapshot.serving == Ticket(0)
        assert snapshot.next_ticket == Ticket(0)
        assert snapshot.participants_in(Phase.IDLE) == ["A", "B"]

        ticket = protocol.request_ticket("A")
        assert ticket == Ticket(0)
        assert protocol.phase_of("A") == Phase.AWAITING
        assert protocol.state.dispenser.next_ticket == Ticket(1)

        protocol.enter("A", ticket)
        assert protocol.phase_of("A") == Phase.CRITICAL

    def test_second_requester_blocked(self, protocol):
        """B draws 1 while A is critical and cannot enter."""
        protocol.enter("A", protocol.request_ticket("A"))
        ticket = protocol.request_ticket("B")
        assert ticket == Ticket(1)
        assert protocol.state.dispenser.next_ticket == Ticket(2)
        assert protocol.enabled_steps("B")[0].action.value == "wait"

        with pytest.raises(ProtocolContractViolation):
            protocol.enter("B", Ticket(1))
        assert protocol.phase_of("B") == Phase.AWAITING

    def test_handover_and_quiescence(self, protocol):
        """A's exit admits B; B's exit leaves the lock quiescent."""
        protocol.enter("A", protocol.request_ticket("A"))
        ticket = protocol.request_ticket("B")

        protocol.exit("A")
        assert protocol.state.dispenser.serving == Ticket(1)
        protocol.enter("B", ticket)
        assert protocol.phase_of("B") == Phase.CRITICAL

        protocol.exit("B")
        snapshot = protocol.snapshot()
        assert snapshot.serving == Ticket(2)
        assert snapshot.serving == snapshot.next_ticket
        assert snapshot.participants_in(Phase.CRITICAL) == []
        assert snapshot.participants_in(Phase.IDLE) == ["A", "B"]

    def test_every_state_satisfies_battery(self, protocol):
        """The full battery holds after each step of the scenario."""
        verifier = ProtocolVerifier(protocol.domain)
        assert verifier.verify_state(protocol.snapshot()) == []

        actions = [
            lambda: protocol.request_ticket("A"),
            lambda: protocol.enter("A", Ticket(0)),
            lambda: protocol.request_ticket("B"),
            lambda: protocol.wait("B", Ticket(1)),
            lambda: protocol.exit("A"),
            lambda: protocol.enter("B", Ticket(1)),
            lambda: protocol.exit("B"),
        ]
        for action in actions:
            action()
            assert verifier.verify_state(protocol.snapshot()) == []
