"""Property-based tests: arbitrary interleavings against the invariant battery.

Hypothesis drives the protocol through random sequences of enabled
actions (rule-based state machine) and random participant schedules
(composite strategy), checking every state and transition invariant
after each step.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, precondition, rule

from ticket_lock import (
    ActionKind,
    Phase,
    PriorityDriver,
    ProtocolContractViolation,
    Ticket,
    TicketLockState,
    TicketProtocol,
)
from ticket_lock.verification import LifecycleMonitor, ProtocolVerifier

PARTICIPANTS = ["A", "B", "C", "D"]


class TicketProtocolMachine(RuleBasedStateMachine):
    """Random interleavings of the four actions over four participants."""

    def __init__(self) -> None:
        super().__init__()
        self.protocol = TicketProtocol(TicketLockState(PARTICIPANTS))
        self.verifier = ProtocolVerifier(self.protocol.domain)
        self.monitor = LifecycleMonitor()
        self.monitor.observe({p: Phase.IDLE for p in PARTICIPANTS})
        self.last_failed: list[str] = []

    def _apply(self, action) -> None:
        before = self.protocol.snapshot()
        step = action()
        after = self.protocol.snapshot()
        self.last_failed = self.verifier.verify(before, step, after)
        assert not self.monitor.observe({p: after.phase_of(p) for p in PARTICIPANTS})

    def _in(self, phase: Phase) -> list[str]:
        return self.protocol.snapshot().participants_in(phase)

    @precondition(lambda self: self._in(Phase.IDLE))
    @rule(data=st.data())
    def request(self, data):
        participant = data.draw(st.sampled_from(self._in(Phase.IDLE)))
        issued_before = self.protocol.state.dispenser.next_ticket
        self._apply(lambda: self.protocol.apply(self.protocol.enabled_steps(participant)[0]))
        assert self.protocol.ticket_of(participant) == issued_before

    @precondition(lambda self: self._in(Phase.AWAITING))
    @rule(data=st.data())
    def wait_or_enter(self, data):
        participant = data.draw(st.sampled_from(self._in(Phase.AWAITING)))
        step = self.protocol.enabled_steps(participant)[0]
        self._apply(lambda: self.protocol.apply(step))
        if step.action == ActionKind.ENTER:
            assert self.protocol.phase_of(participant) == Phase.CRITICAL

    @precondition(lambda self: self._in(Phase.CRITICAL))
    @rule()
    def exit(self):
        (participant,) = self._in(Phase.CRITICAL)
        self._apply(lambda: self.protocol.apply(self.protocol.enabled_steps(participant)[0]))

    @precondition(lambda self: len(self._in(Phase.AWAITING)) > 0)
    @rule(data=st.data())
    def premature_enter_rejected(self, data):
        """enter with a ticket other than serving is refused and changes nothing."""
        participant = data.draw(st.sampled_from(self._in(Phase.AWAITING)))
        ticket = self.protocol.ticket_of(participant)
        if self.protocol.state.dispenser.is_current(ticket):
            return
        before = self.protocol.snapshot()
        with pytest.raises(ProtocolContractViolation):
            self.protocol.enter(participant, ticket)
        assert self.protocol.snapshot() == before

    @invariant()
    def battery_holds(self):
        assert self.last_failed == []
        assert self.verifier.verify_state(self.protocol.snapshot()) == []


TestTicketProtocolMachine = TicketProtocolMachine.TestCase
TestTicketProtocolMachine.settings = settings(max_examples=50, stateful_step_count=40)


@st.composite
def schedules(draw: st.DrawFn) -> list[str]:
    """A participant schedule: who moves at each step."""
    n = draw(st.integers(min_value=1, max_value=len(PARTICIPANTS)))
    return draw(st.lists(st.sampled_from(PARTICIPANTS[:n]), min_size=1, max_size=80))


class TestScheduledInterleavings:
    """Schedules drawn by Hypothesis, actions chosen by the priority driver."""

    @given(schedules())
    @settings(max_examples=100)
    def test_invariants_hold_for_any_schedule(self, schedule):
        """Every step of every schedule satisfies the full battery."""
        protocol = TicketProtocol(TicketLockState(PARTICIPANTS))
        driver = PriorityDriver(protocol)
        verifier = ProtocolVerifier(protocol.domain)
        for participant in schedule:
            before = protocol.snapshot()
            step = driver.step(participant)
            assert verifier.verify(before, step, protocol.snapshot()) == []

    @given(schedules())
    @settings(max_examples=50)
    def test_admission_order_is_ticket_order(self, schedule):
        """Tickets are admitted in strictly increasing order with no gaps."""
        protocol = TicketProtocol(TicketLockState(PARTICIPANTS))
        driver = PriorityDriver(protocol)
        admitted: list[Ticket] = []
        for participant in schedule:
            step = driver.step(participant)
            if step.action == ActionKind.ENTER:
                admitted.append(step.ticket)
        assert admitted == [Ticket(i) for i in range(len(admitted))]
