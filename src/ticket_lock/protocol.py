"""Ticket protocol state machine.

Four actions move a participant around the cycle
IDLE -> AWAITING -> CRITICAL -> IDLE:

- request_ticket(p): IDLE -> AWAITING, drawing the next ticket
- wait(p, k):        AWAITING, k is not being served; no effect
- enter(p, k):       AWAITING -> CRITICAL, k is being served
- exit(p):           CRITICAL -> IDLE, serving advances

Each action runs atomically under the shared state's lock. A violated
precondition raises ProtocolContractViolation before anything is
mutated.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from ticket_lock.dispenser import TicketDispenser
from ticket_lock.domain import UNSIGNED_64_MAX, Ticket, TicketDomain
from ticket_lock.errors import ProtocolContractViolation
from ticket_lock.registry import ParticipantRecord, ParticipantRegistry
from ticket_lock.snapshot import Step, TicketLockSnapshot
from ticket_lock.types import ActionKind, ParticipantId, Phase
from ticket_lock.verification.invariant_checker import ViolationSeverity, assert_invariant
from ticket_lock.verification.invariants import ProtocolVerifier

logger = logging.getLogger(__name__)


@dataclass
class ProtocolConfig:
    """Configuration for the ticket protocol."""

    ticket_capacity: int | None = None
    """Bound next_ticket may reach (None: the state's domain, or unsigned 64-bit)"""

    check_invariants: bool = False
    """Re-check the full invariant battery after every action (debug mode)"""

    strict: bool = False
    """Raise AssertionError on an invariant violation instead of only logging it"""


class TicketLockState:
    """Dispenser and registry guarded by one lock.

    The lock is reentrant so that a lock API built on top (e.g. a
    threading.Condition over it) can hold it across several actions.
    """

    def __init__(
        self,
        participants: Iterable[ParticipantId] = (),
        domain: TicketDomain | None = None,
    ):
        self.domain = domain or TicketDomain()
        self.dispenser = TicketDispenser(self.domain)
        self.registry = ParticipantRegistry(self.domain.zero, participants)
        self.lock = threading.RLock()

    def snapshot(self) -> TicketLockSnapshot:
        with self.lock:
            return TicketLockSnapshot.build(
                next_ticket=self.dispenser.next_ticket,
                serving=self.dispenser.serving,
                phases=((p, r.phase) for p, r in self.registry.items()),
                holdings=((p, r.ticket) for p, r in self.registry.items()),
                zero=self.domain.zero,
            )

    def __repr__(self) -> str:
        return f"TicketLockState({self.snapshot().describe()})"


class TicketProtocol:
    """The four protocol actions over an explicit shared state.

    Usage:
        state = TicketLockState(["A", "B"])
        protocol = TicketProtocol(state)
        k = protocol.request_ticket("A")
        protocol.enter("A", k)
        protocol.exit("A")
    """

    def __init__(
        self,
        state: TicketLockState | None = None,
        config: ProtocolConfig | None = None,
    ):
        self._config = config or ProtocolConfig()
        capacity = self._config.ticket_capacity
        if state is None:
            if capacity is None:
                capacity = UNSIGNED_64_MAX
            state = TicketLockState(domain=TicketDomain(capacity))
        elif capacity is not None and capacity != state.domain.capacity:
            raise ValueError(
                f"Config ticket_capacity {capacity} does not match "
                f"state domain capacity {state.domain.capacity}"
            )
        self._state = state
        self._verifier: ProtocolVerifier | None = None
        if self._config.check_invariants:
            self._verifier = ProtocolVerifier(state.domain)

    @classmethod
    def from_snapshot(
        cls,
        snapshot: TicketLockSnapshot,
        domain: TicketDomain | None = None,
        config: ProtocolConfig | None = None,
    ) -> TicketProtocol:
        """Build a protocol positioned at a previously taken snapshot.

        Raises:
            ValueError: If the snapshot is not well formed, or ``config``
                names a capacity other than ``domain``'s
        """
        if not snapshot.is_well_formed():
            raise ValueError(f"Snapshot is not well formed: {snapshot.describe()}")
        if domain is None and config is not None and config.ticket_capacity is not None:
            domain = TicketDomain(config.ticket_capacity)
        state = TicketLockState(snapshot.participants, domain)
        if snapshot.zero != state.domain.zero:
            raise ValueError(f"Snapshot zero {snapshot.zero!r} does not match domain")
        state.dispenser.restore(snapshot.next_ticket, snapshot.serving)
        for participant in snapshot.participants:
            state.registry.set_phase(participant, snapshot.phase_of(participant))
            state.registry.assign(participant, snapshot.ticket_of(participant))
        return cls(state, config)

    @property
    def state(self) -> TicketLockState:
        return self._state

    @property
    def config(self) -> ProtocolConfig:
        return self._config

    @property
    def verifier(self) -> ProtocolVerifier | None:
        """Invariant battery used in debug mode, if enabled."""
        return self._verifier

    @property
    def domain(self) -> TicketDomain:
        return self._state.domain

    @property
    def participants(self) -> list[ParticipantId]:
        with self._state.lock:
            return self._state.registry.participants

    def snapshot(self) -> TicketLockSnapshot:
        return self._state.snapshot()

    def enroll(self, participant: ParticipantId) -> None:
        """Add a participant, IDLE holding zero."""
        with self._state.lock:
            self._state.registry.add(participant)

    def withdraw(self, participant: ParticipantId) -> None:
        """Remove an IDLE participant.

        Raises:
            ProtocolContractViolation: If the participant is unknown or not IDLE
        """
        with self._state.lock:
            record = self._state.registry.get(participant)
            if record.phase != Phase.IDLE:
                error = ProtocolContractViolation(
                    reason=f"cannot withdraw while {record.phase.value}",
                    participant=participant,
                )
                logger.warning(f"Contract violation: {error}")
                raise error
            self._state.registry.remove(participant)

    def phase_of(self, participant: ParticipantId) -> Phase:
        with self._state.lock:
            return self._state.registry.phase_of(participant)

    def ticket_of(self, participant: ParticipantId) -> Ticket:
        with self._state.lock:
            return self._state.registry.ticket_of(participant)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def request_ticket(self, participant: ParticipantId) -> Ticket:
        """Draw the next ticket; IDLE -> AWAITING.

        Raises:
            ProtocolContractViolation: If the participant is not IDLE
            TicketDomainExhausted: If no ticket is left to issue
        """
        with self._state.lock:
            self._require(ActionKind.REQUEST, participant, Phase.IDLE)
            before = self._before()
            ticket = self._state.dispenser.issue()
            self._state.registry.assign(participant, ticket)
            self._state.registry.set_phase(participant, Phase.AWAITING)
            self._after(before, Step(ActionKind.REQUEST, participant, ticket))
            return ticket

    def wait(self, participant: ParticipantId, ticket: Ticket) -> None:
        """Observe that ``ticket`` is not yet being served.

        Raises:
            ProtocolContractViolation: If the participant is not AWAITING
                with ``ticket``, or ``ticket`` is being served
        """
        with self._state.lock:
            self._require_holding(ActionKind.WAIT, participant, ticket)
            if self._state.dispenser.is_current(ticket):
                self._violate(ActionKind.WAIT, participant, "ticket is being served")
            before = self._before()
            self._after(before, Step(ActionKind.WAIT, participant, ticket))

    poll_wait = wait

    def enter(self, participant: ParticipantId, ticket: Ticket) -> None:
        """Enter the protected region; AWAITING -> CRITICAL.

        Raises:
            ProtocolContractViolation: If the participant is not AWAITING
                with ``ticket``, or ``ticket`` is not being served
        """
        with self._state.lock:
            self._require_holding(ActionKind.ENTER, participant, ticket)
            if not self._state.dispenser.is_current(ticket):
                self._violate(
                    ActionKind.ENTER,
                    participant,
                    f"ticket {ticket.value} is not being served "
                    f"(serving {self._state.dispenser.serving.value})",
                )
            before = self._before()
            self._state.registry.set_phase(participant, Phase.CRITICAL)
            self._after(before, Step(ActionKind.ENTER, participant, ticket))

    def exit(self, participant: ParticipantId) -> Ticket:
        """Leave the protected region; CRITICAL -> IDLE, serving advances.

        Returns:
            The ticket surrendered

        Raises:
            ProtocolContractViolation: If the participant is not CRITICAL
        """
        with self._state.lock:
            record = self._require(ActionKind.EXIT, participant, Phase.CRITICAL)
            before = self._before()
            ticket = record.ticket
            self._state.dispenser.advance_serving()
            self._state.registry.release(participant)
            self._state.registry.set_phase(participant, Phase.IDLE)
            self._after(before, Step(ActionKind.EXIT, participant, ticket))
            return ticket

    # ------------------------------------------------------------------
    # Driver support
    # ------------------------------------------------------------------

    def enabled_steps(self, participant: ParticipantId) -> list[Step]:
        """Actions whose preconditions currently hold for ``participant``.

        REQUEST is omitted once the ticket domain is exhausted.
        """
        with self._state.lock:
            record = self._state.registry.get(participant)
            dispenser = self._state.dispenser
            if record.phase == Phase.IDLE:
                if dispenser.next_ticket.value >= self.domain.capacity:
                    return []
                return [Step(ActionKind.REQUEST, participant, dispenser.next_ticket)]
            if record.phase == Phase.AWAITING:
                if dispenser.is_current(record.ticket):
                    return [Step(ActionKind.ENTER, participant, record.ticket)]
                return [Step(ActionKind.WAIT, participant, record.ticket)]
            return [Step(ActionKind.EXIT, participant, record.ticket)]

    def apply(self, step: Step) -> Step:
        """Perform ``step`` and return it as executed (with the ticket involved).

        Raises:
            ProtocolContractViolation: If the step is not enabled
        """
        if step.action == ActionKind.REQUEST:
            ticket = self.request_ticket(step.participant)
            return Step(step.action, step.participant, ticket)
        if step.action == ActionKind.EXIT:
            ticket = self.exit(step.participant)
            return Step(step.action, step.participant, ticket)
        if step.ticket is None:
            raise ProtocolContractViolation(
                reason="no ticket presented", action=step.action, participant=step.participant
            )
        if step.action == ActionKind.WAIT:
            self.wait(step.participant, step.ticket)
        else:
            self.enter(step.participant, step.ticket)
        return step

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _violate(self, action: ActionKind, participant: ParticipantId, reason: str) -> None:
        error = ProtocolContractViolation(reason=reason, action=action, participant=participant)
        logger.warning(f"Contract violation: {error}")
        raise error

    def _require(
        self, action: ActionKind, participant: ParticipantId, phase: Phase
    ) -> ParticipantRecord:
        if participant not in self._state.registry:
            self._violate(action, participant, "unknown participant")
        record = self._state.registry.get(participant)
        if record.phase != phase:
            self._violate(
                action, participant, f"expected phase {phase.value}, found {record.phase.value}"
            )
        return record

    def _require_holding(
        self, action: ActionKind, participant: ParticipantId, ticket: Ticket
    ) -> ParticipantRecord:
        record = self._require(action, participant, Phase.AWAITING)
        if record.ticket != ticket:
            self._violate(
                action,
                participant,
                f"presented ticket {ticket.value} but holds {record.ticket.value}",
            )
        return record

    def _before(self) -> TicketLockSnapshot | None:
        return self._state.snapshot() if self._verifier is not None else None

    def _after(self, before: TicketLockSnapshot | None, step: Step) -> None:
        logger.debug(f"Applied {step}")
        if self._verifier is None or before is None:
            return
        failed = self._verifier.verify(before, step, self._state.snapshot())
        assert_invariant(
            not failed,
            f"Invariants violated after {step}: {', '.join(failed)}",
            severity=ViolationSeverity.FATAL if self._config.strict else ViolationSeverity.ERROR,
            context={"step": str(step)},
        )


__all__ = [
    "ProtocolConfig",
    "TicketLockState",
    "TicketProtocol",
]
