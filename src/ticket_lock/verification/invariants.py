"""The ticket lock invariant battery.

Three families of predicates:

- State invariants, evaluated over one ``TicketLockSnapshot``. Together
  they are an inductive strengthening of mutual exclusion: if all hold
  in a state, they hold in every successor state.
- Transition invariants, evaluated over ``(before, step, after)``.
- Order axioms of the ticket domain, evaluated over three tickets, so
  the domain can be validated before it is composed with the protocol.

Every predicate reads its arguments and never mutates them.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

from ticket_lock.domain import Ticket, TicketDomain
from ticket_lock.snapshot import Step, TicketLockSnapshot
from ticket_lock.types import ActionKind, Phase
from ticket_lock.verification.invariant_checker import (
    InvariantRegistry,
    Violation,
    ViolationSeverity,
)


# =============================================================================
# State invariants
# =============================================================================


def phase_partition(snapshot: TicketLockSnapshot) -> bool:
    """Every participant is in exactly one of IDLE, AWAITING, CRITICAL."""
    return all(len(snapshot.phases_of(p)) == 1 for p in snapshot.participants)


def single_ownership(snapshot: TicketLockSnapshot) -> bool:
    """has_ticket(T, K1) and has_ticket(T, K2) imply K1 = K2."""
    return all(len(snapshot.tickets_of(p)) <= 1 for p in snapshot.participants)


def mutual_exclusion(snapshot: TicketLockSnapshot) -> bool:
    """At most one participant is CRITICAL."""
    return len(snapshot.participants_in(Phase.CRITICAL)) <= 1


def serving_bound(snapshot: TicketLockSnapshot, domain: TicketDomain) -> bool:
    return domain.le(snapshot.serving, snapshot.next_ticket)


def unique_nonzero_tickets(snapshot: TicketLockSnapshot) -> bool:
    """No non-zero ticket is held by two distinct participants."""
    owners: dict[Ticket, Any] = {}
    for participant, ticket in snapshot.holdings:
        if ticket == snapshot.zero:
            continue
        if ticket in owners and owners[ticket] != participant:
            return False
        owners[ticket] = participant
    return True


def unissued_means_all_zero(snapshot: TicketLockSnapshot) -> bool:
    """next_ticket = zero implies every participant holds zero."""
    if snapshot.next_ticket != snapshot.zero:
        return True
    return all(snapshot.has_ticket(p, snapshot.zero) for p in snapshot.participants)


def tickets_below_next(snapshot: TicketLockSnapshot, domain: TicketDomain) -> bool:
    """Once issuance began, every held ticket strictly precedes next_ticket."""
    if snapshot.next_ticket == snapshot.zero:
        return True
    return all(domain.lt(k, snapshot.next_ticket) for _, k in snapshot.holdings)


def active_implies_issued(snapshot: TicketLockSnapshot) -> bool:
    """A non-idle participant implies next_ticket != zero."""
    active = [p for p, phase in snapshot.phases if phase != Phase.IDLE]
    return not active or snapshot.next_ticket != snapshot.zero


def awaiting_not_served(snapshot: TicketLockSnapshot, domain: TicketDomain) -> bool:
    """An AWAITING participant's ticket does not precede serving."""
    return all(
        domain.le(snapshot.serving, k)
        for p in snapshot.participants_in(Phase.AWAITING)
        for k in snapshot.tickets_of(p)
    )


def critical_holds_serving(snapshot: TicketLockSnapshot) -> bool:
    return all(
        snapshot.has_ticket(p, snapshot.serving)
        for p in snapshot.participants_in(Phase.CRITICAL)
    )


def unique_zero_among_active(snapshot: TicketLockSnapshot) -> bool:
    """No two distinct non-idle participants both hold zero."""
    holders = {
        p
        for p, phase in snapshot.phases
        if phase != Phase.IDLE and snapshot.has_ticket(p, snapshot.zero)
    }
    return len(holders) <= 1


def idle_ticket_served(snapshot: TicketLockSnapshot, domain: TicketDomain) -> bool:
    """An IDLE participant holding a non-zero ticket holds one already served."""
    return all(
        domain.lt(k, snapshot.serving)
        for p in snapshot.participants_in(Phase.IDLE)
        for k in snapshot.tickets_of(p)
        if k != snapshot.zero
    )


def window_held(snapshot: TicketLockSnapshot, domain: TicketDomain) -> bool:
    """Every ticket in [serving, next_ticket) is held by a non-idle participant."""
    if not domain.le(snapshot.serving, snapshot.next_ticket):
        return True
    held = {
        k
        for p, k in snapshot.holdings
        if domain.le(snapshot.serving, k)
        and domain.lt(k, snapshot.next_ticket)
        and any(ph != Phase.IDLE for ph in snapshot.phases_of(p))
    }
    return len(held) == domain.distance(snapshot.serving, snapshot.next_ticket)


CORE_STATE_INVARIANTS: dict[str, str] = {
    "phase_partition": "participant not in exactly one phase",
    "single_ownership": "participant holds more than one ticket",
    "mutual_exclusion": "more than one participant is critical",
    "serving_bound": "serving exceeds next_ticket",
    "unique_nonzero_tickets": "non-zero ticket held by two participants",
}

SUPPORTING_STATE_INVARIANTS: dict[str, str] = {
    "unissued_means_all_zero": "ticket held before any was issued",
    "tickets_below_next": "held ticket does not precede next_ticket",
    "active_implies_issued": "non-idle participant before any ticket was issued",
    "awaiting_not_served": "awaiting participant holds an already served ticket",
    "critical_holds_serving": "critical participant does not hold serving",
    "unique_zero_among_active": "two active participants hold zero",
    "idle_ticket_served": "idle participant holds an unserved ticket",
    "window_held": "ticket in [serving, next_ticket) has no active holder",
}

_STATE_PREDICATES: dict[str, Callable[..., bool]] = {
    "phase_partition": phase_partition,
    "single_ownership": single_ownership,
    "mutual_exclusion": mutual_exclusion,
    "serving_bound": serving_bound,
    "unique_nonzero_tickets": unique_nonzero_tickets,
    "unissued_means_all_zero": unissued_means_all_zero,
    "tickets_below_next": tickets_below_next,
    "active_implies_issued": active_implies_issued,
    "awaiting_not_served": awaiting_not_served,
    "critical_holds_serving": critical_holds_serving,
    "unique_zero_among_active": unique_zero_among_active,
    "idle_ticket_served": idle_ticket_served,
    "window_held": window_held,
}

_ORDERED = {
    "serving_bound",
    "tickets_below_next",
    "awaiting_not_served",
    "idle_ticket_served",
    "window_held",
}


def state_invariants(
    domain: TicketDomain | None = None,
    severity: ViolationSeverity = ViolationSeverity.ERROR,
    include_supporting: bool = True,
) -> InvariantRegistry:
    """Build a registry of state invariants; each takes a snapshot.

    Args:
        domain: Ticket domain supplying the order (default: unbounded u64)
        severity: Severity assigned to every invariant
        include_supporting: Also register the inductive strengthening
    """
    domain = domain or TicketDomain()
    registry = InvariantRegistry("state")
    messages = dict(CORE_STATE_INVARIANTS)
    if include_supporting:
        messages.update(SUPPORTING_STATE_INVARIANTS)
    for name, message in messages.items():
        predicate = _STATE_PREDICATES[name]
        if name in _ORDERED:
            predicate = functools.partial(predicate, domain=domain)
        registry.register(name, predicate, severity, message)
    return registry


# =============================================================================
# Transition invariants
# =============================================================================


def issuance_monotonicity(
    before: TicketLockSnapshot,
    step: Step,
    after: TicketLockSnapshot,
    domain: TicketDomain,
) -> bool:
    """A request hands out the old next_ticket, which follows every live ticket."""
    if step.action != ActionKind.REQUEST:
        return True
    issued = after.tickets_of(step.participant)
    if len(issued) != 1:
        return False
    ticket = next(iter(issued))
    if ticket != before.next_ticket:
        return False
    if step.ticket is not None and step.ticket != ticket:
        return False
    if not domain.is_successor(before.next_ticket, after.next_ticket):
        return False
    return all(
        domain.lt(k, ticket)
        for p, k in before.holdings
        if not before.in_phase(p, Phase.IDLE)
    )


def admission_correctness(
    before: TicketLockSnapshot,
    step: Step,
    after: TicketLockSnapshot,
) -> bool:
    """AWAITING -> CRITICAL happens iff the step is enter(p) with p holding serving."""
    admitted = {
        p
        for p in after.participants
        if before.in_phase(p, Phase.AWAITING) and after.in_phase(p, Phase.CRITICAL)
    }
    expected: set[Any] = set()
    if step.action == ActionKind.ENTER and before.has_ticket(step.participant, before.serving):
        expected = {step.participant}
    return admitted == expected


def counter_monotonicity(
    before: TicketLockSnapshot,
    step: Step,
    after: TicketLockSnapshot,
    domain: TicketDomain,
) -> bool:
    return domain.le(before.next_ticket, after.next_ticket) and domain.le(
        before.serving, after.serving
    )


def frame_condition(
    before: TicketLockSnapshot,
    step: Step,
    after: TicketLockSnapshot,
) -> bool:
    """Only the participant named by the step changes phase or ticket."""
    for participant in set(before.participants) | set(after.participants):
        if participant == step.participant:
            continue
        if before.phases_of(participant) != after.phases_of(participant):
            return False
        if before.tickets_of(participant) != after.tickets_of(participant):
            return False
    return True


TRANSITION_INVARIANTS: dict[str, str] = {
    "issuance_monotonicity": "request did not issue the next ticket in order",
    "admission_correctness": "admission did not match enter with the serving ticket",
    "counter_monotonicity": "a dispenser counter decreased",
    "frame_condition": "a participant not named by the step changed",
}

_TRANSITION_PREDICATES: dict[str, Callable[..., bool]] = {
    "issuance_monotonicity": issuance_monotonicity,
    "admission_correctness": admission_correctness,
    "counter_monotonicity": counter_monotonicity,
    "frame_condition": frame_condition,
}


def transition_invariants(
    domain: TicketDomain | None = None,
    severity: ViolationSeverity = ViolationSeverity.ERROR,
) -> InvariantRegistry:
    """Build a registry of transition invariants; each takes (before, step, after)."""
    domain = domain or TicketDomain()
    registry = InvariantRegistry("transition")
    for name, message in TRANSITION_INVARIANTS.items():
        predicate = _TRANSITION_PREDICATES[name]
        if name in ("issuance_monotonicity", "counter_monotonicity"):
            predicate = functools.partial(predicate, domain=domain)
        registry.register(name, predicate, severity, message)
    return registry


# =============================================================================
# Order axioms
# =============================================================================


def order_axioms(domain: TicketDomain | None = None) -> InvariantRegistry:
    """Axioms of the ticket order; each condition takes tickets ``(a, b, c)``.

    Successor axioms are vacuous at the end of a bounded domain.
    """
    domain = domain or TicketDomain()
    le, lt = domain.le, domain.lt

    def has_successor(a: Ticket) -> bool:
        return a.value < domain.capacity

    def successor_strict(a: Ticket, b: Ticket, c: Ticket) -> bool:
        return not has_successor(a) or lt(a, domain.successor(a))

    def successor_immediate(a: Ticket, b: Ticket, c: Ticket) -> bool:
        # anything strictly after a is at or after successor(a)
        if not has_successor(a) or not lt(a, b):
            return True
        return le(domain.successor(a), b)

    registry = InvariantRegistry("order")
    registry.register("reflexive", lambda a, b, c: le(a, a))
    registry.register(
        "transitive", lambda a, b, c: not (le(a, b) and le(b, c)) or le(a, c)
    )
    registry.register(
        "antisymmetric", lambda a, b, c: not (le(a, b) and le(b, a)) or a == b
    )
    registry.register("total", lambda a, b, c: le(a, b) or le(b, a))
    registry.register("zero_minimum", lambda a, b, c: le(domain.zero, a))
    registry.register("successor_strict", successor_strict)
    registry.register("successor_immediate", successor_immediate)
    return registry


# =============================================================================
# Verifier
# =============================================================================


class ProtocolVerifier:
    """Runs the state and transition batteries and collects violations.

    Usage:
        verifier = ProtocolVerifier()
        failed = verifier.verify(before, step, after)
    """

    def __init__(
        self,
        domain: TicketDomain | None = None,
        severity: ViolationSeverity = ViolationSeverity.ERROR,
    ):
        self.domain = domain or TicketDomain()
        self.state = state_invariants(self.domain, severity)
        self.transition = transition_invariants(self.domain, severity)

    def verify_state(
        self,
        snapshot: TicketLockSnapshot,
        context: dict[str, Any] | None = None,
    ) -> list[str]:
        """Names of state invariants violated by ``snapshot``."""
        return self.state.check_all(snapshot, context=context)

    def verify_transition(
        self,
        before: TicketLockSnapshot,
        step: Step,
        after: TicketLockSnapshot,
        context: dict[str, Any] | None = None,
    ) -> list[str]:
        return self.transition.check_all(before, step, after, context=context)

    def verify(
        self,
        before: TicketLockSnapshot,
        step: Step,
        after: TicketLockSnapshot,
        context: dict[str, Any] | None = None,
    ) -> list[str]:
        """Check the transition and the state it produced."""
        context = {"step": str(step), **(context or {})}
        return self.verify_transition(before, step, after, context) + self.verify_state(
            after, context
        )

    def get_violations(self) -> list[Violation]:
        violations = self.transition.get_violations() + self.state.get_violations()
        return sorted(violations, key=lambda v: v.timestamp)

    def clear(self) -> None:
        self.state.clear_violations()
        self.transition.clear_violations()


__all__ = [
    "CORE_STATE_INVARIANTS",
    "SUPPORTING_STATE_INVARIANTS",
    "TRANSITION_INVARIANTS",
    "ProtocolVerifier",
    "active_implies_issued",
    "admission_correctness",
    "awaiting_not_served",
    "counter_monotonicity",
    "critical_holds_serving",
    "frame_condition",
    "idle_ticket_served",
    "issuance_monotonicity",
    "mutual_exclusion",
    "order_axioms",
    "phase_partition",
    "serving_bound",
    "single_ownership",
    "state_invariants",
    "tickets_below_next",
    "transition_invariants",
    "unique_nonzero_tickets",
    "unique_zero_among_active",
    "unissued_means_all_zero",
    "window_held",
]
