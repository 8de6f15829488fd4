"""Exhaustive exploration of the reachable state space.

Breadth-first enumeration of every snapshot reachable from the initial
state for a fixed set of participants. REQUEST is disabled once
``max_tickets`` tickets have been issued, which makes the space finite.
Every state and every transition is checked against the full invariant
battery; because the search is breadth-first, the trace attached to the
first violation found is a shortest counterexample.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from ticket_lock.domain import TicketDomain
from ticket_lock.graph import StateGraph, Trace
from ticket_lock.protocol import TicketLockState, TicketProtocol
from ticket_lock.snapshot import Step, TicketLockSnapshot
from ticket_lock.types import ActionKind, ParticipantId
from ticket_lock.verification.invariants import ProtocolVerifier

logger = logging.getLogger(__name__)


@dataclass
class ExplorationConfig:
    """Bounds for exhaustive exploration."""

    max_tickets: int = 4
    """Total tickets that may be issued along any path"""

    max_states: int = 100_000
    """Stop (and mark the result truncated) after this many states"""


@dataclass
class ExplorationResult:
    """Outcome of exploring the reachable state space.

    Attributes:
        graph: Reachable states and transitions
        violations: ``(invariant_name, trace)`` for each violation found;
            the trace ends with the offending step (empty for the initial state)
        truncated: Whether ``max_states`` cut the search short
    """

    graph: StateGraph
    violations: list[tuple[str, Trace]] = field(default_factory=list)
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return not self.violations

    @property
    def states_explored(self) -> int:
        return self.graph.num_states

    @property
    def counterexample(self) -> Trace | None:
        """Shortest trace reaching the first violation, if any."""
        return self.violations[0][1] if self.violations else None


def successors(
    snapshot: TicketLockSnapshot,
    domain: TicketDomain,
    max_tickets: int,
) -> list[tuple[Step, TicketLockSnapshot]]:
    """Every ``(step, next_snapshot)`` enabled in ``snapshot``."""
    probe = TicketProtocol.from_snapshot(snapshot, domain)
    issued = domain.distance(domain.zero, snapshot.next_ticket)
    result = []
    for participant in snapshot.participants:
        for step in probe.enabled_steps(participant):
            if step.action == ActionKind.REQUEST and issued >= max_tickets:
                continue
            protocol = TicketProtocol.from_snapshot(snapshot, domain)
            executed = protocol.apply(step)
            result.append((executed, protocol.snapshot()))
    return result


def explore(
    participants: Iterable[ParticipantId],
    config: ExplorationConfig | None = None,
    domain: TicketDomain | None = None,
    verifier: ProtocolVerifier | None = None,
) -> ExplorationResult:
    """Enumerate and check every reachable state.

    Args:
        participants: Participant ids
        config: Exploration bounds
        domain: Ticket domain (default: unbounded u64)
        verifier: Invariant battery to check with (default: full battery)

    Returns:
        ExplorationResult with the state graph and any violations
    """
    config = config or ExplorationConfig()
    domain = domain or TicketDomain()
    verifier = verifier or ProtocolVerifier(domain)

    graph = StateGraph()
    initial = TicketLockState(participants, domain).snapshot()
    initial_id, _ = graph.add_state(initial)
    graph.initial_state = initial_id
    result = ExplorationResult(graph=graph)

    for name in verifier.verify_state(initial, context={"trace": ""}):
        result.violations.append((name, ()))

    queue: deque[int] = deque([initial_id])
    while queue:
        source = queue.popleft()
        before = graph.states[source]
        for step, after in successors(before, domain, config.max_tickets):
            target, is_new = graph.add_state(after)
            graph.add_transition(source, step, target)

            failed = verifier.verify_transition(before, step, after)
            if is_new:
                failed += verifier.verify_state(after)
            if failed:
                trace = (graph.path_to(source) or ()) + (step,)
                result.violations.extend((name, trace) for name in failed)

            if is_new:
                if graph.num_states >= config.max_states:
                    result.truncated = True
                    queue.clear()
                    break
                queue.append(target)

    logger.debug(
        f"Explored {graph.num_states} states, {graph.num_transitions} transitions, "
        f"{len(result.violations)} violations"
    )
    if result.truncated:
        logger.warning(f"Exploration truncated at {config.max_states} states")
    return result


__all__ = [
    "ExplorationConfig",
    "ExplorationResult",
    "explore",
    "successors",
]
