"""Reachable-state graph of the ticket protocol.

States are ``TicketLockSnapshot`` values numbered in discovery order;
transitions are labelled with the ``Step`` that produced them. A WAIT
step is a self-loop. The graph is the Kripke structure the CTL checker
in ``verification.temporal`` evaluates formulas over.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterator
from dataclasses import dataclass, field

from ticket_lock.snapshot import Step, TicketLockSnapshot
from ticket_lock.types import Phase

Trace = tuple[Step, ...]
"""A sequence of steps from the initial state."""


@dataclass(frozen=True)
class Transition:
    """A labelled edge ``source --step--> target``."""

    source: int
    step: Step
    target: int


@dataclass
class StateGraph:
    """Reachable states and transitions.

    Attributes:
        states: State id to snapshot
        transitions: All transitions, in discovery order
        initial_state: Id of the initial snapshot
    """

    states: dict[int, TicketLockSnapshot] = field(default_factory=dict)
    transitions: list[Transition] = field(default_factory=list)
    initial_state: int = 0
    _ids: dict[TicketLockSnapshot, int] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _out: dict[int, list[Transition]] = field(
        default_factory=lambda: defaultdict(list), init=False, repr=False, compare=False
    )
    _in: dict[int, list[Transition]] = field(
        default_factory=lambda: defaultdict(list), init=False, repr=False, compare=False
    )

    def add_state(self, snapshot: TicketLockSnapshot) -> tuple[int, bool]:
        """Intern ``snapshot``.

        Returns:
            ``(state_id, is_new)``
        """
        state_id = self._ids.get(snapshot)
        if state_id is not None:
            return state_id, False
        state_id = len(self.states)
        self.states[state_id] = snapshot
        self._ids[snapshot] = state_id
        return state_id, True

    def add_transition(self, source: int, step: Step, target: int) -> Transition:
        transition = Transition(source, step, target)
        self.transitions.append(transition)
        self._out[source].append(transition)
        self._in[target].append(transition)
        return transition

    def state_id(self, snapshot: TicketLockSnapshot) -> int | None:
        return self._ids.get(snapshot)

    def successors(self, state_id: int) -> Iterator[tuple[Step, int]]:
        """Yield ``(step, target)`` pairs for transitions out of a state."""
        for t in self._out.get(state_id, ()):
            yield t.step, t.target

    def predecessors(self, state_id: int) -> Iterator[tuple[Step, int]]:
        """Yield ``(step, source)`` pairs for transitions into a state."""
        for t in self._in.get(state_id, ()):
            yield t.step, t.source

    @property
    def num_states(self) -> int:
        return len(self.states)

    @property
    def num_transitions(self) -> int:
        return len(self.transitions)

    def deadlock_states(self) -> list[int]:
        """States with no outgoing transition (only reachable under a ticket bound)."""
        return [s for s in self.states if not self._out.get(s)]

    def path_to(self, target: int, max_length: int | None = None) -> Trace | None:
        """Shortest trace from the initial state to ``target``, by BFS."""
        queue: deque[tuple[int, Trace]] = deque([(self.initial_state, ())])
        seen: set[int] = set()
        while queue:
            state_id, trace = queue.popleft()
            if state_id in seen:
                continue
            seen.add(state_id)
            if state_id == target:
                return trace
            if max_length is not None and len(trace) >= max_length:
                continue
            for step, nxt in self.successors(state_id):
                if nxt not in seen:
                    queue.append((nxt, trace + (step,)))
        return None


Labeling = dict[int, set[str]]
"""Mapping from state IDs to sets of atomic proposition names."""


def label_states(graph: StateGraph) -> Labeling:
    """Attach atomic propositions to every state.

    Propositions:
        ``idle:P``, ``awaiting:P``, ``critical:P`` per participant P;
        ``mutex`` when at most one participant is critical;
        ``quiescent`` when every participant is idle and serving == next_ticket.
    """
    labeling: Labeling = {}
    for state_id, snapshot in graph.states.items():
        props: set[str] = set()
        for participant, phase in snapshot.phases:
            props.add(f"{phase.value}:{participant}")
        critical = snapshot.participants_in(Phase.CRITICAL)
        if len(critical) <= 1:
            props.add("mutex")
        everyone_idle = all(ph == Phase.IDLE for _, ph in snapshot.phases)
        if everyone_idle and snapshot.serving == snapshot.next_ticket:
            props.add("quiescent")
        labeling[state_id] = props
    return labeling


__all__ = [
    "Labeling",
    "StateGraph",
    "Trace",
    "Transition",
    "label_states",
]
