"""Immutable views of the ticket lock state.

A ``TicketLockSnapshot`` is relational: phases and ticket ownership are
sets of ``(participant, value)`` pairs rather than maps. A well-formed
snapshot taken from a running protocol has exactly one pair per
participant in each relation, but a hand-built snapshot may not, which
lets the invariant battery be exercised against malformed states too.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ticket_lock.domain import Ticket
from ticket_lock.types import ActionKind, ParticipantId, Phase


def participant_sort_key(participant: ParticipantId) -> tuple[str, str]:
    """Deterministic ordering for participants that may not be comparable."""
    return (type(participant).__name__, repr(participant))


@dataclass(frozen=True)
class Step:
    """One protocol action applied to one participant.

    Attributes:
        action: The action kind
        participant: The participant the action names
        ticket: Ticket issued (request), presented (wait, enter) or
            surrendered (exit)
    """

    action: ActionKind
    participant: ParticipantId
    ticket: Ticket | None = None

    def __str__(self) -> str:
        if self.ticket is None:
            return f"{self.action.value}({self.participant!r})"
        return f"{self.action.value}({self.participant!r}, {self.ticket.value})"


@dataclass(frozen=True)
class TicketLockSnapshot:
    """Point-in-time view of the dispenser and registry.

    Attributes:
        next_ticket: The next ticket to be issued
        serving: The ticket currently authorized to enter
        phases: Phase relation as ``(participant, phase)`` pairs
        holdings: Ownership relation as ``(participant, ticket)`` pairs
        zero: The minimum ticket of the domain
    """

    next_ticket: Ticket
    serving: Ticket
    phases: frozenset[tuple[ParticipantId, Phase]]
    holdings: frozenset[tuple[ParticipantId, Ticket]]
    zero: Ticket = Ticket(0)

    @classmethod
    def build(
        cls,
        next_ticket: Ticket,
        serving: Ticket,
        phases: Iterable[tuple[ParticipantId, Phase]],
        holdings: Iterable[tuple[ParticipantId, Ticket]],
        zero: Ticket = Ticket(0),
    ) -> TicketLockSnapshot:
        """Build a snapshot from arbitrary iterables of pairs."""
        return cls(
            next_ticket=next_ticket,
            serving=serving,
            phases=frozenset(phases),
            holdings=frozenset(holdings),
            zero=zero,
        )

    @property
    def participants(self) -> list[ParticipantId]:
        """Every participant mentioned by either relation, in stable order."""
        seen = {p for p, _ in self.phases} | {p for p, _ in self.holdings}
        return sorted(seen, key=participant_sort_key)

    @property
    def tickets(self) -> set[Ticket]:
        """Every ticket value that is held by some participant."""
        return {k for _, k in self.holdings}

    def phases_of(self, participant: ParticipantId) -> set[Phase]:
        return {phase for p, phase in self.phases if p == participant}

    def tickets_of(self, participant: ParticipantId) -> set[Ticket]:
        return {k for p, k in self.holdings if p == participant}

    def has_ticket(self, participant: ParticipantId, ticket: Ticket) -> bool:
        return (participant, ticket) in self.holdings

    def in_phase(self, participant: ParticipantId, phase: Phase) -> bool:
        return (participant, phase) in self.phases

    def phase_of(self, participant: ParticipantId) -> Phase:
        """The single phase of ``participant``.

        Raises:
            ValueError: If the participant does not have exactly one phase
        """
        phases = self.phases_of(participant)
        if len(phases) != 1:
            raise ValueError(f"{participant!r} has {len(phases)} phases")
        return next(iter(phases))

    def ticket_of(self, participant: ParticipantId) -> Ticket:
        """The single ticket held by ``participant``.

        Raises:
            ValueError: If the participant does not hold exactly one ticket
        """
        tickets = self.tickets_of(participant)
        if len(tickets) != 1:
            raise ValueError(f"{participant!r} holds {len(tickets)} tickets")
        return next(iter(tickets))

    def participants_in(self, phase: Phase) -> list[ParticipantId]:
        return sorted(
            (p for p, ph in self.phases if ph == phase),
            key=participant_sort_key,
        )

    def is_well_formed(self) -> bool:
        """True if every participant has exactly one phase and one ticket."""
        for participant in self.participants:
            if len(self.phases_of(participant)) != 1:
                return False
            if len(self.tickets_of(participant)) != 1:
                return False
        return True

    def describe(self) -> str:
        """Compact single-line rendering, e.g. ``next=2 serving=1 A:critical@1``."""
        parts = [f"next={self.next_ticket.value}", f"serving={self.serving.value}"]
        for participant in self.participants:
            phases = ",".join(sorted(ph.value for ph in self.phases_of(participant)))
            tickets = ",".join(str(k.value) for k in sorted(self.tickets_of(participant)))
            parts.append(f"{participant}:{phases}@{tickets}")
        return " ".join(parts)


__all__ = [
    "Step",
    "TicketLockSnapshot",
    "participant_sort_key",
]
