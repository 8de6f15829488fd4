"""Ticket dispenser: global issuance state.

Holds the next ticket to hand out and the ticket currently being served.
Both counters only advance. The dispenser does no locking of its own; it
is mutated exclusively by the protocol state machine while the shared
state lock is held.
"""

from __future__ import annotations

from ticket_lock.domain import Ticket, TicketDomain


class TicketDispenser:
    """Issues tickets and tracks the serving ticket."""

    def __init__(self, domain: TicketDomain):
        self._domain = domain
        self._next_ticket = domain.zero
        self._serving = domain.zero

    @property
    def domain(self) -> TicketDomain:
        return self._domain

    @property
    def next_ticket(self) -> Ticket:
        """The next value to be issued."""
        return self._next_ticket

    @property
    def serving(self) -> Ticket:
        """The ticket currently authorized to enter."""
        return self._serving

    @property
    def outstanding(self) -> int:
        """Tickets issued but not yet served."""
        return self._domain.distance(self._serving, self._next_ticket)

    def issue(self) -> Ticket:
        """Return the current next ticket and advance it.

        The ticket equal to the domain capacity is never handed out: it is
        only ever the value ``next_ticket`` stops at.

        Raises:
            TicketDomainExhausted: If ``next_ticket`` already equals the capacity
        """
        ticket = self._next_ticket
        self._next_ticket = self._domain.successor(ticket)
        return ticket

    def advance_serving(self) -> None:
        """Advance the serving ticket to its successor."""
        self._serving = self._domain.successor(self._serving)

    def is_current(self, ticket: Ticket) -> bool:
        """Admission test: whether ``ticket`` is being served."""
        return ticket == self._serving

    def restore(self, next_ticket: Ticket, serving: Ticket) -> None:
        """Position the counters at previously observed values.

        Args:
            next_ticket: Value for the next ticket
            serving: Value for the serving ticket

        Raises:
            ValueError: If serving does not precede or equal next_ticket
        """
        if not self._domain.le(serving, next_ticket):
            raise ValueError(f"serving {serving!r} exceeds next ticket {next_ticket!r}")
        self._next_ticket = next_ticket
        self._serving = serving

    def __repr__(self) -> str:
        return f"TicketDispenser(next_ticket={self._next_ticket!r}, serving={self._serving!r})"


__all__ = ["TicketDispenser"]
