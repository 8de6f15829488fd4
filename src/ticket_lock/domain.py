"""Ordered ticket domain.

Tickets are opaque values from a totally ordered domain with a minimum
``zero`` and an immediate-successor operation. The concrete representation
is a bounded non-negative integer counter; exhausting the counter is a
configuration error, never a silent wraparound.

Axioms (checked in isolation by ``verification.invariants.order_axioms``):
- le is reflexive, transitive, antisymmetric and total
- zero le x for every ticket x
- successor(x) is the unique minimal ticket strictly greater than x
"""

from __future__ import annotations

from dataclasses import dataclass

from ticket_lock.errors import TicketDomainExhausted

UNSIGNED_64_MAX = 2**64 - 1


@dataclass(frozen=True, order=True)
class Ticket:
    """A ticket value.

    Attributes:
        value: Position in the issuance order
    """

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"Ticket value must be non-negative, got {self.value}")

    def __repr__(self) -> str:
        return f"Ticket({self.value})"


class TicketDomain:
    """The ordered ticket domain.

    Pure: every operation is a function of its arguments and the
    domain's capacity.
    """

    def __init__(self, capacity: int = UNSIGNED_64_MAX):
        """Initialize the domain.

        Args:
            capacity: Largest counter value. ``next_ticket`` may reach it, so
                the last ticket that can be issued is ``capacity - 1``

        Raises:
            ValueError: If capacity is negative
        """
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self.capacity = capacity
        self.zero = Ticket(0)

    def le(self, a: Ticket, b: Ticket) -> bool:
        """Return True if ``a`` precedes or equals ``b``."""
        return a.value <= b.value

    def lt(self, a: Ticket, b: Ticket) -> bool:
        """Return True if ``a`` strictly precedes ``b``."""
        return self.le(a, b) and a != b

    def successor(self, ticket: Ticket) -> Ticket:
        """Return the immediate successor of ``ticket``.

        Raises:
            TicketDomainExhausted: If ``ticket`` is already ``capacity``
        """
        if ticket.value >= self.capacity:
            raise TicketDomainExhausted(capacity=self.capacity)
        return Ticket(ticket.value + 1)

    def is_successor(self, a: Ticket, b: Ticket) -> bool:
        """Return True if ``b`` is the immediate successor of ``a``."""
        return self.lt(a, b) and b.value - a.value == 1

    def contains(self, ticket: Ticket) -> bool:
        """Return True if ``ticket`` is a value the counters can take."""
        return 0 <= ticket.value <= self.capacity

    def distance(self, a: Ticket, b: Ticket) -> int:
        """Number of successor steps from ``a`` to ``b`` (``a`` le ``b``)."""
        if not self.le(a, b):
            raise ValueError(f"{a!r} does not precede {b!r}")
        return b.value - a.value

    def __repr__(self) -> str:
        return f"TicketDomain(capacity={self.capacity})"


__all__ = [
    "UNSIGNED_64_MAX",
    "Ticket",
    "TicketDomain",
]
