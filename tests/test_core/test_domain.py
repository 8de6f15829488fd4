"""Tests for the ordered ticket domain."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ticket_lock import Ticket, TicketDomain, TicketDomainExhausted
from ticket_lock.verification import order_axioms

tickets = st.builds(Ticket, st.integers(min_value=0, max_value=2**64 - 1))
small_tickets = st.builds(Ticket, st.integers(min_value=0, max_value=20))


class TestTicket:
    """Tests for the Ticket value type."""

    def test_negative_rejected(self):
        """Ticket values are non-negative."""
        with pytest.raises(ValueError, match="non-negative"):
            Ticket(-1)

    def test_value_semantics(self):
        """Tickets compare and hash by value."""
        assert Ticket(3) == Ticket(3)
        assert len({Ticket(3), Ticket(3), Ticket(4)}) == 2
        assert repr(Ticket(7)) == "Ticket(7)"


class TestTicketDomain:
    """Tests for TicketDomain operations."""

    def test_zero(self, domain):
        """Zero is the ticket with value 0."""
        assert domain.zero == Ticket(0)

    def test_successor(self, domain):
        """Successor increments by one."""
        assert domain.successor(Ticket(0)) == Ticket(1)
        assert domain.successor(Ticket(41)) == Ticket(42)

    def test_lt_is_strict(self, domain):
        """lt excludes equality."""
        assert domain.lt(Ticket(1), Ticket(2))
        assert not domain.lt(Ticket(2), Ticket(2))

    def test_exhaustion_raises(self):
        """Successor of the largest value is a fatal configuration error, not a wrap."""
        domain = TicketDomain(capacity=3)
        assert domain.successor(Ticket(2)) == Ticket(3)
        with pytest.raises(TicketDomainExhausted) as exc_info:
            domain.successor(Ticket(3))
        assert exc_info.value.capacity == 3
        assert "exhausted" in str(exc_info.value)

    def test_negative_capacity_rejected(self):
        """Capacity must be non-negative."""
        with pytest.raises(ValueError):
            TicketDomain(capacity=-1)

    def test_distance(self, domain):
        """Distance counts successor steps."""
        assert domain.distance(Ticket(2), Ticket(5)) == 3
        with pytest.raises(ValueError):
            domain.distance(Ticket(5), Ticket(2))

    def test_contains(self):
        """Only values up to capacity are representable."""
        domain = TicketDomain(capacity=10)
        assert domain.contains(Ticket(10))
        assert not domain.contains(Ticket(11))


class TestOrderAxioms:
    """Property-based checks of the order axioms in isolation."""

    @given(tickets, tickets, tickets)
    def test_axioms_hold_u64(self, a, b, c):
        """Every order axiom holds for arbitrary 64-bit tickets."""
        registry = order_axioms(TicketDomain())
        assert registry.check_all(a, b, c) == []

    @given(small_tickets, small_tickets, small_tickets)
    def test_axioms_hold_bounded(self, a, b, c):
        """Axioms hold in a small bounded domain, including at its end."""
        registry = order_axioms(TicketDomain(capacity=20))
        assert registry.check_all(a, b, c) == []

    @given(st.integers(min_value=0, max_value=1000))
    def test_successor_is_immediate(self, n):
        """No ticket lies strictly between x and successor(x)."""
        domain = TicketDomain()
        x = Ticket(n)
        y = domain.successor(x)
        assert domain.lt(x, y)
        assert domain.is_successor(x, y)
        for k in range(max(0, n - 2), n + 4):
            between = domain.lt(x, Ticket(k)) and domain.lt(Ticket(k), y)
            assert not between

    def test_broken_order_detected(self):
        """A domain whose le is not total is caught by the axiom registry."""

        class BrokenDomain(TicketDomain):
            def le(self, a, b):
                return a.value <= b.value and a.value % 2 == b.value % 2

        registry = order_axioms(BrokenDomain())
        violated = registry.check_all(Ticket(1), Ticket(2), Ticket(3))
        assert "total" in violated
