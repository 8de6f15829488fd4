"""Test fixtures for the core protocol tests."""

from __future__ import annotations

import pytest

from ticket_lock import ProtocolConfig, TicketDomain, TicketLockState, TicketProtocol


@pytest.fixture
def domain():
    """Default unsigned 64-bit ticket domain."""
    return TicketDomain()


@pytest.fixture
def state():
    """Shared state with participants A and B, both idle."""
    return TicketLockState(["A", "B"])


@pytest.fixture
def protocol(state):
    """Protocol over the A/B state, invariant checking off."""
    return TicketProtocol(state)


@pytest.fixture
def checked_protocol():
    """Protocol over A/B/C that re-checks every invariant and raises on failure."""
    config = ProtocolConfig(check_invariants=True, strict=True)
    return TicketProtocol(TicketLockState(["A", "B", "C"]), config)
