"""Shared fixtures for integration tests."""

from __future__ import annotations

import pytest

from ticket_lock import ExplorationConfig, HarnessConfig, explore


@pytest.fixture
def small_harness_config():
    """Few short trials so the suite stays fast."""
    return HarnessConfig(participants=3, trials=20, max_steps=150, seed=1234)


@pytest.fixture(scope="module")
def two_party_exploration():
    """Full reachable space for A and B with four tickets."""
    return explore(["A", "B"], ExplorationConfig(max_tickets=4))
