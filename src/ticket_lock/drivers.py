"""Drivers: who moves next, and how.

The protocol has no scheduler of its own. A driver owns the choice of
*which* enabled action a participant takes; the caller owns the choice
of *which* participant moves. Keeping the two apart lets the same state
machine be exercised by seeded random interleavings, by deterministic
policies and by exhaustive exploration.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ticket_lock.protocol import TicketProtocol
from ticket_lock.snapshot import Step
from ticket_lock.types import ActionKind, ParticipantId

if TYPE_CHECKING:
    import numpy as np

logger = logging.getLogger(__name__)


class Driver(ABC):
    """Applies the next enabled action for a participant."""

    def __init__(self, protocol: TicketProtocol):
        self.protocol = protocol

    @abstractmethod
    def choose(self, enabled: list[Step]) -> Step:
        """Pick one of ``enabled`` (never empty)."""
        ...

    def step(self, participant: ParticipantId) -> Step | None:
        """Apply the next enabled action for ``participant``.

        Returns:
            The executed step, or None if nothing is enabled
        """
        enabled = self.protocol.enabled_steps(participant)
        if not enabled:
            logger.debug(f"No enabled step for {participant!r}")
            return None
        return self.protocol.apply(self.choose(enabled))


class RandomDriver(Driver):
    """Chooses uniformly among enabled steps with a NumPy generator.

    Each phase of the ticket protocol enables exactly one action, so on
    its own this driver takes the same step as ``PriorityDriver``. The
    interleaving comes from the caller's random choice of participant
    (see ``InterleavingHarness``); the generator only matters for
    protocols whose phases enable several actions.
    """

    def __init__(self, protocol: TicketProtocol, rng: np.random.Generator | None = None):
        super().__init__(protocol)
        if rng is None:
            import numpy as np

            rng = np.random.default_rng()
        self.rng = rng

    def choose(self, enabled: list[Step]) -> Step:
        return enabled[int(self.rng.integers(len(enabled)))]


DEFAULT_PRIORITY: tuple[ActionKind, ...] = (
    ActionKind.EXIT,
    ActionKind.ENTER,
    ActionKind.REQUEST,
    ActionKind.WAIT,
)


class PriorityDriver(Driver):
    """Deterministic: takes the enabled action that ranks first in ``priority``."""

    def __init__(
        self,
        protocol: TicketProtocol,
        priority: tuple[ActionKind, ...] = DEFAULT_PRIORITY,
    ):
        super().__init__(protocol)
        self.priority = priority

    def choose(self, enabled: list[Step]) -> Step:
        rank = {kind: i for i, kind in enumerate(self.priority)}
        return min(enabled, key=lambda s: rank.get(s.action, len(rank)))


__all__ = [
    "DEFAULT_PRIORITY",
    "Driver",
    "PriorityDriver",
    "RandomDriver",
]
