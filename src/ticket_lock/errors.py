"""Exceptions raised by the ticket lock."""

from __future__ import annotations

from dataclasses import dataclass

from ticket_lock.types import ActionKind, ParticipantId


class TicketLockError(Exception):
    """Base class for ticket lock errors."""


@dataclass
class ProtocolContractViolation(TicketLockError):
    """An action was invoked while its precondition did not hold.

    Always a caller error. The protocol state is left untouched.

    Attributes:
        reason: What precondition failed
        action: The attempted action, if any
        participant: The participant named by the action
    """

    reason: str
    action: ActionKind | None = None
    participant: ParticipantId | None = None

    def __str__(self) -> str:
        parts = []
        if self.action is not None:
            parts.append(f"{self.action.value}")
        if self.participant is not None:
            parts.append(f"({self.participant!r})")
        prefix = "".join(parts)
        return f"{prefix}: {self.reason}" if prefix else self.reason


@dataclass
class TicketDomainExhausted(TicketLockError):
    """The ticket counter reached the end of its representable range.

    Attributes:
        capacity: Largest counter value of the domain
    """

    capacity: int

    def __str__(self) -> str:
        return f"ticket domain exhausted at capacity {self.capacity}"


__all__ = [
    "ProtocolContractViolation",
    "TicketDomainExhausted",
    "TicketLockError",
]
