"""
Foundation Types for the ticket lock.

Core enumerations shared by the protocol state machine, the drivers and
the verification layer, kept here to avoid circular imports between them.
"""

from __future__ import annotations

from collections.abc import Hashable
from enum import Enum
from typing import TypeAlias

ParticipantId: TypeAlias = Hashable
"""Opaque participant identity (thread, process or task name)."""


class Phase(str, Enum):
    """
    Lifecycle phase of a participant.

    Every participant is in exactly one phase at any time and cycles
    IDLE -> AWAITING -> CRITICAL -> IDLE.
    """

    IDLE = "idle"
    """Not contending; holds the zero ticket."""

    AWAITING = "awaiting"
    """Holds an issued ticket and waits for it to be served."""

    CRITICAL = "critical"
    """Inside the protected region."""


class ActionKind(str, Enum):
    """The four admissible protocol actions."""

    REQUEST = "request"
    WAIT = "wait"
    ENTER = "enter"
    EXIT = "exit"


__all__ = [
    "ActionKind",
    "ParticipantId",
    "Phase",
]
