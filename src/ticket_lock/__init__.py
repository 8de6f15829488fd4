"""
ticket-lock -- an executable model of the ticket mutual-exclusion protocol.

Ticket domain | Dispenser | Registry | Protocol state machine | Invariant battery

Contenders draw strictly increasing tickets and are admitted strictly in
ticket order. The protocol is checked by a battery of state and
transition invariants, a seeded interleaving harness, exhaustive
exploration of bounded state spaces and CTL model checking.
"""

from ticket_lock._version import __version__
from ticket_lock.dispenser import TicketDispenser
from ticket_lock.domain import UNSIGNED_64_MAX, Ticket, TicketDomain
from ticket_lock.drivers import Driver, PriorityDriver, RandomDriver
from ticket_lock.errors import ProtocolContractViolation, TicketDomainExhausted, TicketLockError
from ticket_lock.explorer import ExplorationConfig, ExplorationResult, explore
from ticket_lock.graph import StateGraph, label_states
from ticket_lock.harness import HarnessConfig, HarnessReport, InterleavingHarness, TrialResult
from ticket_lock.lock import TicketHandle, TicketLock
from ticket_lock.protocol import ProtocolConfig, TicketLockState, TicketProtocol
from ticket_lock.registry import ParticipantRecord, ParticipantRegistry
from ticket_lock.snapshot import Step, TicketLockSnapshot
from ticket_lock.types import ActionKind, ParticipantId, Phase
from ticket_lock.verification import ProtocolVerifier

# NOTE: Full verification APIs are accessible via direct imports:
#   from ticket_lock.verification import model_check, AG, Atomic, ...
#   from ticket_lock.serialization import snapshot_to_dict, ...

__all__ = [
    "__version__",
    # Domain
    "UNSIGNED_64_MAX",
    "Ticket",
    "TicketDomain",
    # State
    "TicketDispenser",
    "ParticipantRecord",
    "ParticipantRegistry",
    "TicketLockState",
    "TicketLockSnapshot",
    # Protocol
    "ActionKind",
    "ParticipantId",
    "Phase",
    "ProtocolConfig",
    "Step",
    "TicketProtocol",
    # Errors
    "TicketLockError",
    "ProtocolContractViolation",
    "TicketDomainExhausted",
    # Lock API
    "TicketHandle",
    "TicketLock",
    # Drivers & harness
    "Driver",
    "RandomDriver",
    "PriorityDriver",
    "HarnessConfig",
    "HarnessReport",
    "InterleavingHarness",
    "TrialResult",
    # Exploration
    "ExplorationConfig",
    "ExplorationResult",
    "StateGraph",
    "explore",
    "label_states",
    # Verification
    "ProtocolVerifier",
]
