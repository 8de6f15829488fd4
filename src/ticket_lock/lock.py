"""A FIFO ticket lock for real threads.

``TicketLock`` wraps the protocol behind acquire/release. ``acquire``
performs request, then waits on a condition over the shared state lock
(one WAIT step per wakeup) until its ticket is served, then enters.
``release`` exits. The opaque ``TicketHandle`` returned by ``acquire``
is the only thing ``release`` accepts, so a caller cannot present a
ticket it did not draw.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field

from ticket_lock.domain import Ticket
from ticket_lock.errors import ProtocolContractViolation
from ticket_lock.protocol import ProtocolConfig, TicketLockState, TicketProtocol
from ticket_lock.snapshot import TicketLockSnapshot
from ticket_lock.types import ActionKind, ParticipantId, Phase

logger = logging.getLogger(__name__)

_lock_ids = itertools.count(1)


@dataclass(frozen=True)
class TicketHandle:
    """Proof of admission, returned by ``TicketLock.acquire``.

    Attributes:
        participant: Who holds the lock
        ticket: The ticket that was served
    """

    participant: ParticipantId
    ticket: Ticket
    lock_id: int = field(repr=False)


class TicketLock:
    """Mutual exclusion with strict first-come, first-served admission.

    Not reentrant: a participant that acquires twice without releasing
    gets a ProtocolContractViolation.

    Usage:
        lock = TicketLock()
        with lock:
            ...

        handle = lock.acquire("worker-1")
        try:
            ...
        finally:
            lock.release(handle)
    """

    def __init__(self, config: ProtocolConfig | None = None):
        self._protocol = TicketProtocol(config=config)
        self._state: TicketLockState = self._protocol.state
        self._condition = threading.Condition(self._state.lock)
        self._id = next(_lock_ids)
        self._held: dict[int, TicketHandle] = {}
        self._implicit: set[ParticipantId] = set()

    @property
    def protocol(self) -> TicketProtocol:
        return self._protocol

    def snapshot(self) -> TicketLockSnapshot:
        return self._protocol.snapshot()

    def locked(self) -> bool:
        """True if some participant is in the protected region."""
        with self._state.lock:
            return bool(self._state.registry.in_phase(Phase.CRITICAL))

    def acquire(self, participant: ParticipantId | None = None) -> TicketHandle:
        """Block until admitted.

        Args:
            participant: Identity to contend as (default: the calling thread).
                A thread id enrolled this way is withdrawn again on release;
                named participants stay enrolled.

        Raises:
            ProtocolContractViolation: If ``participant`` is already contending
                or inside the region
            TicketDomainExhausted: If no ticket is left to issue
        """
        implicit = participant is None
        if participant is None:
            participant = threading.get_ident()
        with self._condition:
            if participant not in self._state.registry:
                self._protocol.enroll(participant)
                if implicit:
                    self._implicit.add(participant)
            ticket = self._protocol.request_ticket(participant)
            while not self._state.dispenser.is_current(ticket):
                self._protocol.wait(participant, ticket)
                self._condition.wait()
            self._protocol.enter(participant, ticket)
        logger.debug(f"{participant!r} acquired with ticket {ticket.value}")
        return TicketHandle(participant=participant, ticket=ticket, lock_id=self._id)

    def release(self, handle: TicketHandle) -> None:
        """Leave the protected region and wake the next ticket holder.

        Raises:
            ProtocolContractViolation: If ``handle`` was not issued by this
                lock or is no longer current
        """
        with self._condition:
            if handle.lock_id != self._id:
                raise ProtocolContractViolation(
                    reason="handle belongs to another lock",
                    action=ActionKind.EXIT,
                    participant=handle.participant,
                )
            if not self._state.dispenser.is_current(handle.ticket):
                raise ProtocolContractViolation(
                    reason=f"stale handle for ticket {handle.ticket.value}",
                    action=ActionKind.EXIT,
                    participant=handle.participant,
                )
            self._protocol.exit(handle.participant)
            if handle.participant in self._implicit:
                self._implicit.discard(handle.participant)
                self._protocol.withdraw(handle.participant)
            self._condition.notify_all()

    def __enter__(self) -> TicketHandle:
        handle = self.acquire()
        with self._state.lock:
            self._held[threading.get_ident()] = handle
        return handle

    def __exit__(self, *args: object) -> bool:
        with self._state.lock:
            handle = self._held.pop(threading.get_ident())
        self.release(handle)
        return False

    def __repr__(self) -> str:
        return f"TicketLock({self.snapshot().describe()})"


__all__ = [
    "TicketHandle",
    "TicketLock",
]
